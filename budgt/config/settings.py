"""
Configuration Management for BudgT Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger itself takes its collaborators explicitly (store, logger);
settings are only read by the factory that wires them together.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Record store backend configuration."""
    
    model_config = SettingsConfigDict(
        env_prefix="BUDGT_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Which record store to use"
    )
    database_path: str = Field(
        default="budgt.db",
        description="Path to the SQLite database file (sqlite backend only)"
    )
    busy_timeout_ms: int = Field(
        default=30000,
        ge=0,
        description="How long SQLite waits on a locked database"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Connection attempts before giving up"
    )


class LedgerSettings(BaseSettings):
    """
    Main application settings.
    
    Loads configuration from environment variables and .env file.
    """
    
    model_config = SettingsConfigDict(
        env_prefix="BUDGT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    default_currency: str = Field(
        default="USD",
        min_length=1,
        max_length=10,
        description="Currency label given to accounts created without one"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for ledger log output"
    )
    
    @field_validator('default_currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()
    
    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.
    
    Aggregates all sub-settings for easy access.
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )
    
    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()
    
    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).
    
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
