"""Ledger event logging package."""

from budgt.events.logger import LedgerEventLogger, configure_logging

__all__ = ["LedgerEventLogger", "configure_logging"]
