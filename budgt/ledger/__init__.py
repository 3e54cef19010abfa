"""Ledger engine package."""

from budgt.ledger.effects import effect
from budgt.ledger.engine import LedgerEngine

__all__ = ["LedgerEngine", "effect"]
