"""Query layer package."""

from budgt.queries.ledger_queries import LedgerQueries

__all__ = ["LedgerQueries"]
