"""
Ledger Event Logger

DESIGN DECISION: Every ledger mutation is logged as a structured event.
This provides:
1. Traceability of which transaction touched which balance
2. Debugging capability when a balance looks wrong
3. Visibility into tolerated degenerate cases (dangling transfers)

Events go to the local structured log only. Nothing is persisted;
a stored audit trail is outside this package.
"""

import logging
import sys

import structlog

from budgt.models.event import LedgerEvent, LedgerEventSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route ledger logs to stderr at the given level.
    
    structlog defers level filtering to the stdlib logger, so this only
    needs to set up the "budgt" logger hierarchy.
    """
    logger = logging.getLogger("budgt")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)


class LedgerEventLogger:
    """
    Central ledger event logging service.
    
    Maps event severity onto the matching log level.
    """
    
    def __init__(self, name: str = "budgt.ledger"):
        self._logger = structlog.get_logger(name)
    
    def log(self, event: LedgerEvent) -> None:
        """Log a ledger event."""
        log_dict = event.to_log_dict()
        
        if event.severity == LedgerEventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == LedgerEventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)
