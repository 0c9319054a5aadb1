"""
Observability: structured logging.
"""

from sparqlbench.observability.logging import (
    LogContext,
    configure_from_settings,
    configure_logging,
    get_log_context,
    get_logger,
)

__all__ = [
    "LogContext",
    "configure_logging",
    "configure_from_settings",
    "get_log_context",
    "get_logger",
]
