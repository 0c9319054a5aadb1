"""
Progress listeners for runners.
"""

from sparqlbench.monitoring.listeners import (
    JsonSummaryListener,
    LoggingProgressListener,
    ProgressListener,
    StreamProgressListener,
)

__all__ = [
    "ProgressListener",
    "StreamProgressListener",
    "LoggingProgressListener",
    "JsonSummaryListener",
]
