"""
Core primitives: error categories, exceptions and timing.
"""

from sparqlbench.core.errors import ErrorCategory, HaltBehaviour, categorize_http_status
from sparqlbench.core.exceptions import (
    BenchmarkHaltedError,
    OperationError,
    OptionsValidationError,
    SparqlBenchError,
)
from sparqlbench.core.timing import (
    ParallelTimer,
    format_seconds,
    millis_to_nanos,
    nanos_to_millis,
    nanos_to_seconds,
    now_nanos,
    seconds_to_nanos,
)

__all__ = [
    "ErrorCategory",
    "HaltBehaviour",
    "categorize_http_status",
    "SparqlBenchError",
    "OptionsValidationError",
    "BenchmarkHaltedError",
    "OperationError",
    "ParallelTimer",
    "format_seconds",
    "millis_to_nanos",
    "nanos_to_millis",
    "nanos_to_seconds",
    "now_nanos",
    "seconds_to_nanos",
]
