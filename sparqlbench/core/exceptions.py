"""
Exception hierarchy for the load generation engine.
"""

from sparqlbench.core.errors import ErrorCategory


class SparqlBenchError(Exception):
    """Base exception for all engine errors."""


class OptionsValidationError(SparqlBenchError, ValueError):
    """Raised when options are inconsistent or out of range."""


class BenchmarkHaltedError(SparqlBenchError):
    """Raised by a runner that halts under the THROW_EXCEPTION behaviour."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Benchmarking Aborted - Halting due to {reason}")


class OperationError(SparqlBenchError):
    """
    Reported failure of an operation.

    Operations raise this to record a failed run with a specific
    error category instead of the generic EXECUTION category.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.EXECUTION,
        status_code: int | None = None,
    ):
        self.message = message
        self.category = category
        self.status_code = status_code
        super().__init__(message)
