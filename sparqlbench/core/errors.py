"""
Error categories for operation runs.

Every failed run carries one of these categories so that reports can
break down errors by cause. HTTP statuses are folded into a small set
of buckets by categorize_http_status().
"""

from enum import Enum, IntEnum


class ErrorCategory(IntEnum):
    """Category of an operation run failure."""

    NONE = 0
    TIMEOUT = 1
    INTERRUPT = 2
    EXECUTION = 3
    AUTHENTICATION = 4
    HTTP_CLIENT_ERROR = 400
    HTTP_NOT_FOUND = 404
    HTTP_SERVER_ERROR = 500

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS: dict[ErrorCategory, str] = {
    ErrorCategory.NONE: "No Error",
    ErrorCategory.TIMEOUT: "Operation Timeout",
    ErrorCategory.INTERRUPT: "Operation Interrupted",
    ErrorCategory.EXECUTION: "Execution Error",
    ErrorCategory.AUTHENTICATION: "Authentication Error",
    ErrorCategory.HTTP_CLIENT_ERROR: "HTTP Client Error (4xx)",
    ErrorCategory.HTTP_NOT_FOUND: "HTTP Not Found (404/410)",
    ErrorCategory.HTTP_SERVER_ERROR: "HTTP Server Error (5xx)",
}

AUTHENTICATION_STATUSES = frozenset({401, 402, 403, 407, 419, 440})
NOT_FOUND_STATUSES = frozenset({404, 410})
REQUEST_TIMEOUT_STATUS = 408


class HaltBehaviour(str, Enum):
    """What a runner does once a halt condition is reached."""

    EXIT = "exit"
    THROW_EXCEPTION = "throw_exception"


def categorize_http_status(status: int | None) -> ErrorCategory:
    """
    Map an HTTP status code to an error category.

    Args:
        status: HTTP status code, None or -1 when no status was received

    Returns:
        The matching error category, EXECUTION for unknown statuses
    """
    if status is None or status < 0:
        return ErrorCategory.EXECUTION
    if status in AUTHENTICATION_STATUSES:
        return ErrorCategory.AUTHENTICATION
    if status == REQUEST_TIMEOUT_STATUS:
        return ErrorCategory.TIMEOUT
    if status in NOT_FOUND_STATUSES:
        return ErrorCategory.HTTP_NOT_FOUND
    if 400 <= status < 500:
        return ErrorCategory.HTTP_CLIENT_ERROR
    if 500 <= status < 600:
        return ErrorCategory.HTTP_SERVER_ERROR
    return ErrorCategory.EXECUTION
