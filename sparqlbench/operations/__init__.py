"""
Operations: units of work replayed by the runners.
"""

from sparqlbench.operations.base import Operation, OperationMix, OperationResult
from sparqlbench.operations.builtin import FunctionOperation, SleepOperation
from sparqlbench.operations.remote import (
    Authenticator,
    BasicAuthenticator,
    RemoteOperation,
    RemoteQueryOperation,
    RemoteUpdateOperation,
)

__all__ = [
    "Operation",
    "OperationMix",
    "OperationResult",
    "SleepOperation",
    "FunctionOperation",
    "Authenticator",
    "BasicAuthenticator",
    "RemoteOperation",
    "RemoteQueryOperation",
    "RemoteUpdateOperation",
]
