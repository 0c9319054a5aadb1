"""
sparqlbench - load generation and benchmarking for SPARQL endpoints.

Replays a mix of operations against a system under test, enforces
per-operation timeouts and halting policies, and aggregates runtime
statistics across sequential and parallel clients.
"""

from sparqlbench.config.options import BenchmarkOptions, Options, SoakOptions, StressOptions
from sparqlbench.core.errors import ErrorCategory, HaltBehaviour
from sparqlbench.core.exceptions import BenchmarkHaltedError, OperationError
from sparqlbench.operations.base import Operation, OperationMix, OperationResult
from sparqlbench.runners.benchmark import BenchmarkRunner
from sparqlbench.runners.smoke import SmokeRunner
from sparqlbench.runners.soak import SoakRunner
from sparqlbench.runners.stress import StressRunner

__version__ = "0.1.0"

__all__ = [
    "Options",
    "BenchmarkOptions",
    "SoakOptions",
    "StressOptions",
    "ErrorCategory",
    "HaltBehaviour",
    "BenchmarkHaltedError",
    "OperationError",
    "Operation",
    "OperationMix",
    "OperationResult",
    "BenchmarkRunner",
    "SoakRunner",
    "StressRunner",
    "SmokeRunner",
]
