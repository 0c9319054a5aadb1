"""
Concurrent execution of simulated clients.
"""

from sparqlbench.parallel.clients import (
    BenchmarkClientManager,
    ParallelClient,
    ParallelClientManager,
    SoakClientManager,
    StressClientManager,
)

__all__ = [
    "ParallelClient",
    "ParallelClientManager",
    "BenchmarkClientManager",
    "SoakClientManager",
    "StressClientManager",
]
