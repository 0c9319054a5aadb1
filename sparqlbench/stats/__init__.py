"""
Run records and statistics accumulators.
"""

from sparqlbench.stats.accumulator import OperationMixStats, OperationStats, RunStatistics
from sparqlbench.stats.runs import UNKNOWN_ID, OperationMixRun, OperationRun

__all__ = [
    "OperationRun",
    "OperationMixRun",
    "UNKNOWN_ID",
    "RunStatistics",
    "OperationStats",
    "OperationMixStats",
]
