"""
Statistics accumulators.

Accumulators keep the raw sample history of every run added to them and
compute derived statistics on demand from the retained samples, i.e.
the raw history minus any outliers excluded by trim(). Keeping the raw
history makes trim() repeatable: trimming again replaces the previous
exclusion instead of compounding it.

All timings are integer nanoseconds. Accumulators are safe to share
between concurrent workers.
"""

import math
import statistics
import threading
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

import structlog

from sparqlbench.core.errors import ErrorCategory
from sparqlbench.core.timing import ParallelTimer, nanos_to_seconds
from sparqlbench.stats.runs import UNKNOWN_ID, OperationMixRun, OperationRun

logger = structlog.get_logger(__name__)

T = TypeVar("T", OperationRun, OperationMixRun)

SECONDS_PER_HOUR = 3600


class RunStatistics(ABC, Generic[T]):
    """Base accumulator over a stream of run records."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._samples: list[T] = []
        self._outliers = 0
        self.timer = ParallelTimer()

    # -------------------------------------------------------------------------
    # Sample access
    # -------------------------------------------------------------------------

    @abstractmethod
    def _errors_of(self, sample: T) -> int:
        """Number of errors contained in a sample."""

    @abstractmethod
    def _failed_runs_of(self, sample: T) -> list[OperationRun]:
        """Failed operation runs contained in a sample."""

    @abstractmethod
    def _results_of(self, sample: T) -> int:
        """Result count of a sample."""

    @abstractmethod
    def _response_time_of(self, sample: T) -> int:
        """Response time of a sample in nanoseconds, 0 when unknown."""

    def _operations_of(self, sample: T) -> int:
        return 1

    def add(self, run: T) -> None:
        """Record a sample."""
        with self._lock:
            self._samples.append(run)

    def trim(self, outliers: int) -> int:
        """
        Exclude the ``outliers`` fastest and slowest samples.

        Ties are broken by insertion order. Requests that would leave no
        samples are clamped to zero.

        Args:
            outliers: Number of samples to exclude at each end

        Returns:
            The number of outliers actually excluded at each end
        """
        if outliers < 0:
            raise ValueError("outliers must be >= 0")
        with self._lock:
            if outliers * 2 >= len(self._samples):
                if outliers > 0:
                    logger.warning(
                        "Not enough samples to trim outliers",
                        requested=outliers,
                        samples=len(self._samples),
                    )
                outliers = 0
            self._outliers = outliers
        return outliers

    @property
    def outliers(self) -> int:
        return self._outliers

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()
            self._outliers = 0
        self.timer.reset()

    @property
    def samples(self) -> list[T]:
        """Retained samples in insertion order."""
        with self._lock:
            return self._retained()

    @property
    def raw_samples(self) -> list[T]:
        with self._lock:
            return list(self._samples)

    def _retained(self) -> list[T]:
        k = self._outliers
        if k == 0:
            return list(self._samples)
        order = sorted(range(len(self._samples)), key=lambda i: self._samples[i].runtime)
        dropped = set(order[:k]) | set(order[-k:])
        return [s for i, s in enumerate(self._samples) if i not in dropped]

    # -------------------------------------------------------------------------
    # Counts
    # -------------------------------------------------------------------------

    @property
    def run_count(self) -> int:
        return len(self.samples)

    @property
    def success_count(self) -> int:
        return sum(1 for s in self.samples if self._errors_of(s) == 0)

    @property
    def total_errors(self) -> int:
        return sum(self._errors_of(s) for s in self.samples)

    @property
    def categorized_errors(self) -> dict[ErrorCategory, list[OperationRun]]:
        errors: dict[ErrorCategory, list[OperationRun]] = {}
        for sample in self.samples:
            for run in self._failed_runs_of(sample):
                errors.setdefault(run.error_category, []).append(run)
        return errors

    @property
    def total_results(self) -> int:
        return sum(self._results_of(s) for s in self.samples)

    @property
    def average_results(self) -> float:
        samples = self.samples
        if not samples:
            return 0.0
        return sum(self._results_of(s) for s in samples) / len(samples)

    # -------------------------------------------------------------------------
    # Runtime statistics
    # -------------------------------------------------------------------------

    @property
    def total_runtime(self) -> int:
        return sum(s.runtime for s in self.samples)

    @property
    def average_runtime(self) -> float:
        samples = self.samples
        if not samples:
            return 0.0
        return sum(s.runtime for s in samples) / len(samples)

    @property
    def geometric_average_runtime(self) -> float:
        """Geometric mean over successful samples with a non-zero runtime."""
        values = [
            float(s.runtime)
            for s in self.samples
            if s.runtime > 0 and self._errors_of(s) == 0
        ]
        if not values:
            return 0.0
        return statistics.geometric_mean(values)

    @property
    def variance(self) -> float:
        """Population variance of the retained runtimes."""
        runtimes = [s.runtime for s in self.samples]
        if len(runtimes) < 2:
            return 0.0
        return float(statistics.pvariance(runtimes))

    @property
    def standard_deviation(self) -> float:
        return math.sqrt(self.variance)

    @property
    def minimum_runtime(self) -> int:
        runtimes = [s.runtime for s in self.samples]
        return min(runtimes) if runtimes else 0

    @property
    def maximum_runtime(self) -> int:
        runtimes = [s.runtime for s in self.samples]
        return max(runtimes) if runtimes else 0

    @property
    def total_response_time(self) -> int:
        return sum(self._response_time_of(s) for s in self.samples)

    @property
    def average_response_time(self) -> float:
        samples = self.samples
        if not samples:
            return 0.0
        return sum(self._response_time_of(s) for s in samples) / len(samples)

    # -------------------------------------------------------------------------
    # Throughput
    # -------------------------------------------------------------------------

    @property
    def operation_count(self) -> int:
        return sum(self._operations_of(s) for s in self.samples)

    @property
    def operations_per_second(self) -> float:
        seconds = nanos_to_seconds(self.total_runtime)
        if seconds <= 0:
            return 0.0
        return self.operation_count / seconds

    @property
    def operations_per_hour(self) -> float:
        return self.operations_per_second * SECONDS_PER_HOUR

    @property
    def actual_runtime(self) -> int:
        """Wall-clock nanoseconds during which at least one run was active."""
        return self.timer.elapsed

    @property
    def actual_average_runtime(self) -> float:
        count = self.run_count
        if count == 0:
            return 0.0
        return self.actual_runtime / count

    @property
    def actual_operations_per_second(self) -> float:
        seconds = nanos_to_seconds(self.actual_runtime)
        if seconds <= 0:
            return 0.0
        return self.operation_count / seconds

    @property
    def actual_operations_per_hour(self) -> float:
        return self.actual_operations_per_second * SECONDS_PER_HOUR

    def to_dict(self) -> dict[str, Any]:
        return {
            "runs": self.run_count,
            "outliers": self.outliers,
            "total_errors": self.total_errors,
            "errors_by_category": {
                category.name: len(runs) for category, runs in self.categorized_errors.items()
            },
            "total_results": self.total_results,
            "average_results": round(self.average_results, 2),
            "total_runtime_seconds": nanos_to_seconds(self.total_runtime),
            "average_runtime_seconds": nanos_to_seconds(self.average_runtime),
            "geometric_average_runtime_seconds": nanos_to_seconds(self.geometric_average_runtime),
            "minimum_runtime_seconds": nanos_to_seconds(self.minimum_runtime),
            "maximum_runtime_seconds": nanos_to_seconds(self.maximum_runtime),
            "variance_seconds": nanos_to_seconds(nanos_to_seconds(self.variance)),
            "standard_deviation_seconds": nanos_to_seconds(self.standard_deviation),
            "average_response_time_seconds": nanos_to_seconds(self.average_response_time),
            "operations_per_second": round(self.operations_per_second, 4),
            "operations_per_hour": round(self.operations_per_hour, 2),
            "actual_runtime_seconds": nanos_to_seconds(self.actual_runtime),
            "actual_operations_per_second": round(self.actual_operations_per_second, 4),
        }


class OperationStats(RunStatistics[OperationRun]):
    """Statistics for a single operation."""

    def _errors_of(self, sample: OperationRun) -> int:
        return 0 if sample.success else 1

    def _failed_runs_of(self, sample: OperationRun) -> list[OperationRun]:
        return [] if sample.success else [sample]

    def _results_of(self, sample: OperationRun) -> int:
        return sample.result_count if sample.success else 0

    def _response_time_of(self, sample: OperationRun) -> int:
        return sample.response_time or 0


class OperationMixStats(RunStatistics[OperationMixRun]):
    """Statistics for whole passes over an operation mix."""

    def _errors_of(self, sample: OperationMixRun) -> int:
        return sample.total_errors

    def _failed_runs_of(self, sample: OperationMixRun) -> list[OperationRun]:
        return [r for r in sample.all_runs if not r.success]

    def _results_of(self, sample: OperationMixRun) -> int:
        return sample.total_results

    def _response_time_of(self, sample: OperationMixRun) -> int:
        return sample.total_response_time

    def _operations_of(self, sample: OperationMixRun) -> int:
        return len(sample.all_runs)

    @property
    def total_operations(self) -> int:
        return self.operation_count

    @property
    def operation_mixes_per_hour(self) -> float:
        hours = nanos_to_seconds(self.total_runtime) / SECONDS_PER_HOUR
        if hours <= 0:
            return 0.0
        return self.run_count / hours

    @property
    def actual_operation_mixes_per_hour(self) -> float:
        hours = nanos_to_seconds(self.actual_runtime) / SECONDS_PER_HOUR
        if hours <= 0:
            return 0.0
        return self.run_count / hours

    def _extreme_operation(self, pick_max: bool) -> OperationRun | None:
        best: OperationRun | None = None
        for sample in self.samples:
            for run in sample.all_runs:
                if best is None or (run.runtime > best.runtime if pick_max else run.runtime < best.runtime):
                    best = run
        return best

    @property
    def minimum_operation_runtime(self) -> int:
        run = self._extreme_operation(pick_max=False)
        return run.runtime if run else 0

    @property
    def minimum_operation_runtime_id(self) -> int:
        run = self._extreme_operation(pick_max=False)
        return run.id if run else UNKNOWN_ID

    @property
    def maximum_operation_runtime(self) -> int:
        run = self._extreme_operation(pick_max=True)
        return run.runtime if run else 0

    @property
    def maximum_operation_runtime_id(self) -> int:
        run = self._extreme_operation(pick_max=True)
        return run.id if run else UNKNOWN_ID

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "total_operations": self.total_operations,
                "operation_mixes_per_hour": round(self.operation_mixes_per_hour, 2),
                "actual_operation_mixes_per_hour": round(self.actual_operation_mixes_per_hour, 2),
                "fastest_operation_id": self.minimum_operation_runtime_id,
                "slowest_operation_id": self.maximum_operation_runtime_id,
            }
        )
        return data
