"""
Run records.

OperationRun is the result of one execution attempt of an operation,
OperationMixRun the result of one pass over a mix.
"""

from dataclasses import dataclass, field
from typing import Any

from sparqlbench.core.errors import ErrorCategory
from sparqlbench.core.timing import nanos_to_seconds

UNKNOWN_ID = -1
UNASSIGNED_ORDER = -1


@dataclass(eq=False)
class OperationRun:
    """
    Result of a single operation execution.

    Runs compare by runtime so that a collection of runs can be sorted
    for outlier trimming. The run order is assigned exactly once, either
    at construction or later by the operation runner.
    """

    id: int = UNKNOWN_ID
    runtime: int = 0
    response_time: int | None = None
    result_count: int = 0
    error_category: ErrorCategory = ErrorCategory.NONE
    error_message: str | None = None
    run_order: int = UNASSIGNED_ORDER

    def __post_init__(self) -> None:
        if self.response_time is None:
            self.response_time = self.runtime
        if self.error_message is not None and self.error_category == ErrorCategory.NONE:
            self.error_category = ErrorCategory.EXECUTION

    @classmethod
    def failure(
        cls,
        id: int,
        runtime: int,
        message: str,
        category: ErrorCategory,
    ) -> "OperationRun":
        """Build a failed run."""
        return cls(id=id, runtime=runtime, error_message=message, error_category=category)

    @property
    def success(self) -> bool:
        return self.error_message is None

    def set_run_order(self, order: int) -> None:
        if self.run_order != UNASSIGNED_ORDER:
            raise ValueError(f"Run order already set to {self.run_order}")
        self.run_order = order

    def __lt__(self, other: "OperationRun") -> bool:
        return self.runtime < other.runtime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "run_order": self.run_order,
            "success": self.success,
            "runtime_seconds": nanos_to_seconds(self.runtime),
            "response_time_seconds": nanos_to_seconds(self.response_time or 0),
            "result_count": self.result_count,
            "error_category": self.error_category.name,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class OperationMixRun:
    """
    Result of one pass over an operation mix.

    ``runs`` is indexed by operation id; operations not executed in this
    pass (excluded or not sampled) hold None. When an operation was
    sampled more than once, the last run is indexed and the earlier ones
    are kept in ``all_runs``.
    """

    runs: list[OperationRun | None]
    run_order: int
    all_runs: list[OperationRun] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.all_runs:
            object.__setattr__(self, "all_runs", [r for r in self.runs if r is not None])

    @classmethod
    def from_runs(cls, mix_size: int, runs: list[OperationRun], run_order: int) -> "OperationMixRun":
        indexed: list[OperationRun | None] = [None] * mix_size
        for run in runs:
            indexed[run.id] = run
        return cls(runs=indexed, run_order=run_order, all_runs=list(runs))

    @property
    def size(self) -> int:
        return len(self.runs)

    @property
    def total_runtime(self) -> int:
        return sum(r.runtime for r in self.all_runs)

    @property
    def total_response_time(self) -> int:
        return sum(r.response_time or 0 for r in self.all_runs)

    @property
    def total_results(self) -> int:
        return sum(r.result_count for r in self.all_runs if r.success)

    @property
    def total_errors(self) -> int:
        return sum(1 for r in self.all_runs if not r.success)

    @property
    def success(self) -> bool:
        return self.total_errors == 0

    @property
    def runtime(self) -> int:
        return self.total_runtime

    def _extreme(self, pick_max: bool) -> OperationRun | None:
        best: OperationRun | None = None
        for run in self.all_runs:
            if best is None or (run.runtime > best.runtime if pick_max else run.runtime < best.runtime):
                best = run
        return best

    @property
    def minimum_runtime(self) -> int:
        run = self._extreme(pick_max=False)
        return run.runtime if run else 0

    @property
    def minimum_runtime_operation_id(self) -> int:
        run = self._extreme(pick_max=False)
        return run.id if run else UNKNOWN_ID

    @property
    def maximum_runtime(self) -> int:
        run = self._extreme(pick_max=True)
        return run.runtime if run else 0

    @property
    def maximum_runtime_operation_id(self) -> int:
        run = self._extreme(pick_max=True)
        return run.id if run else UNKNOWN_ID

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_order": self.run_order,
            "total_runtime_seconds": nanos_to_seconds(self.total_runtime),
            "total_response_time_seconds": nanos_to_seconds(self.total_response_time),
            "total_results": self.total_results,
            "total_errors": self.total_errors,
            "minimum_runtime_operation_id": self.minimum_runtime_operation_id,
            "maximum_runtime_operation_id": self.maximum_runtime_operation_id,
            "runs": [r.to_dict() for r in self.all_runs],
        }
