"""
Operation and operation mix abstractions.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sparqlbench.stats.accumulator import OperationMixStats, OperationStats
from sparqlbench.stats.runs import UNKNOWN_ID

if TYPE_CHECKING:
    from sparqlbench.config.options import Options


@dataclass
class OperationResult:
    """Outcome of a successful execution."""

    result_count: int = 0
    response_time: int | None = None


class Operation(ABC):
    """
    A unit of work that can be replayed against the system under test.

    Operations report failures by raising; OperationError carries an
    explicit error category, any other exception counts as an
    execution error.
    """

    type: str = "Operation"

    def __init__(self, name: str):
        self.name = name
        self.id = UNKNOWN_ID
        self.stats = OperationStats()

    def can_run(self, options: "Options") -> bool:
        """Check whether this operation can run with the given options."""
        return True

    @abstractmethod
    async def execute(self, options: "Options") -> OperationResult:
        """Execute the operation once."""

    def content_string(self) -> str:
        """Human readable description of what the operation does."""
        return self.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id}, name={self.name!r})"


class OperationMix:
    """
    Ordered collection of operations.

    Operation ids are their positions in the mix. Mix level statistics
    are kept alongside the per-operation statistics of each member.
    """

    def __init__(self, operations: Iterable[Operation], name: str = "mix"):
        self.name = name
        self._operations = list(operations)
        for index, operation in enumerate(self._operations):
            operation.id = index
        self.stats = OperationMixStats()

    @property
    def size(self) -> int:
        return len(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __getitem__(self, id: int) -> Operation:
        return self._operations[id]

    def __iter__(self) -> Iterator[Operation]:
        return iter(self._operations)

    @property
    def operations(self) -> list[Operation]:
        return list(self._operations)

    def clear(self) -> None:
        """Reset mix level statistics, leaving operations and their statistics intact."""
        self.stats.clear()

