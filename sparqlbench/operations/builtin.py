"""
Built-in operations that need no remote endpoint.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from sparqlbench.operations.base import Operation, OperationResult

if TYPE_CHECKING:
    from sparqlbench.config.options import Options


class SleepOperation(Operation):
    """Sleeps for a fixed number of seconds, useful to model think time."""

    type = "Sleep"

    def __init__(self, name: str, seconds: float):
        super().__init__(name)
        self.seconds = seconds

    def can_run(self, options: "Options") -> bool:
        return options.timeout <= 0 or self.seconds <= options.timeout

    async def execute(self, options: "Options") -> OperationResult:
        await asyncio.sleep(self.seconds)
        return OperationResult()

    def content_string(self) -> str:
        return f"Sleep for {self.seconds} seconds"


class FunctionOperation(Operation):
    """
    Wraps a callable as an operation.

    Coroutine functions are awaited directly. Plain functions run on the
    options' worker pool so they cannot block the event loop. The
    callable may return an OperationResult, an int result count or None.
    """

    type = "Function"

    def __init__(
        self,
        name: str,
        func: Callable[[], Any] | Callable[[], Awaitable[Any]],
        description: str | None = None,
    ):
        super().__init__(name)
        self.func = func
        self.description = description

    async def execute(self, options: "Options") -> OperationResult:
        if inspect.iscoroutinefunction(self.func):
            value = await self.func()
        else:
            loop = asyncio.get_running_loop()
            value = await loop.run_in_executor(options.executor, self.func)
        return _to_result(value)

    def content_string(self) -> str:
        return self.description or getattr(self.func, "__name__", self.name)


def _to_result(value: Any) -> OperationResult:
    if isinstance(value, OperationResult):
        return value
    if value is None:
        return OperationResult()
    return OperationResult(result_count=int(value))
