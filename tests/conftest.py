"""
Pytest Configuration and Shared Fixtures.

This module provides shared fixtures and test operations for the
load generation engine.
"""

import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import patch

import pytest

from sparqlbench.config.options import BenchmarkOptions, Options
from sparqlbench.config.settings import Settings, get_settings
from sparqlbench.core.errors import ErrorCategory
from sparqlbench.core.exceptions import OperationError
from sparqlbench.monitoring.listeners import ProgressListener
from sparqlbench.operations.base import Operation, OperationMix, OperationResult
from sparqlbench.runners.base import Runner
from sparqlbench.stats.runs import OperationRun


# =============================================================================
# Test Operations
# =============================================================================


class ScriptedOperation(Operation):
    """
    Operation whose outcome on each call is scripted.

    Each script entry is either a number of results, an exception to
    raise, or the string "hang" to block until cancelled. The last entry
    repeats once the script is exhausted.
    """

    type = "Scripted"

    def __init__(self, name: str, script: list[Any] | None = None, delay: float = 0.0):
        super().__init__(name)
        self.script = script or [1]
        self.delay = delay
        self.calls = 0
        self.cancelled = 0

    async def execute(self, options: Options) -> OperationResult:
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        try:
            if step == "hang":
                await asyncio.sleep(3600)
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        if isinstance(step, BaseException):
            raise step
        return OperationResult(result_count=step)


def ok(name: str = "ok", results: int = 1, delay: float = 0.0) -> ScriptedOperation:
    return ScriptedOperation(name, [results], delay=delay)


def failing(name: str = "failing", error: BaseException | None = None) -> ScriptedOperation:
    return ScriptedOperation(name, [error or RuntimeError("boom")])


def hanging(name: str = "hanging") -> ScriptedOperation:
    return ScriptedOperation(name, ["hang"])


def categorized(name: str, category: ErrorCategory) -> ScriptedOperation:
    return ScriptedOperation(name, [OperationError(f"{category.name} failure", category)])


def make_run(
    runtime: int,
    id: int = 0,
    error: str | None = None,
    category: ErrorCategory = ErrorCategory.NONE,
    results: int = 0,
) -> OperationRun:
    return OperationRun(
        id=id,
        runtime=runtime,
        result_count=results,
        error_message=error,
        error_category=category,
    )


# =============================================================================
# Listener and Runner Fixtures
# =============================================================================


class RecordingListener(ProgressListener):
    """Records every notification it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[Any, ...]] = []
        self.messages: list[str] = []

    def handle_started(self, runner: Runner, options: Options) -> None:
        self.events.append(("started",))

    def handle_finished(self, runner: Runner, options: Options, ok: bool) -> None:
        self.events.append(("finished", ok))

    def handle_progress(self, runner: Runner, options: Options, message: str) -> None:
        self.messages.append(message)

    def handle_before_operation(self, runner: Runner, options: Options, operation: Operation) -> None:
        self.events.append(("before_operation", operation.id))

    def handle_after_operation(
        self, runner: Runner, options: Options, operation: Operation, run: OperationRun
    ) -> None:
        self.events.append(("after_operation", operation.id, run.success))

    def handle_before_operation_mix(self, runner: Runner, options: Options, mix: OperationMix) -> None:
        self.events.append(("before_mix",))

    def handle_after_operation_mix(self, runner: Runner, options: Options, mix: OperationMix, run: Any) -> None:
        self.events.append(("after_mix", run.run_order))

    @property
    def finishes(self) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] == "finished"]

    def contains(self, fragment: str) -> bool:
        return any(fragment in message for message in self.messages)


class FailingListener(ProgressListener):
    """Raises from the configured handler."""

    def __init__(self, on: str = "progress"):
        self.on = on

    def _maybe_fail(self, event: str) -> None:
        if event == self.on:
            raise RuntimeError(f"listener failed on {event}")

    def handle_started(self, runner: Runner, options: Options) -> None:
        self._maybe_fail("started")

    def handle_finished(self, runner: Runner, options: Options, ok: bool) -> None:
        self._maybe_fail("finished")

    def handle_progress(self, runner: Runner, options: Options, message: str) -> None:
        self._maybe_fail("progress")


class StubRunner(Runner):
    """Runner used to drive mix and operation runners directly."""

    async def run(self, options: Options) -> None:
        return None


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def runner() -> StubRunner:
    return StubRunner()


@pytest.fixture
def make_options(listener: RecordingListener) -> Callable[..., BenchmarkOptions]:
    """Factory for fast benchmark options with the recording listener attached."""

    def factory(*operations: Operation, **overrides: Any) -> BenchmarkOptions:
        values: dict[str, Any] = {
            "mix": OperationMix(operations) if operations else None,
            "timeout": 1,
            "max_delay": 0,
            "runs": 5,
            "warmups": 0,
            "outliers": 0,
            "listeners": [listener],
        }
        values.update(overrides)
        return BenchmarkOptions(**values)

    return factory


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Provide settings loaded from a controlled environment."""
    with patch.dict(
        "os.environ",
        {
            "SPARQLBENCH_TIMEOUT": "30",
            "SPARQLBENCH_PARALLEL_THREADS": "4",
            "SPARQLBENCH_HALT_ANY": "true",
            "SPARQLBENCH_HALT_BEHAVIOUR": "EXIT",
            "SPARQLBENCH_RUNS": "10",
            "SPARQLBENCH_OUTLIERS": "2",
            "SPARQLBENCH_HTTP_QUERY_ENDPOINT": "http://localhost:3030/ds/query",
            "SPARQLBENCH_HTTP_USERNAME": "admin",
            "SPARQLBENCH_HTTP_PASSWORD": "secret",
        },
    ):
        get_settings.cache_clear()
        settings = get_settings()
    get_settings.cache_clear()
    return settings
