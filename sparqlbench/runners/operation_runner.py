"""
Operation runners.

An operation runner executes a single operation under the options'
timeout and turns whatever happens into an OperationRun. Failures never
propagate as exceptions; whether they stop the whole run is decided by
the halting policy of the calling runner.
"""

import asyncio
import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

from sparqlbench.core.errors import ErrorCategory
from sparqlbench.core.exceptions import OperationError
from sparqlbench.core.timing import now_nanos
from sparqlbench.stats.runs import OperationRun

if TYPE_CHECKING:
    from sparqlbench.config.options import Options
    from sparqlbench.operations.base import Operation
    from sparqlbench.runners.base import Runner

logger = structlog.get_logger(__name__)


class OperationRunner(ABC):
    """Runs one operation and records the outcome."""

    @abstractmethod
    async def run(
        self,
        runner: "Runner",
        options: "Options",
        operation: "Operation",
    ) -> OperationRun:
        """Run the operation once."""


class DefaultOperationRunner(OperationRunner):
    """
    Runs the operation as a task bounded by ``options.timeout``.

    Timed out tasks are cancelled. Every run, successful or not, is
    given the next global order value and recorded in the operation's
    statistics.
    """

    async def run(
        self,
        runner: "Runner",
        options: "Options",
        operation: "Operation",
    ) -> OperationRun:
        order = options.get_global_order()
        timeout = options.timeout
        halt_reason: str | None = None

        operation.stats.timer.start()
        started = now_nanos()
        task = asyncio.ensure_future(operation.execute(options))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout if timeout > 0 else None)
            if task in done:
                # Errors raised by the operation itself, TimeoutError included,
                # surface here and are classified below
                result = task.result()
                run = OperationRun(
                    id=operation.id,
                    runtime=now_nanos() - started,
                    response_time=result.response_time,
                    result_count=result.result_count,
                )
            else:
                runtime = now_nanos() - started
                logger.error(
                    "Operation timed out",
                    operation_id=operation.id,
                    operation=operation.name,
                    timeout_seconds=timeout,
                )
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                run = OperationRun.failure(
                    operation.id,
                    runtime,
                    f"Operation timed out after {timeout} seconds",
                    ErrorCategory.TIMEOUT,
                )
                if options.halt_on_timeout or options.halt_any:
                    halt_reason = f"Operation {operation.name} timed out"
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                task.cancel()
                raise
            logger.warning("Operation interrupted", operation_id=operation.id, operation=operation.name)
            run = OperationRun.failure(
                operation.id,
                now_nanos() - started,
                "Operation was interrupted",
                ErrorCategory.INTERRUPT,
            )
            if options.halt_any:
                halt_reason = f"Operation {operation.name} was interrupted"
        except OperationError as e:
            run = OperationRun.failure(operation.id, now_nanos() - started, e.message, e.category)
        except Exception as e:
            logger.error(
                "Operation failed",
                operation_id=operation.id,
                operation=operation.name,
                error=str(e),
                exc_info=True,
            )
            run = OperationRun.failure(
                operation.id,
                now_nanos() - started,
                f"{type(e).__name__}: {e}",
                ErrorCategory.EXECUTION,
            )
            if options.halt_on_error or options.halt_any:
                halt_reason = f"Operation {operation.name} errored: {e}"
        finally:
            operation.stats.timer.stop()

        run.set_run_order(order)
        operation.stats.add(run)

        if run.error_category == ErrorCategory.AUTHENTICATION and options.authenticator is not None:
            options.authenticator.invalidate()

        if halt_reason is not None:
            runner.halt(options, halt_reason)
        return run


class RetryingOperationRunner(OperationRunner):
    """
    Retries failed operations.

    Makes up to ``max_retries + 1`` attempts through the wrapped runner
    and stops at the first success. Intermediate failures are reported
    as progress only.
    """

    def __init__(
        self,
        max_retries: int,
        inner: OperationRunner | None = None,
        retry_delay: float = 0.0,
        backoff: float = 2.0,
        jitter: float = 0.1,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.inner = inner or DefaultOperationRunner()
        self.retry_delay = retry_delay
        self.backoff = backoff
        self.jitter = jitter
        self._total_retries = 0

    @property
    def total_retries(self) -> int:
        return self._total_retries

    def get_delay(self, attempt: int) -> float:
        """Delay in seconds before the given retry attempt (0 based)."""
        delay = self.retry_delay * (self.backoff ** attempt)
        jitter_range = delay * self.jitter
        delay += random.uniform(-jitter_range, jitter_range)
        return max(0.0, delay)

    async def run(
        self,
        runner: "Runner",
        options: "Options",
        operation: "Operation",
    ) -> OperationRun:
        attempts = self.max_retries + 1
        run = await self.inner.run(runner, options, operation)
        for attempt in range(1, attempts):
            if run.success:
                return run
            runner.report_progress(
                options,
                f"Operation {operation.name} errored on attempt {attempt} of {attempts}, retrying...",
            )
            self._total_retries += 1
            delay = self.get_delay(attempt - 1)
            if delay > 0:
                await asyncio.sleep(delay)
            run = await self.inner.run(runner, options, operation)

        if not run.success and attempts > 1:
            runner.report_progress(options, f"Operation {operation.name} errored on all {attempts} attempts")
        return run
