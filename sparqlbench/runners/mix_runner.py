"""
Operation mix runners.

A mix runner performs one pass over an operation mix: it asks its order
provider which operations to run, runs each through the options'
operation runner, reports progress and records the resulting mix run.

Strategies compose by delegation. IntelligentMixRunner wraps another mix
runner and adds adaptive exclusion and timeout tuning on top of it.
"""

import asyncio
import math
import random
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from sparqlbench.config.settings import RunnerSettings
from sparqlbench.core.errors import ErrorCategory
from sparqlbench.core.exceptions import OptionsValidationError
from sparqlbench.core.timing import format_seconds, nanos_to_seconds
from sparqlbench.runners.operation_runner import DefaultOperationRunner, OperationRunner
from sparqlbench.runners.ordering import (
    DefaultOrderProvider,
    InOrderProvider,
    MixOrderProvider,
    SamplingOrderProvider,
    clear_operation_excludes,
    exclude_operation,
    get_operation_excludes,
)
from sparqlbench.stats.runs import OperationMixRun, OperationRun

if TYPE_CHECKING:
    from sparqlbench.config.options import Options
    from sparqlbench.operations.base import OperationMix
    from sparqlbench.runners.base import Runner

logger = structlog.get_logger(__name__)


class RunPhase(str, Enum):
    """Phase a mix run belongs to."""

    WARMUP = "warmup"
    RUN = "run"


def client_prefix(client_id: int | None) -> str:
    """Progress message prefix identifying a parallel client."""
    return f"[Client {client_id}] " if client_id is not None else ""


class OperationMixRunner(ABC):
    """Runs a single pass over an operation mix."""

    order_provider: MixOrderProvider

    @abstractmethod
    async def run(
        self,
        runner: "Runner",
        options: "Options",
        mix: "OperationMix",
        phase: RunPhase = RunPhase.RUN,
        client_id: int | None = None,
    ) -> OperationMixRun:
        """Run one pass over the mix."""

    async def warmup(
        self,
        runner: "Runner",
        options: "Options",
        mix: "OperationMix",
        client_id: int | None = None,
    ) -> OperationMixRun:
        """Run one warmup pass over the mix."""
        return await self.run(runner, options, mix, phase=RunPhase.WARMUP, client_id=client_id)

    def get_operation_order(self, options: "Options", mix: "OperationMix") -> list[int]:
        return self.order_provider.get_operation_order(options, mix)


class DefaultMixRunner(OperationMixRunner):
    """
    Runs the operations chosen by the order provider one after another,
    sleeping a random delay of up to ``options.max_delay`` milliseconds
    between operations.
    """

    def __init__(
        self,
        order_provider: MixOrderProvider | None = None,
        rng: random.Random | None = None,
    ):
        self.order_provider = order_provider or DefaultOrderProvider()
        self.rng = rng or random.Random()
        self._default_operation_runner = DefaultOperationRunner()

    def _operation_runner(self, options: "Options") -> OperationRunner:
        return options.operation_runner or self._default_operation_runner

    async def run(
        self,
        runner: "Runner",
        options: "Options",
        mix: "OperationMix",
        phase: RunPhase = RunPhase.RUN,
        client_id: int | None = None,
    ) -> OperationMixRun:
        if mix.size == 0:
            raise OptionsValidationError("Cannot run an empty operation mix")

        run_order = options.get_global_order()
        prefix = client_prefix(client_id)
        order = self.get_operation_order(options, mix)
        if self.order_provider.report_operation_order(options):
            runner.report_progress(
                options,
                f"{prefix}Operation Order for this Run is {', '.join(str(id) for id in order)}",
            )

        runner.report_before_operation_mix(options, mix)
        operation_runner = self._operation_runner(options)
        runs: list[OperationRun] = []

        for position, id in enumerate(order):
            operation = mix[id]
            runner.report_progress(options, f"{prefix}Running Operation {operation.name}...")
            runner.report_before_operation(options, operation)

            mix.stats.timer.start()
            try:
                run = await operation_runner.run(runner, options, operation)
            finally:
                mix.stats.timer.stop()

            runner.report_after_operation(options, operation, run)
            if run.success:
                runner.report_progress(
                    options,
                    f"{prefix}Operation {operation.name} got {run.result_count} result(s) "
                    f"in {format_seconds(run.runtime)}",
                )
            else:
                runner.report_progress(
                    options,
                    f"{prefix}Operation {operation.name} got error after "
                    f"{format_seconds(run.runtime)}: {run.error_message}",
                )
            runs.append(run)

            if options.max_delay > 0 and position < len(order) - 1:
                await self._delay(runner, options, prefix)

        mix_run = OperationMixRun.from_runs(mix.size, runs, run_order)
        mix.stats.add(mix_run)
        runner.report_after_operation_mix(options, mix, mix_run)
        logger.debug(
            "Operation mix run completed",
            phase=phase.value,
            run_order=run_order,
            operations=len(runs),
            errors=mix_run.total_errors,
            client_id=client_id,
        )
        return mix_run

    async def _delay(self, runner: "Runner", options: "Options", prefix: str) -> None:
        delay_ms = self.rng.randint(0, options.max_delay)
        runner.report_progress(
            options, f"{prefix}Sleeping for {delay_ms / 1000:.3f}s before next operation"
        )
        try:
            await asyncio.sleep(delay_ms / 1000)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("Delay between operations interrupted")


class InOrderMixRunner(DefaultMixRunner):
    """Runs every operation in mix order."""

    def __init__(self, rng: random.Random | None = None):
        super().__init__(InOrderProvider(), rng)


class SamplingMixRunner(DefaultMixRunner):
    """Runs a sample of the mix on each pass."""

    def __init__(
        self,
        sample_size: int | None = None,
        allow_repeats: bool | None = None,
        rng: random.Random | None = None,
    ):
        super().__init__(SamplingOrderProvider(sample_size, allow_repeats, rng), rng)


class IntelligentMixRunner(OperationMixRunner):
    """
    Adaptive mix runner.

    During warmups operations that time out are excluded straight away.
    Operations that fail for other reasons are excluded once their
    cumulative error count reaches ``failure_threshold`` (a negative
    threshold disables this). On the first actual run after warmups the
    operation timeout is tightened to the slowest observed runtime of
    the remaining operations times ``timeout_tuning_factor``.

    Error counts come from the operations' own statistics and are not
    reset between warmups and actual runs, so failures from both phases
    count towards the threshold.
    """

    def __init__(
        self,
        inner: OperationMixRunner | None = None,
        order_provider: MixOrderProvider | None = None,
        failure_threshold: int = -1,
        timeout_tuning_factor: float = 2.0,
    ):
        if timeout_tuning_factor <= 1.0:
            raise ValueError("timeout_tuning_factor must be > 1.0")
        if inner is not None and order_provider is not None:
            raise ValueError("Pass either an inner mix runner or an order provider, not both")
        self.inner = inner or DefaultMixRunner(order_provider)
        self.failure_threshold = failure_threshold
        self.timeout_tuning_factor = timeout_tuning_factor
        self._lock = threading.Lock()
        self._in_warmup = False

    @classmethod
    def from_settings(
        cls,
        settings: RunnerSettings,
        inner: OperationMixRunner | None = None,
    ) -> "IntelligentMixRunner":
        return cls(
            inner=inner,
            failure_threshold=settings.failure_threshold,
            timeout_tuning_factor=settings.timeout_tuning_factor,
        )

    @property
    def order_provider(self) -> MixOrderProvider:
        return self.inner.order_provider

    async def run(
        self,
        runner: "Runner",
        options: "Options",
        mix: "OperationMix",
        phase: RunPhase = RunPhase.RUN,
        client_id: int | None = None,
    ) -> OperationMixRun:
        if phase == RunPhase.WARMUP:
            with self._lock:
                fresh_warmups = not self._in_warmup
                self._in_warmup = True
            if fresh_warmups:
                clear_operation_excludes(options)
        else:
            with self._lock:
                leaving_warmups = self._in_warmup
                self._in_warmup = False
            if leaving_warmups:
                self.tune_timeout(runner, options, mix)

        mix_run = await self.inner.run(runner, options, mix, phase=phase, client_id=client_id)

        for run in mix_run.all_runs:
            if run.success:
                continue
            if phase == RunPhase.WARMUP and run.error_category == ErrorCategory.TIMEOUT:
                operation = mix[run.id]
                if exclude_operation(options, run.id):
                    runner.report_progress(
                        options,
                        f"Intelligent mix runner removed Operation ID {run.id} ({operation.name}) "
                        f"as it timed out",
                    )
            else:
                self.check_failure_threshold(runner, options, mix, run)
        return mix_run

    def check_failure_threshold(
        self,
        runner: "Runner",
        options: "Options",
        mix: "OperationMix",
        run: OperationRun,
    ) -> bool:
        """Exclude the run's operation if it reached the failure threshold."""
        if self.failure_threshold < 0:
            return False
        operation = mix[run.id]
        if operation.stats.total_errors < self.failure_threshold:
            return False
        if exclude_operation(options, run.id):
            runner.report_progress(
                options,
                f"Intelligent mix runner removed Operation ID {run.id} ({operation.name}) "
                f"as it exceeded the failure rate of {self.failure_threshold}",
            )
        return True

    def tune_timeout(self, runner: "Runner", options: "Options", mix: "OperationMix") -> bool:
        """Tighten the operation timeout based on warmup runtimes."""
        if options.timeout <= 0:
            return False
        with options.settings_lock:
            excludes = set(get_operation_excludes(options))
        slowest = max(
            (operation.stats.maximum_runtime for operation in mix if operation.id not in excludes),
            default=0,
        )
        tuned = math.ceil(nanos_to_seconds(slowest * self.timeout_tuning_factor))
        if options.tighten_timeout(tuned):
            runner.report_progress(
                options,
                f"Intelligent mix runner tuned the Operation Timeout to {tuned} seconds",
            )
            return True
        return False
