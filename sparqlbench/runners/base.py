"""
Runner base class.

Runners drive a complete test (benchmark, soak, stress or smoke) over the
mix configured in the options. The base class owns listener
notification, the halting policy and the summary reports shared by all
runners.
"""

import sys
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from sparqlbench.core.errors import ErrorCategory, HaltBehaviour
from sparqlbench.core.exceptions import BenchmarkHaltedError, OptionsValidationError
from sparqlbench.core.timing import format_seconds
from sparqlbench.runners.mix_runner import DefaultMixRunner, OperationMixRunner
from sparqlbench.runners.operation_runner import DefaultOperationRunner
from sparqlbench.stats.accumulator import RunStatistics

if TYPE_CHECKING:
    from sparqlbench.config.options import Options
    from sparqlbench.monitoring.listeners import ProgressListener
    from sparqlbench.operations.base import Operation, OperationMix
    from sparqlbench.stats.runs import OperationMixRun, OperationRun

logger = structlog.get_logger(__name__)

HALT_EXIT_CODE = 2


class Runner(ABC):
    """Base class for runners."""

    def __init__(self) -> None:
        self._halting = False
        self._halted = False

    @abstractmethod
    async def run(self, options: "Options") -> Any:
        """Run the test described by the options."""

    @property
    def halted(self) -> bool:
        return self._halted

    def _reset(self) -> None:
        self._halting = False
        self._halted = False

    def get_mix_runner(self, options: "Options") -> OperationMixRunner:
        if options.mix_runner is None:
            options.mix_runner = DefaultMixRunner()
        return options.mix_runner

    # -------------------------------------------------------------------------
    # Halting
    # -------------------------------------------------------------------------

    def halt(self, options: "Options", reason: str | BaseException) -> None:
        """
        Abort the run.

        Listeners are told about the unsuccessful finish once. A halt
        triggered while that notification is in progress is ignored;
        any other call exits the process or raises BenchmarkHaltedError
        according to ``options.halt_behaviour``.
        """
        if self._halting:
            return None

        if not self._halted:
            self._halting = True
            try:
                logger.error("Halting run", reason=str(reason))
                self.report_progress(options, f"Benchmarking Aborted - Halting due to {reason}")
                self.report_finished(options, ok=False)
            finally:
                self._halting = False
                self._halted = True

        if options.halt_behaviour == HaltBehaviour.EXIT:
            sys.exit(HALT_EXIT_CODE)
        raise BenchmarkHaltedError(str(reason))

    def _halt_on_listener_error(self, options: "Options") -> bool:
        return options.halt_on_error or options.halt_any

    def _notify(
        self,
        options: "Options",
        event: str,
        notify: Callable[["ProgressListener"], None],
        halt_on_failure: bool,
    ) -> None:
        for listener in list(options.listeners):
            try:
                notify(listener)
            except BenchmarkHaltedError:
                raise
            except Exception as e:
                logger.error(
                    "Progress listener failed",
                    listener=type(listener).__name__,
                    event_name=event,
                    error=str(e),
                )
                if halt_on_failure:
                    self.halt(options, f"{type(listener).__name__} failed to handle {event}: {e}")

    # -------------------------------------------------------------------------
    # Listener notification
    # -------------------------------------------------------------------------

    def report_started(self, options: "Options") -> None:
        self._notify(options, "start", lambda l: l.handle_started(self, options), halt_on_failure=True)

    def report_finished(self, options: "Options", ok: bool) -> None:
        self._notify(
            options,
            "finish",
            lambda l: l.handle_finished(self, options, ok),
            halt_on_failure=self._halt_on_listener_error(options),
        )

    def report_progress(self, options: "Options", message: str = "") -> None:
        self._notify(
            options,
            "progress",
            lambda l: l.handle_progress(self, options, message),
            halt_on_failure=self._halt_on_listener_error(options),
        )

    def report_before_operation(self, options: "Options", operation: "Operation") -> None:
        self._notify(
            options,
            "before operation",
            lambda l: l.handle_before_operation(self, options, operation),
            halt_on_failure=self._halt_on_listener_error(options),
        )

    def report_after_operation(
        self, options: "Options", operation: "Operation", run: "OperationRun"
    ) -> None:
        self._notify(
            options,
            "after operation",
            lambda l: l.handle_after_operation(self, options, operation, run),
            halt_on_failure=self._halt_on_listener_error(options),
        )

    def report_before_operation_mix(self, options: "Options", mix: "OperationMix") -> None:
        self._notify(
            options,
            "before operation mix",
            lambda l: l.handle_before_operation_mix(self, options, mix),
            halt_on_failure=self._halt_on_listener_error(options),
        )

    def report_after_operation_mix(
        self, options: "Options", mix: "OperationMix", run: "OperationMixRun"
    ) -> None:
        self._notify(
            options,
            "after operation mix",
            lambda l: l.handle_after_operation_mix(self, options, mix, run),
            halt_on_failure=self._halt_on_listener_error(options),
        )

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def validate_options(self, options: "Options") -> None:
        """Halt if the options are invalid."""
        try:
            options.validate()
        except OptionsValidationError as e:
            self.halt(options, str(e))

    def check_operations(self, options: "Options") -> None:
        """Halt if any operation in the mix cannot run with these options."""
        for operation in options.mix:
            if not operation.can_run(options):
                self.halt(
                    options,
                    f"Operation {operation.id} ({operation.name}) cannot run with the configured options",
                )

    async def check_sanity(self, options: "Options") -> None:
        """Run the configured sanity checks, halting unless enough of them pass."""
        if options.sanity_check_level <= 0:
            return
        checks = options.sanity_checks
        self.report_progress(options, "Sanity checking the user specified endpoint(s)")
        operation_runner = DefaultOperationRunner()
        passed = 0
        for check in checks:
            run = await operation_runner.run(self, options, check)
            if run.success:
                passed += 1
                self.report_progress(options, f"Sanity check {check.name} passed")
            else:
                self.report_progress(options, f"Sanity check {check.name} failed: {run.error_message}")

        if passed < options.sanity_check_level:
            self.halt(
                options,
                f"Sanity checks failed, {passed} of {len(checks)} passed "
                f"but {options.sanity_check_level} are required",
            )
        self.report_progress(options, "Sanity checks passed")

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def report_options(self, options: "Options") -> None:
        lines = [
            f"Runner = {type(self).__name__}",
            f"Operation Mix Size = {options.mix.size}",
            f"Timeout = {options.timeout} seconds" if options.timeout > 0 else "Timeout = disabled",
            f"Max Delay between Operations = {options.max_delay} milliseconds",
            f"Parallel Clients = {options.parallel_threads}",
            f"Random Operation Order = {'On' if options.randomize_order else 'Off'}",
            f"Halt on Timeout = {options.halt_on_timeout}",
            f"Halt on Error = {options.halt_on_error}",
            f"Halt Any = {options.halt_any}",
            f"Halting Behaviour = {options.halt_behaviour.value}",
        ]
        for line in lines:
            self.report_progress(options, line)
        self.report_progress(options)

    def report_categorized_errors(
        self, options: "Options", errors: dict[ErrorCategory, list["OperationRun"]]
    ) -> None:
        if not errors:
            return
        self.report_progress(options, "Errors by Category:")
        for category in sorted(errors):
            self.report_progress(options, f"  {category.description}: {len(errors[category])}")

    def _report_runtime_stats(self, options: "Options", stats: RunStatistics) -> None:
        self.report_progress(options, f"Total Errors: {stats.total_errors}")
        self.report_categorized_errors(options, stats.categorized_errors)
        self.report_progress(options, f"Total Runtime: {format_seconds(stats.total_runtime)}")
        self.report_progress(options, f"Average Runtime: {format_seconds(stats.average_runtime)}")
        self.report_progress(
            options, f"Geometric Average Runtime: {format_seconds(stats.geometric_average_runtime)}"
        )
        self.report_progress(options, f"Minimum Runtime: {format_seconds(stats.minimum_runtime)}")
        self.report_progress(options, f"Maximum Runtime: {format_seconds(stats.maximum_runtime)}")
        self.report_progress(options, f"Standard Deviation: {format_seconds(stats.standard_deviation)}")
        if options.parallel_threads > 1:
            self.report_progress(
                options, f"Actual Runtime: {format_seconds(stats.actual_runtime)}"
            )

    def report_operation_summary(self, options: "Options", operation: "Operation") -> None:
        stats = operation.stats
        self.report_progress(options, f"{operation.type} Summary")
        self.report_progress(options, "-" * (len(operation.type) + 8))
        self.report_progress(options, f"Name: {operation.name}")
        self.report_progress(options, f"Total Runs: {stats.run_count}")
        self.report_progress(options, f"Total Results: {stats.total_results}")
        self._report_runtime_stats(options, stats)
        self.report_progress(options, f"Operations per Second: {stats.operations_per_second:.2f}")
        self.report_progress(options, f"Operations per Hour: {stats.operations_per_hour:.2f}")
        if options.parallel_threads > 1:
            self.report_progress(
                options, f"Actual Operations per Second: {stats.actual_operations_per_second:.2f}"
            )
        self.report_progress(options)

    def report_mix_summary(self, options: "Options", mix: "OperationMix") -> None:
        stats = mix.stats
        self.report_progress(options, "Operation Mix Summary")
        self.report_progress(options, "---------------------")
        self.report_progress(options, f"Total Mix Runs: {stats.run_count}")
        self.report_progress(options, f"Total Operations Run: {stats.total_operations}")
        self._report_runtime_stats(options, stats)
        if stats.run_count > 0:
            fastest = stats.minimum_operation_runtime_id
            slowest = stats.maximum_operation_runtime_id
            self.report_progress(
                options,
                f"Fastest Operation: {fastest} ({format_seconds(stats.minimum_operation_runtime)})",
            )
            self.report_progress(
                options,
                f"Slowest Operation: {slowest} ({format_seconds(stats.maximum_operation_runtime)})",
            )
        self.report_progress(options, f"Operation Mixes per Hour: {stats.operation_mixes_per_hour:.2f}")
        if options.parallel_threads > 1:
            self.report_progress(
                options,
                f"Actual Operation Mixes per Hour: {stats.actual_operation_mixes_per_hour:.2f}",
            )
        self.report_progress(options)
