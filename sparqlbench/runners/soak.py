"""
Soak test runner.

Repeats the mix for a number of runs and/or a maximum runtime to check
how a system behaves under sustained load.
"""

import structlog

from sparqlbench.config.options import SoakOptions
from sparqlbench.core.timing import format_seconds, nanos_to_seconds, now_nanos
from sparqlbench.operations.base import OperationMix
from sparqlbench.parallel.clients import SECONDS_PER_MINUTE, SoakClientManager
from sparqlbench.runners.base import Runner

logger = structlog.get_logger(__name__)


class SoakRunner(Runner):
    """Runs soak tests."""

    async def run(self, options: SoakOptions) -> OperationMix:
        self._reset()
        self.validate_options(options)
        self.report_started(options)

        mix = options.mix
        self.check_operations(options)
        await self.check_sanity(options)
        self.report_options(options)
        self.report_progress(
            options, f"Maximum Runs = {options.max_runs if options.max_runs > 0 else 'unlimited'}"
        )
        self.report_progress(
            options,
            f"Maximum Runtime = {options.max_runtime} minutes" if options.max_runtime > 0
            else "Maximum Runtime = unlimited",
        )
        self.report_progress(options)

        logger.info(
            "Starting soak test",
            operations=mix.size,
            max_runs=options.max_runs,
            max_runtime_minutes=options.max_runtime,
            parallel_threads=options.parallel_threads,
        )

        mix_runner = self.get_mix_runner(options)
        mix.clear()
        options.reset_global_order()
        started = now_nanos()

        if options.parallel_threads == 1:
            runs = 0
            while self._should_continue(options, runs, started):
                runs += 1
                self.report_progress(options, f"Soak Test Run {runs}")
                mix_run = await mix_runner.run(self, options, mix)
                self.report_progress(
                    options, f"Soak Test Run {runs} completed in {format_seconds(mix_run.total_runtime)}"
                )
        else:
            self.report_progress(options, f"Starting {options.parallel_threads} parallel clients...")
            await SoakClientManager(self, options).run()

        self.report_progress(options, "Finished soak testing")
        self.report_progress(options, f"Number of Runs: {mix.stats.run_count}")
        self.report_progress(options, f"Total Soak Time: {format_seconds(now_nanos() - started)}")
        self.report_progress(options)

        for operation in mix:
            self.report_operation_summary(options, operation)
        self.report_mix_summary(options, mix)

        self.report_finished(options, ok=True)
        return mix

    @staticmethod
    def _should_continue(options: SoakOptions, runs: int, started: int) -> bool:
        if options.max_runs > 0 and runs >= options.max_runs:
            return False
        if options.max_runtime > 0:
            elapsed = nanos_to_seconds(now_nanos() - started)
            if elapsed >= options.max_runtime * SECONDS_PER_MINUTE:
                return False
        return True
