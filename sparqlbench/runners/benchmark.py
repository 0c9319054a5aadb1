"""
Benchmark runner.

Runs a number of warmup passes followed by a number of measured passes
over the mix, then discards outliers and reports summary statistics.
"""

import structlog

from sparqlbench.config.options import BenchmarkOptions
from sparqlbench.core.timing import format_seconds
from sparqlbench.operations.base import OperationMix
from sparqlbench.parallel.clients import BenchmarkClientManager
from sparqlbench.runners.base import Runner

logger = structlog.get_logger(__name__)


class BenchmarkRunner(Runner):
    """Runs benchmarks."""

    async def run(self, options: BenchmarkOptions) -> OperationMix:
        self._reset()
        self.validate_options(options)
        self.report_started(options)

        mix = options.mix
        self.check_operations(options)
        await self.check_sanity(options)
        self.report_options(options)
        self.report_progress(options, f"Runs = {options.runs}")
        self.report_progress(options, f"Warmups = {options.warmups}")
        self.report_progress(options, f"Outliers = {options.outliers}")
        self.report_progress(options)

        logger.info(
            "Starting benchmark",
            operations=mix.size,
            runs=options.runs,
            warmups=options.warmups,
            parallel_threads=options.parallel_threads,
        )

        mix_runner = self.get_mix_runner(options)
        if options.warmups > 0:
            self.report_progress(options, f"Running {options.warmups} warmup run(s)...")
            for i in range(1, options.warmups + 1):
                self.report_progress(options, f"Warmup Run {i} of {options.warmups}")
                mix_run = await mix_runner.warmup(self, options, mix)
                self.report_progress(
                    options,
                    f"Warmup Run {i} of {options.warmups} completed in {format_seconds(mix_run.total_runtime)}",
                )
            self.report_progress(options, "Finished warmups")
            self.report_progress(options)

        mix.clear()
        options.reset_global_order()

        if options.parallel_threads == 1:
            for i in range(1, options.runs + 1):
                self.report_progress(options, f"Operation Mix Run {i} of {options.runs}")
                mix_run = await mix_runner.run(self, options, mix)
                self.report_progress(
                    options,
                    f"Operation Mix Run {i} of {options.runs} completed in {format_seconds(mix_run.total_runtime)}",
                )
        else:
            self.report_progress(options, f"Starting {options.parallel_threads} parallel clients...")
            await BenchmarkClientManager(self, options).run()
        self.report_progress(options, "Finished benchmarking")
        self.report_progress(options)

        if options.outliers > 0:
            self.report_progress(
                options, f"Discarding {options.outliers} best and worst runs from the results"
            )
            mix.stats.trim(options.outliers)
            for operation in mix:
                operation.stats.trim(options.outliers)

        for operation in mix:
            self.report_operation_summary(options, operation)
        self.report_mix_summary(options, mix)

        logger.info(
            "Benchmark completed",
            runs=mix.stats.run_count,
            errors=mix.stats.total_errors,
            average_runtime=format_seconds(mix.stats.average_runtime),
        )
        self.report_finished(options, ok=True)
        return mix
