"""
Smoke test runner.

Runs every operation in the mix once and reports whether they all
succeeded.
"""

import structlog

from sparqlbench.config.options import Options
from sparqlbench.runners.base import Runner
from sparqlbench.runners.mix_runner import InOrderMixRunner

logger = structlog.get_logger(__name__)


class SmokeRunner(Runner):
    """Runs smoke tests. ``run`` returns True if every operation succeeded."""

    async def run(self, options: Options) -> bool:
        self._reset()
        self.validate_options(options)
        self.report_started(options)

        mix = options.mix
        self.check_operations(options)
        await self.check_sanity(options)
        self.report_options(options)

        mix_runner = options.mix_runner or InOrderMixRunner()
        mix.clear()
        options.reset_global_order()
        mix_run = await mix_runner.run(self, options, mix)

        failed = [run for run in mix_run.all_runs if not run.success]
        self.report_progress(options)
        self.report_progress(options, f"Result: {'Pass' if not failed else 'Failure'}")
        if failed:
            self.report_progress(options, f"{len(failed)} operation(s) failed:")
            for run in failed:
                operation = mix[run.id]
                self.report_progress(
                    options,
                    f"  Operation {operation.id} ({operation.name}): "
                    f"{run.error_category.description} - {run.error_message}",
                )
            self.report_categorized_errors(options, mix.stats.categorized_errors)
        self.report_progress(options)

        logger.info("Smoke test completed", passed=not failed, failures=len(failed))
        self.report_finished(options, ok=True)
        return not failed
