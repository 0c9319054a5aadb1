"""
Stress test runner.

Ramps up the number of parallel clients until the system under test
starts failing, the client limit is reached or time runs out.
"""

import structlog

from sparqlbench.config.options import StressOptions
from sparqlbench.operations.base import OperationMix
from sparqlbench.parallel.clients import StressClientManager
from sparqlbench.runners.base import Runner

logger = structlog.get_logger(__name__)


class StressRunner(Runner):
    """Runs stress tests."""

    def __init__(self) -> None:
        super().__init__()
        self.max_clients_reached = 0

    async def run(self, options: StressOptions) -> OperationMix:
        self._reset()
        self.validate_options(options)
        self.report_started(options)

        mix = options.mix
        self.check_operations(options)
        await self.check_sanity(options)
        self.report_options(options)
        self.report_progress(
            options,
            f"Maximum Parallel Clients = {options.max_threads if options.max_threads > 0 else 'unlimited'}",
        )
        self.report_progress(options, f"Maximum Runtime = {options.max_runtime} minutes")
        self.report_progress(options, f"Ramp Up Factor = {options.ramp_up_factor}")
        self.report_progress(options)

        logger.info(
            "Starting stress test",
            operations=mix.size,
            initial_clients=options.parallel_threads,
            max_clients=options.max_threads,
            ramp_up_factor=options.ramp_up_factor,
        )

        self.get_mix_runner(options)
        mix.clear()
        options.reset_global_order()

        manager = StressClientManager(self, options)
        await manager.run()
        self.max_clients_reached = manager.max_clients_reached

        self.report_progress(options, "Finished stress testing")
        self.report_progress(options, f"Maximum Parallel Clients: {manager.max_clients_reached}")
        self.report_progress(options, f"Ramp Up Rounds: {manager.rounds}")
        self.report_progress(options)

        for operation in mix:
            self.report_operation_summary(options, operation)
        self.report_mix_summary(options, mix)

        self.report_finished(options, ok=True)
        return mix
