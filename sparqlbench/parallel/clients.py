"""
Parallel client management.

A client manager runs several simulated clients concurrently, each
repeatedly performing passes over the shared operation mix, and decides
when the clients should stop. Clients share one options instance and
therefore one global order counter and one set of statistics.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

from sparqlbench.core.exceptions import BenchmarkHaltedError
from sparqlbench.core.timing import format_seconds, nanos_to_seconds, now_nanos
from sparqlbench.observability.logging import LogContext

if TYPE_CHECKING:
    from sparqlbench.config.options import BenchmarkOptions, Options, SoakOptions, StressOptions
    from sparqlbench.runners.base import Runner

logger = structlog.get_logger(__name__)

SECONDS_PER_MINUTE = 60


class ParallelClientManager(ABC):
    """Coordinates a cohort of parallel clients."""

    def __init__(self, runner: "Runner", options: "Options"):
        self.runner = runner
        self.options = options
        self._ready = asyncio.Event()
        self._halted = False
        self.started = 0
        self.completed = 0
        self.started_at: int | None = None

    @abstractmethod
    def should_run(self) -> bool:
        """Whether clients should start another mix run."""

    def start_run(self) -> int:
        """Claim a new mix run, returning its number or 0 if none is available."""
        if not self.should_run():
            return 0
        self.started += 1
        return self.started

    def complete_run(self) -> int:
        """Record a completed mix run, returning the number completed so far."""
        self.completed += 1
        return self.completed

    def halt(self) -> None:
        self._halted = True

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def wait_until_ready(self) -> None:
        await self._ready.wait()

    @property
    def elapsed_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return nanos_to_seconds(now_nanos() - self.started_at)

    async def run(self) -> None:
        """Run ``options.parallel_threads`` clients until they are done."""
        self.started_at = now_nanos()
        clients = [ParallelClient(self, id) for id in range(1, self.options.parallel_threads + 1)]
        await self.run_clients(clients)

    async def run_clients(self, clients: list["ParallelClient"]) -> None:
        """
        Run clients concurrently and wait for all of them.

        If any client fails the others are cancelled and the first
        failure is re-raised.
        """
        tasks = [asyncio.create_task(client.run(), name=f"client-{client.id}") for client in clients]
        self._ready.set()
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()


class ParallelClient:
    """
    A simulated client.

    Loops over mix runs while its manager allows, optionally limited to
    ``max_runs`` passes.
    """

    def __init__(self, manager: ParallelClientManager, id: int, max_runs: int | None = None):
        self.manager = manager
        self.id = id
        self.max_runs = max_runs
        self.runs = 0

    async def run(self) -> None:
        await self.manager.wait_until_ready()

        runner = self.manager.runner
        options = self.manager.options
        mix_runner = runner.get_mix_runner(options)

        with LogContext(client_id=self.id):
            while self.max_runs is None or self.runs < self.max_runs:
                if self.manager.start_run() == 0:
                    break
                self.runs += 1
                try:
                    mix_run = await mix_runner.run(runner, options, options.mix, client_id=self.id)
                    completed = self.manager.complete_run()
                    runner.report_progress(
                        options,
                        f"Operation Mix Run {completed} by Client {self.id} completed in "
                        f"{format_seconds(mix_run.total_runtime)}",
                    )
                except (BenchmarkHaltedError, asyncio.CancelledError):
                    raise
                except Exception as e:
                    logger.error("Client failed to run operation mix", error=str(e), exc_info=True)
                    runner.report_progress(options, f"Error in Client {self.id}: {e}")
                    if options.halt_on_error or options.halt_any:
                        self.manager.halt()
                        runner.halt(options, f"Client {self.id} encountered an error: {e}")


class BenchmarkClientManager(ParallelClientManager):
    """Shares exactly ``options.runs`` mix runs among the clients."""

    options: "BenchmarkOptions"

    def should_run(self) -> bool:
        return not self.halted and self.started < self.options.runs


class SoakClientManager(ParallelClientManager):
    """Keeps clients running until the run limit or runtime limit is reached."""

    options: "SoakOptions"

    def runtime_exceeded(self) -> bool:
        max_runtime = self.options.max_runtime
        return max_runtime > 0 and self.elapsed_seconds >= max_runtime * SECONDS_PER_MINUTE

    def should_run(self) -> bool:
        if self.halted or self.runtime_exceeded():
            return False
        return self.options.max_runs <= 0 or self.started < self.options.max_runs


class StressClientManager(ParallelClientManager):
    """
    Ramps up the number of clients.

    Each round every client performs one mix run. After a round the
    client count is multiplied by ``ramp_up_factor``, capped at
    ``max_threads`` (no cap when <= 0). Stops after the round that
    reached the cap or once the maximum runtime has elapsed.
    """

    options: "StressOptions"

    def __init__(self, runner: "Runner", options: "StressOptions"):
        super().__init__(runner, options)
        self.max_clients_reached = 0
        self.rounds = 0

    def runtime_exceeded(self) -> bool:
        return self.elapsed_seconds >= self.options.max_runtime * SECONDS_PER_MINUTE

    def should_run(self) -> bool:
        return not self.halted and not self.runtime_exceeded()

    async def run(self) -> None:
        self.started_at = now_nanos()
        max_threads = self.options.max_threads
        current = self.options.parallel_threads

        while self.should_run():
            count = current if max_threads <= 0 else min(current, max_threads)
            self.rounds += 1
            self.max_clients_reached = max(self.max_clients_reached, count)
            self.runner.report_progress(
                self.options, f"Stress testing round {self.rounds} with {count} parallel clients"
            )
            logger.info("Starting stress round", round=self.rounds, clients=count)

            await self.run_clients([ParallelClient(self, id, max_runs=1) for id in range(1, count + 1)])

            if max_threads > 0 and count >= max_threads:
                break
            current = count * self.options.ramp_up_factor
