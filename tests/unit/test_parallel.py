"""
Unit Tests for Parallel Clients.

Tests how client managers share mix runs among concurrent clients,
ramp up client counts and propagate failures.
"""

import asyncio
from collections.abc import Callable

import pytest

from conftest import RecordingListener, StubRunner, failing, hanging, ok
from sparqlbench.config.options import BenchmarkOptions, SoakOptions, StressOptions
from sparqlbench.core.exceptions import BenchmarkHaltedError
from sparqlbench.core.timing import now_nanos, seconds_to_nanos
from sparqlbench.operations.base import OperationMix
from sparqlbench.parallel.clients import (
    BenchmarkClientManager,
    ParallelClient,
    ParallelClientManager,
    SoakClientManager,
    StressClientManager,
)
from sparqlbench.runners.mix_runner import OperationMixRunner, RunPhase
from sparqlbench.stats.runs import OperationMixRun


class ExplodingMixRunner(OperationMixRunner):
    """Mix runner that fails on a chosen pass."""

    def __init__(self, fail_on: int, error: BaseException):
        self.fail_on = fail_on
        self.error = error
        self.passes = 0

    async def run(self, runner, options, mix, phase=RunPhase.RUN, client_id=None) -> OperationMixRun:
        self.passes += 1
        await asyncio.sleep(0.001)
        if self.passes == self.fail_on:
            raise self.error
        return OperationMixRun.from_runs(mix.size, [], options.get_global_order())


class CountingManager(ParallelClientManager):
    """Allows a fixed number of mix runs."""

    def __init__(self, runner, options, limit: int):
        super().__init__(runner, options)
        self.limit = limit

    def should_run(self) -> bool:
        return not self.halted and self.started < self.limit


# =============================================================================
# Benchmark Client Manager Tests
# =============================================================================


class TestBenchmarkClientManager:
    """Test sharing a fixed number of runs among clients."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("threads,runs", [(2, 5), (4, 4), (8, 3)])
    async def test_runs_exactly_n(
        self,
        runner: StubRunner,
        make_options: Callable[..., BenchmarkOptions],
        threads: int,
        runs: int,
    ) -> None:
        """Test that exactly ``runs`` mix runs happen across all clients."""
        options = make_options(ok("a", delay=0.005), ok("b"), parallel_threads=threads, runs=runs)

        manager = BenchmarkClientManager(runner, options)
        await manager.run()

        assert options.mix.stats.run_count == runs
        assert manager.started == runs
        assert manager.completed == runs
        assert all(op.stats.run_count == runs for op in options.mix)

    @pytest.mark.asyncio
    async def test_global_orders_unique(
        self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test run orders are unique across concurrent clients."""
        options = make_options(ok("a", delay=0.001), ok("b", delay=0.001), parallel_threads=4, runs=8)

        await BenchmarkClientManager(runner, options).run()

        orders = [run.run_order for op in options.mix for run in op.stats.samples]
        orders += [run.run_order for run in options.mix.stats.samples]
        assert len(orders) == len(set(orders)) == 24

    @pytest.mark.asyncio
    async def test_completion_reported_per_client(
        self,
        runner: StubRunner,
        listener: RecordingListener,
        make_options: Callable[..., BenchmarkOptions],
    ) -> None:
        """Test clients report completed mix runs with their id."""
        options = make_options(ok("a"), parallel_threads=2, runs=2)

        await BenchmarkClientManager(runner, options).run()

        assert listener.contains("Operation Mix Run 1 by Client")
        assert listener.contains("Operation Mix Run 2 by Client")
        assert listener.contains("[Client 1] Running Operation a...") or listener.contains(
            "[Client 2] Running Operation a..."
        )

    @pytest.mark.asyncio
    async def test_actual_runtime_tracked(
        self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test wall-clock time is below the summed runtime under parallelism."""
        options = make_options(ok("a", delay=0.05), parallel_threads=4, runs=4)

        await BenchmarkClientManager(runner, options).run()

        stats = options.mix[0].stats
        assert stats.actual_runtime > 0
        assert stats.actual_runtime < stats.total_runtime


# =============================================================================
# Failure Propagation Tests
# =============================================================================


class TestFailurePropagation:
    """Test how client failures end a parallel run."""

    @pytest.mark.asyncio
    async def test_halt_propagates_and_cancels_others(
        self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test the first fatal error is re-raised and other clients are cancelled."""
        slow = hanging("slow")
        options = make_options(
            failing("bad"), slow, parallel_threads=3, runs=3, halt_on_error=True, randomize_order=False
        )

        with pytest.raises(BenchmarkHaltedError):
            await BenchmarkClientManager(runner, options).run()

        assert runner.halted
        assert slow.calls == 0

    @pytest.mark.asyncio
    async def test_unexpected_client_error_halts_under_policy(
        self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test that mix runner failures halt when halting on errors."""
        mix_runner = ExplodingMixRunner(fail_on=2, error=RuntimeError("mix exploded"))
        options = make_options(ok("a"), parallel_threads=2, runs=10, halt_on_error=True, mix_runner=mix_runner)
        manager = CountingManager(runner, options, limit=10)

        with pytest.raises(BenchmarkHaltedError, match="mix exploded"):
            await manager.run()

        assert manager.halted

    @pytest.mark.asyncio
    async def test_unexpected_client_error_logged_otherwise(
        self,
        runner: StubRunner,
        listener: RecordingListener,
        make_options: Callable[..., BenchmarkOptions],
    ) -> None:
        """Test clients carry on after a failure when not halting."""
        mix_runner = ExplodingMixRunner(fail_on=2, error=RuntimeError("mix exploded"))
        options = make_options(ok("a"), parallel_threads=2, mix_runner=mix_runner)
        manager = CountingManager(runner, options, limit=5)

        await manager.run()

        assert mix_runner.passes == 5
        assert manager.completed == 4
        assert listener.contains("mix exploded")

    @pytest.mark.asyncio
    async def test_clients_wait_until_ready(
        self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test clients do not start before the manager releases them."""
        options = make_options(ok("a"))
        manager = CountingManager(runner, options, limit=1)
        client = ParallelClient(manager, 1)

        task = asyncio.create_task(client.run())
        await asyncio.sleep(0.01)
        assert client.runs == 0
        assert not manager.is_ready

        other = ParallelClient(manager, 2)
        await manager.run_clients([other])
        await task
        assert manager.is_ready
        assert client.runs + other.runs == 1
        assert manager.completed == 1


# =============================================================================
# Soak and Stress Manager Tests
# =============================================================================


class TestSoakClientManager:
    """Test soak limits."""

    @pytest.mark.asyncio
    async def test_stops_at_max_runs(
        self, runner: StubRunner, listener: RecordingListener
    ) -> None:
        """Test the run limit is shared by all clients."""
        options = SoakOptions(
            mix=OperationMix([ok("a", delay=0.001)]),
            max_runs=7,
            max_runtime=0,
            parallel_threads=3,
            max_delay=0,
            listeners=[listener],
        )

        manager = SoakClientManager(runner, options)
        await manager.run()

        assert options.mix.stats.run_count == 7

    def test_runtime_limit(self, runner: StubRunner) -> None:
        """Test the runtime limit is expressed in minutes."""
        options = SoakOptions(mix=OperationMix([ok()]), max_runtime=1)
        manager = SoakClientManager(runner, options)
        manager.started_at = now_nanos() - seconds_to_nanos(61)
        assert manager.runtime_exceeded()
        assert not manager.should_run()


class TestStressClientManager:
    """Test ramping up clients."""

    @pytest.mark.asyncio
    async def test_ramps_up_to_max_threads(
        self, runner: StubRunner, listener: RecordingListener
    ) -> None:
        """Test rounds of 1, 2 and 4 clients with a cap of 4."""
        options = StressOptions(
            mix=OperationMix([ok("a")]),
            max_threads=4,
            ramp_up_factor=2,
            max_delay=0,
            listeners=[listener],
        )

        manager = StressClientManager(runner, options)
        await manager.run()

        assert manager.rounds == 3
        assert manager.max_clients_reached == 4
        assert options.mix.stats.run_count == 1 + 2 + 4
        assert listener.contains("Stress testing round 3 with 4 parallel clients")

    @pytest.mark.asyncio
    async def test_cap_applied_to_last_round(
        self, runner: StubRunner, listener: RecordingListener
    ) -> None:
        """Test a round never exceeds the cap."""
        options = StressOptions(
            mix=OperationMix([ok("a")]),
            parallel_threads=2,
            max_threads=5,
            ramp_up_factor=3,
            max_delay=0,
            listeners=[listener],
        )

        manager = StressClientManager(runner, options)
        await manager.run()

        assert manager.rounds == 2
        assert manager.max_clients_reached == 5
        assert options.mix.stats.run_count == 2 + 5

    @pytest.mark.asyncio
    async def test_halt_stops_ramp(self, runner: StubRunner, listener: RecordingListener) -> None:
        """Test failures under halt_any end the stress test."""
        options = StressOptions(
            mix=OperationMix([failing("bad")]),
            max_threads=16,
            max_delay=0,
            halt_any=True,
            listeners=[listener],
        )

        manager = StressClientManager(runner, options)
        with pytest.raises(BenchmarkHaltedError):
            await manager.run()

        assert manager.rounds == 1
