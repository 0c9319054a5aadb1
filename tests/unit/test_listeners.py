"""
Unit Tests for Progress Listeners.
"""

import io
import json
from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs

from conftest import StubRunner, failing, ok
from sparqlbench.config.options import BenchmarkOptions
from sparqlbench.monitoring.listeners import (
    JsonSummaryListener,
    LoggingProgressListener,
    ProgressListener,
    StreamProgressListener,
)
from sparqlbench.runners.benchmark import BenchmarkRunner


class TestStreamProgressListener:
    """Test writing progress to a stream."""

    def test_writes_lines(self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]) -> None:
        """Test each message is written on its own line."""
        stream = io.StringIO()
        listener = StreamProgressListener(stream)
        options = make_options()

        listener.handle_progress(runner, options, "first")
        listener.handle_progress(runner, options, "")
        listener.handle_progress(runner, options, "second")

        assert stream.getvalue() == "first\n\nsecond\n"

    def test_close_on_finish(self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]) -> None:
        """Test the stream is closed only when requested."""
        kept, closed = io.StringIO(), io.StringIO()

        StreamProgressListener(kept).handle_finished(runner, make_options(), True)
        StreamProgressListener(closed, close_on_finish=True).handle_finished(runner, make_options(), True)

        assert not kept.closed
        assert closed.closed

    @pytest.mark.asyncio
    async def test_benchmark_report(self, make_options: Callable[..., BenchmarkOptions]) -> None:
        """Test a complete benchmark report reaches the stream."""
        stream = io.StringIO()
        options = make_options(ok("a"), runs=3)
        options.add_listener(StreamProgressListener(stream))

        await BenchmarkRunner().run(options)

        output = stream.getvalue()
        assert "Runner = BenchmarkRunner" in output
        assert "Operation Mix Run 3 of 3 completed in" in output
        assert "Total Mix Runs: 3" in output


class TestLoggingProgressListener:
    """Test progress as log events."""

    @pytest.mark.asyncio
    async def test_logs_progress(self, make_options: Callable[..., BenchmarkOptions]) -> None:
        """Test run lifecycle and operations are logged."""
        options = make_options(ok("a"), failing("b"), runs=1)
        options.add_listener(LoggingProgressListener())

        with capture_logs() as logs:
            await BenchmarkRunner().run(options)

        events = [entry["event"] for entry in logs]
        assert "Run started" in events
        assert "Run finished" in events
        operations = [entry for entry in logs if entry["event"] == "Operation completed"]
        assert {entry["operation"] for entry in operations} == {"a", "b"}
        assert any(entry["error_category"] == "EXECUTION" for entry in operations)

    def test_aborted_run_logged_as_error(
        self, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test unsuccessful finishes are errors."""
        with capture_logs() as logs:
            LoggingProgressListener().handle_finished(runner, make_options(), False)

        assert logs[0]["event"] == "Run aborted"
        assert logs[0]["log_level"] == "error"


class TestJsonSummaryListener:
    """Test JSON summaries."""

    @pytest.mark.asyncio
    async def test_writes_summary(self, tmp_path: Path, make_options: Callable[..., BenchmarkOptions]) -> None:
        """Test a successful benchmark writes its statistics."""
        listener = JsonSummaryListener(tmp_path, name="test")
        options = make_options(ok("a", results=2), ok("b"), runs=3)
        options.add_listener(listener)

        await BenchmarkRunner().run(options)

        assert listener.path is not None
        assert listener.path.parent == tmp_path
        assert listener.path.name.startswith("test_")
        summary = json.loads(listener.path.read_text())
        assert summary["runner"] == "BenchmarkRunner"
        assert summary["mix"]["runs"] == 3
        assert summary["mix"]["total_operations"] == 6
        assert [op["name"] for op in summary["operations"]] == ["a", "b"]
        assert summary["operations"][0]["stats"]["total_results"] == 6

    def test_nothing_written_on_failure(
        self, tmp_path: Path, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test halted runs produce no summary."""
        listener = JsonSummaryListener(tmp_path / "out")

        listener.handle_finished(runner, make_options(ok()), False)

        assert listener.path is None
        assert not (tmp_path / "out").exists()

    def test_summary_error_leaves_no_file(
        self, tmp_path: Path, runner: StubRunner, make_options: Callable[..., BenchmarkOptions]
    ) -> None:
        """Test a summary that cannot be built leaves no empty file behind."""
        listener = JsonSummaryListener(tmp_path / "out")

        with patch.object(JsonSummaryListener, "build_summary", side_effect=RuntimeError("broken stats")):
            with pytest.raises(RuntimeError, match="broken stats"):
                listener.handle_finished(runner, make_options(ok()), True)

        assert listener.path is None
        assert not (tmp_path / "out").exists()


def test_base_listener_ignores_everything(runner: StubRunner, make_options: Callable[..., BenchmarkOptions]) -> None:
    """Test the base listener handlers are no-ops."""
    listener = ProgressListener()
    options = make_options(ok())

    listener.handle_started(runner, options)
    listener.handle_progress(runner, options, "message")
    listener.handle_finished(runner, options, True)
