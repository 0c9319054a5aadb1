"""
Progress listeners.

Runners notify listeners synchronously as a run progresses. A listener
that raises may halt the run depending on the halting policy in the
options.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

import structlog

if TYPE_CHECKING:
    from sparqlbench.config.options import Options
    from sparqlbench.operations.base import Operation, OperationMix
    from sparqlbench.runners.base import Runner
    from sparqlbench.stats.runs import OperationMixRun, OperationRun

logger = structlog.get_logger(__name__)


class ProgressListener:
    """Receives progress notifications. All handlers default to no-ops."""

    def handle_started(self, runner: "Runner", options: "Options") -> None:
        pass

    def handle_finished(self, runner: "Runner", options: "Options", ok: bool) -> None:
        pass

    def handle_progress(self, runner: "Runner", options: "Options", message: str) -> None:
        pass

    def handle_before_operation(
        self, runner: "Runner", options: "Options", operation: "Operation"
    ) -> None:
        pass

    def handle_after_operation(
        self, runner: "Runner", options: "Options", operation: "Operation", run: "OperationRun"
    ) -> None:
        pass

    def handle_before_operation_mix(
        self, runner: "Runner", options: "Options", mix: "OperationMix"
    ) -> None:
        pass

    def handle_after_operation_mix(
        self, runner: "Runner", options: "Options", mix: "OperationMix", run: "OperationMixRun"
    ) -> None:
        pass


class StreamProgressListener(ProgressListener):
    """Writes progress messages to a text stream."""

    def __init__(self, stream: TextIO | None = None, close_on_finish: bool = False):
        self.stream = stream or sys.stdout
        self.close_on_finish = close_on_finish

    def handle_progress(self, runner: "Runner", options: "Options", message: str) -> None:
        self.stream.write(message)
        self.stream.write("\n")
        self.stream.flush()

    def handle_finished(self, runner: "Runner", options: "Options", ok: bool) -> None:
        self.stream.flush()
        if self.close_on_finish:
            self.stream.close()


class LoggingProgressListener(ProgressListener):
    """Emits progress as structured log events."""

    def __init__(self, name: str = "sparqlbench.progress"):
        self.logger = structlog.get_logger(name)

    def handle_started(self, runner: "Runner", options: "Options") -> None:
        self.logger.info("Run started", runner=type(runner).__name__)

    def handle_finished(self, runner: "Runner", options: "Options", ok: bool) -> None:
        if ok:
            self.logger.info("Run finished", runner=type(runner).__name__)
        else:
            self.logger.error("Run aborted", runner=type(runner).__name__)

    def handle_progress(self, runner: "Runner", options: "Options", message: str) -> None:
        self.logger.info(message)

    def handle_after_operation(
        self, runner: "Runner", options: "Options", operation: "Operation", run: "OperationRun"
    ) -> None:
        self.logger.debug(
            "Operation completed",
            operation_id=operation.id,
            operation=operation.name,
            run_order=run.run_order,
            success=run.success,
            runtime_ns=run.runtime,
            error_category=run.error_category.name,
        )


class JsonSummaryListener(ProgressListener):
    """Writes mix and per-operation statistics to a JSON file when a run succeeds."""

    def __init__(self, output_dir: str | Path = "./benchmark_results", name: str = "sparqlbench"):
        self.output_dir = Path(output_dir)
        self.name = name
        self.path: Path | None = None

    def build_summary(self, runner: "Runner", options: "Options") -> dict[str, Any]:
        mix = options.mix
        summary: dict[str, Any] = {
            "runner": type(runner).__name__,
            "completed_at": datetime.now(timezone.utc).isoformat(),
            "parallel_threads": options.parallel_threads,
            "timeout_seconds": options.timeout,
        }
        if mix is not None:
            summary["mix"] = mix.stats.to_dict()
            summary["operations"] = [
                {
                    "id": operation.id,
                    "name": operation.name,
                    "type": operation.type,
                    "stats": operation.stats.to_dict(),
                }
                for operation in mix
            ]
        return summary

    def handle_finished(self, runner: "Runner", options: "Options", ok: bool) -> None:
        if not ok:
            return
        # Nothing touches the filesystem until the summary has serialized
        content = json.dumps(self.build_summary(runner, options), indent=2)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        path = self.output_dir / f"{self.name}_{timestamp}.json"

        with open(path, "w") as f:
            f.write(content)
        self.path = path

        logger.info("Benchmark summary saved", path=str(self.path))
