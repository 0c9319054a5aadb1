"""
Timing helpers.

All measurements are kept as integer nanoseconds and only converted at
presentation boundaries.
"""

import threading
import time

NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_MILLI = 1_000_000


def now_nanos() -> int:
    """Monotonic clock reading in nanoseconds."""
    return time.perf_counter_ns()


def nanos_to_seconds(nanos: float) -> float:
    return nanos / NANOS_PER_SECOND


def nanos_to_millis(nanos: float) -> float:
    return nanos / NANOS_PER_MILLI


def seconds_to_nanos(seconds: float) -> int:
    return int(seconds * NANOS_PER_SECOND)


def millis_to_nanos(millis: float) -> int:
    return int(millis * NANOS_PER_MILLI)


def format_seconds(nanos: float) -> str:
    """Format a nanosecond duration as seconds for progress messages."""
    return f"{nanos_to_seconds(nanos):.3f}s"


class ParallelTimer:
    """
    Wall-clock timer for overlapping activity.

    Time accrues only while at least one activity is in flight, so the
    elapsed value measures actual elapsed time rather than the sum of
    individual durations when several operations run concurrently.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = 0
        self._started_at = 0
        self._elapsed = 0

    def start(self) -> None:
        with self._lock:
            if self._active == 0:
                self._started_at = now_nanos()
            self._active += 1

    def stop(self) -> None:
        with self._lock:
            if self._active == 0:
                raise RuntimeError("ParallelTimer.stop() called without a matching start()")
            self._active -= 1
            if self._active == 0:
                self._elapsed += now_nanos() - self._started_at

    @property
    def active(self) -> int:
        return self._active

    @property
    def elapsed(self) -> int:
        """Elapsed nanoseconds, including any span still in flight."""
        with self._lock:
            if self._active > 0:
                return self._elapsed + (now_nanos() - self._started_at)
            return self._elapsed

    def reset(self) -> None:
        with self._lock:
            self._active = 0
            self._started_at = 0
            self._elapsed = 0
