"""
Run options.

Options are the session object passed explicitly through every layer of
the engine. Besides plain configuration they own the shared runtime
state of a run: the global run order counter, the worker pool used for
blocking operations, the listeners and custom settings such as the set
of excluded operations.
"""

import copy as copy_module
import dataclasses
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sparqlbench.config.settings import Settings
from sparqlbench.core.errors import HaltBehaviour
from sparqlbench.core.exceptions import OptionsValidationError

if TYPE_CHECKING:
    from sparqlbench.monitoring.listeners import ProgressListener
    from sparqlbench.operations.base import Operation, OperationMix
    from sparqlbench.operations.remote import Authenticator
    from sparqlbench.runners.mix_runner import OperationMixRunner
    from sparqlbench.runners.operation_runner import OperationRunner


@dataclass
class Options:
    """Options shared by all runners."""

    mix: "OperationMix | None" = None
    mix_runner: "OperationMixRunner | None" = None
    operation_runner: "OperationRunner | None" = None

    timeout: float = 300
    max_delay: int = 1000
    parallel_threads: int = 1
    randomize_order: bool = True
    sample_size: int = 0
    sample_repeats: bool = False

    halt_on_timeout: bool = False
    halt_on_error: bool = False
    halt_any: bool = False
    halt_behaviour: HaltBehaviour = HaltBehaviour.THROW_EXCEPTION

    sanity_check_level: int = 0
    sanity_checks: "list[Operation]" = field(default_factory=list)

    query_endpoint: str | None = None
    update_endpoint: str | None = None
    authenticator: "Authenticator | None" = None

    listeners: "list[ProgressListener]" = field(default_factory=list)
    custom_settings: dict[str, Any] = field(default_factory=dict)
    executor_workers: int = 32

    _global_order: int = field(default=0, init=False, repr=False, compare=False)
    _order_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)
    _settings_lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)
    _executor: ThreadPoolExecutor | None = field(default=None, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "parallel_threads" and value < 1:
            value = 1
        super().__setattr__(name, value)
        if name == "halt_any" and value:
            super().__setattr__("halt_on_error", True)
            super().__setattr__("halt_on_timeout", True)

    # -------------------------------------------------------------------------
    # Shared runtime state
    # -------------------------------------------------------------------------

    def get_global_order(self) -> int:
        """Return the next value of the global run order, starting at 1."""
        with self._order_lock:
            self._global_order += 1
            return self._global_order

    def reset_global_order(self) -> None:
        with self._order_lock:
            self._global_order = 0

    @property
    def executor(self) -> ThreadPoolExecutor:
        """Worker pool for blocking operation work, created on first use."""
        with self._settings_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.executor_workers,
                    thread_name_prefix="sparqlbench",
                )
            return self._executor

    def shutdown(self) -> None:
        """Release the worker pool."""
        with self._settings_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def tighten_timeout(self, seconds: float) -> bool:
        """
        Lower the operation timeout.

        Returns:
            True if the timeout was changed, False if the new value would
            not tighten the current one
        """
        with self._settings_lock:
            if 0 < seconds < self.timeout:
                self.timeout = seconds
                return True
            return False

    @property
    def settings_lock(self) -> threading.RLock:
        """Reentrant lock guarding custom settings. Hold it while mutating a shared setting."""
        return self._settings_lock

    def get_custom_setting(self, key: str, factory: Any = None) -> Any:
        """Get a custom setting, creating it with ``factory`` when missing."""
        with self._settings_lock:
            if key not in self.custom_settings and factory is not None:
                self.custom_settings[key] = factory()
            return self.custom_settings.get(key)

    def add_listener(self, listener: "ProgressListener") -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener: "ProgressListener") -> None:
        self.listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def copy(self) -> "Options":
        """
        Independent snapshot of these options.

        The copy shares the mix, runners, authenticator and worker pool,
        but has its own global order counter (starting from the current
        value), its own listener list and deep copies of custom settings.
        """
        with self._settings_lock:
            custom_settings = copy_module.deepcopy(self.custom_settings)
        clone = dataclasses.replace(
            self,
            listeners=list(self.listeners),
            sanity_checks=list(self.sanity_checks),
            custom_settings=custom_settings,
        )
        with self._order_lock:
            clone._global_order = self._global_order
        clone._executor = self._executor
        return clone

    def validate(self) -> None:
        """Raise OptionsValidationError if the options cannot be run."""
        if self.mix is None:
            raise OptionsValidationError("No operation mix has been set")
        if self.max_delay < 0:
            raise OptionsValidationError("Maximum delay must be >= 0")

    @classmethod
    def _settings_kwargs(cls, settings: Settings) -> dict[str, Any]:
        runner = settings.runner
        http = settings.http
        kwargs: dict[str, Any] = {
            "timeout": runner.timeout,
            "max_delay": runner.max_delay,
            "parallel_threads": runner.parallel_threads,
            "randomize_order": runner.randomize_order,
            "sample_size": runner.sample_size,
            "sample_repeats": runner.sample_repeats,
            "halt_on_timeout": runner.halt_on_timeout,
            "halt_on_error": runner.halt_on_error,
            "halt_any": runner.halt_any,
            "halt_behaviour": HaltBehaviour(runner.halt_behaviour),
            "sanity_check_level": runner.sanity_check_level,
            "executor_workers": runner.executor_workers,
            "query_endpoint": http.query_endpoint,
            "update_endpoint": http.update_endpoint,
        }
        if http.username is not None and http.password is not None:
            from sparqlbench.operations.remote import BasicAuthenticator

            kwargs["authenticator"] = BasicAuthenticator(
                http.username, http.password.get_secret_value()
            )
        return kwargs

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "Options":
        """Build options from application settings."""
        kwargs = cls._settings_kwargs(settings)
        kwargs.update(overrides)
        return cls(**kwargs)


@dataclass
class BenchmarkOptions(Options):
    """Options for benchmark runs."""

    runs: int = 25
    warmups: int = 5
    outliers: int = 1

    def validate(self) -> None:
        super().validate()
        if self.runs < 1:
            raise OptionsValidationError("Number of runs must be >= 1")
        if self.warmups < 0:
            raise OptionsValidationError("Number of warmups must be >= 0")
        if self.outliers < 0:
            raise OptionsValidationError("Number of outliers must be >= 0")
        if self.outliers * 2 >= self.runs:
            raise OptionsValidationError(
                f"Discarding {self.outliers} outliers from each end leaves no results "
                f"from {self.runs} runs"
            )
        if self.timeout <= 0:
            raise OptionsValidationError("Benchmarks require a timeout > 0")

    @classmethod
    def _settings_kwargs(cls, settings: Settings) -> dict[str, Any]:
        kwargs = super()._settings_kwargs(settings)
        kwargs.update(
            runs=settings.runner.runs,
            warmups=settings.runner.warmups,
            outliers=settings.runner.outliers,
        )
        return kwargs


@dataclass
class SoakOptions(Options):
    """Options for soak tests. ``max_runtime`` is in minutes."""

    max_runs: int = 0
    max_runtime: float = 15

    def validate(self) -> None:
        super().validate()
        if self.max_runs <= 0 and self.max_runtime <= 0:
            raise OptionsValidationError("Soak tests require a maximum number of runs or a maximum runtime")

    @classmethod
    def _settings_kwargs(cls, settings: Settings) -> dict[str, Any]:
        kwargs = super()._settings_kwargs(settings)
        kwargs.update(max_runs=settings.runner.max_runs, max_runtime=settings.runner.max_runtime)
        return kwargs


@dataclass
class StressOptions(Options):
    """Options for stress tests. ``max_runtime`` is in minutes."""

    max_threads: int = 1024
    max_runtime: float = 15
    ramp_up_factor: int = 2

    def validate(self) -> None:
        super().validate()
        if self.max_runtime <= 0:
            raise OptionsValidationError("Stress tests require a maximum runtime > 0")
        if self.ramp_up_factor < 2:
            raise OptionsValidationError("Ramp up factor must be >= 2")

    @classmethod
    def _settings_kwargs(cls, settings: Settings) -> dict[str, Any]:
        kwargs = super()._settings_kwargs(settings)
        kwargs.update(
            max_threads=settings.runner.max_threads,
            max_runtime=settings.runner.max_runtime,
            ramp_up_factor=settings.runner.ramp_up_factor,
        )
        return kwargs
