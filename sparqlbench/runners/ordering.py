"""
Mix order providers.

An order provider decides which operations a single pass over a mix
executes and in which order. All providers skip operations that have
been excluded for the options in use.
"""

import random
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sparqlbench.config.options import Options
    from sparqlbench.operations.base import OperationMix

EXCLUDED_OPERATIONS_KEY = "excluded_operation_ids"


def get_operation_excludes(options: "Options") -> set[int]:
    """
    Exclusion set for the given options.

    Created lazily; repeated calls for the same options return the same
    set object.
    """
    return options.get_custom_setting(EXCLUDED_OPERATIONS_KEY, set)


def exclude_operation(options: "Options", id: int) -> bool:
    """Add an operation to the exclusion set. Returns False if already excluded."""
    excludes = get_operation_excludes(options)
    with options.settings_lock:
        if id in excludes:
            return False
        excludes.add(id)
        return True


def clear_operation_excludes(options: "Options") -> None:
    excludes = get_operation_excludes(options)
    with options.settings_lock:
        excludes.clear()


class MixOrderProvider(ABC):
    """Decides the operation order of a mix run."""

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    @abstractmethod
    def get_operation_order(self, options: "Options", mix: "OperationMix") -> list[int]:
        """Operation ids to execute for one pass over the mix."""

    def report_operation_order(self, options: "Options") -> bool:
        """Whether the order is worth reporting to listeners."""
        return True

    def get_operation_excludes(self, options: "Options") -> set[int]:
        return get_operation_excludes(options)

    def _candidates(self, options: "Options", mix: "OperationMix") -> list[int]:
        excludes = self.get_operation_excludes(options)
        with options.settings_lock:
            return [id for id in range(mix.size) if id not in excludes]


class DefaultOrderProvider(MixOrderProvider):
    """Random permutation or sequential order, per ``options.randomize_order``."""

    def get_operation_order(self, options: "Options", mix: "OperationMix") -> list[int]:
        order = self._candidates(options, mix)
        if options.randomize_order:
            self.rng.shuffle(order)
        return order

    def report_operation_order(self, options: "Options") -> bool:
        return options.randomize_order


class InOrderProvider(MixOrderProvider):
    """Always runs operations in mix order."""

    def get_operation_order(self, options: "Options", mix: "OperationMix") -> list[int]:
        return self._candidates(options, mix)

    def report_operation_order(self, options: "Options") -> bool:
        return False


class SamplingOrderProvider(MixOrderProvider):
    """
    Runs a sample of the mix on each pass.

    The sample size and repeat policy default to the options' values when
    not given explicitly. A sample size <= 0 means the mix size. Without
    repeats the sample is capped at the number of eligible operations.
    When randomization is off the sample walks the mix in order, wrapping
    around if repeats are allowed.
    """

    def __init__(
        self,
        sample_size: int | None = None,
        allow_repeats: bool | None = None,
        rng: random.Random | None = None,
    ):
        super().__init__(rng)
        self.sample_size = sample_size
        self.allow_repeats = allow_repeats

    def _effective_size(self, options: "Options", mix: "OperationMix") -> int:
        size = self.sample_size if self.sample_size is not None else options.sample_size
        return size if size > 0 else mix.size

    def _repeats(self, options: "Options") -> bool:
        return self.allow_repeats if self.allow_repeats is not None else options.sample_repeats

    def get_operation_order(self, options: "Options", mix: "OperationMix") -> list[int]:
        pool = self._candidates(options, mix)
        if not pool:
            return []
        size = self._effective_size(options, mix)
        repeats = self._repeats(options)

        if options.randomize_order:
            if repeats:
                return [self.rng.choice(pool) for _ in range(size)]
            return self.rng.sample(pool, min(size, len(pool)))

        if repeats:
            return [pool[i % len(pool)] for i in range(size)]
        return pool[:size]
