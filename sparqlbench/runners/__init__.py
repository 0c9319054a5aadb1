"""
Runners: order providers, operation and mix runners, and the test drivers
built on top of them.
"""

from sparqlbench.runners.base import Runner
from sparqlbench.runners.benchmark import BenchmarkRunner
from sparqlbench.runners.mix_runner import (
    DefaultMixRunner,
    InOrderMixRunner,
    IntelligentMixRunner,
    OperationMixRunner,
    RunPhase,
    SamplingMixRunner,
)
from sparqlbench.runners.operation_runner import (
    DefaultOperationRunner,
    OperationRunner,
    RetryingOperationRunner,
)
from sparqlbench.runners.ordering import (
    DefaultOrderProvider,
    InOrderProvider,
    MixOrderProvider,
    SamplingOrderProvider,
    get_operation_excludes,
)
from sparqlbench.runners.smoke import SmokeRunner
from sparqlbench.runners.soak import SoakRunner
from sparqlbench.runners.stress import StressRunner

__all__ = [
    "Runner",
    "BenchmarkRunner",
    "SoakRunner",
    "StressRunner",
    "SmokeRunner",
    "OperationMixRunner",
    "DefaultMixRunner",
    "InOrderMixRunner",
    "SamplingMixRunner",
    "IntelligentMixRunner",
    "RunPhase",
    "OperationRunner",
    "DefaultOperationRunner",
    "RetryingOperationRunner",
    "MixOrderProvider",
    "DefaultOrderProvider",
    "InOrderProvider",
    "SamplingOrderProvider",
    "get_operation_excludes",
]
