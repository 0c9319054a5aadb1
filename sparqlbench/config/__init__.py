"""
Configuration: environment driven settings and run options.
"""

from sparqlbench.config.options import BenchmarkOptions, Options, SoakOptions, StressOptions
from sparqlbench.config.settings import (
    HttpSettings,
    ObservabilitySettings,
    RunnerSettings,
    Settings,
    get_settings,
)

__all__ = [
    "Options",
    "BenchmarkOptions",
    "SoakOptions",
    "StressOptions",
    "Settings",
    "RunnerSettings",
    "HttpSettings",
    "ObservabilitySettings",
    "get_settings",
]
