"""
Application Settings - Pydantic Settings for configuration management.

Supports environment variables and .env file loading.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import BeforeValidator, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


def normalize_to_lowercase(v: str) -> str:
    """Normalize string to lowercase."""
    if isinstance(v, str):
        return v.lower()
    return v


class RunnerSettings(BaseSettings):
    """Defaults for benchmark, soak and stress runs."""

    model_config = SettingsConfigDict(env_prefix="SPARQLBENCH_")

    # Operation execution
    timeout: float = Field(default=300, description="Operation timeout in seconds, <= 0 waits forever")
    max_delay: int = Field(default=1000, ge=0, description="Maximum delay between operations in milliseconds")
    parallel_threads: int = Field(default=1, description="Number of parallel clients")
    randomize_order: bool = Field(default=True, description="Randomize operation order per mix run")
    executor_workers: int = Field(default=32, ge=1, description="Worker threads for blocking operations")

    # Sampling
    sample_size: int = Field(default=0, description="Operations per mix run when sampling, <= 0 uses mix size")
    sample_repeats: bool = Field(default=False, description="Allow an operation to be sampled twice per run")

    # Halting
    halt_on_timeout: bool = Field(default=False, description="Halt when an operation times out")
    halt_on_error: bool = Field(default=False, description="Halt when an operation errors")
    halt_any: bool = Field(default=False, description="Halt on any problem")
    halt_behaviour: Annotated[
        Literal["exit", "throw_exception"],
        BeforeValidator(normalize_to_lowercase),
    ] = Field(default="throw_exception", description="Exit the process or raise when halting")
    sanity_check_level: int = Field(default=0, ge=0, description="Sanity checks that must pass before running")

    # Benchmark
    runs: int = Field(default=25, ge=1, description="Measured mix runs")
    warmups: int = Field(default=5, ge=0, description="Warmup mix runs")
    outliers: int = Field(default=1, ge=0, description="Best and worst runs discarded from each end")

    # Soak and stress
    max_runs: int = Field(default=0, ge=0, description="Soak test run limit, 0 for no limit")
    max_runtime: float = Field(default=15, ge=0, description="Runtime limit in minutes, 0 is unlimited for soak and rejected for stress")
    max_threads: int = Field(default=1024, description="Stress test client limit, <= 0 for no limit")
    ramp_up_factor: int = Field(default=2, ge=2, description="Stress test client multiplier per round")

    # Intelligent mix runner
    failure_threshold: int = Field(default=-1, description="Failures before an operation is excluded, < 0 disables")
    timeout_tuning_factor: float = Field(default=2.0, gt=1.0, description="Multiplier of worst warmup runtime")


class HttpSettings(BaseSettings):
    """Remote SPARQL endpoint settings."""

    model_config = SettingsConfigDict(env_prefix="SPARQLBENCH_HTTP_")

    query_endpoint: str | None = Field(default=None, description="SPARQL query endpoint URL")
    update_endpoint: str | None = Field(default=None, description="SPARQL update endpoint URL")
    username: str | None = Field(default=None, description="Basic authentication username")
    password: SecretStr | None = Field(default=None, description="Basic authentication password")


class ObservabilitySettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="SPARQLBENCH_LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(
        default="console", description="Log format (json for aggregation, console for terminals)"
    )


class Settings(BaseSettings):
    """Main settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="sparqlbench", description="Application name")

    runner: RunnerSettings = Field(default_factory=RunnerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
