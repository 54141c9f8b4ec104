"""Causal search specific configuration."""

from pydantic import Field, field_validator

from .base import BaseConfiguration, Environment, config_manager


class CausalSearchConfig(BaseConfiguration):
    """Process-wide defaults for causal search runs.

    Every field can be overridden with an environment variable of the same
    name prefixed by ``CAUSAL_SEARCH_``, e.g. ``CAUSAL_SEARCH_DEFAULT_ALPHA``.
    """

    model_config = BaseConfiguration.model_config | {"env_prefix": "CAUSAL_SEARCH_"}

    # Search defaults
    default_alpha: float = Field(
        default=0.05, description="Default significance / FDR level"
    )
    max_depth_cap: int = Field(
        default=1000, ge=0, description="Depth bound used for unlimited adjacency searches"
    )

    # Computation Configuration
    default_n_jobs: int = Field(
        default=4, description="Default worker count for subsample pools"
    )
    enable_parallel_processing: bool = Field(
        default=True, description="Run subsample tasks on a worker pool"
    )

    # Logging Configuration
    log_level: str | None = Field(
        default=None, description="Explicit log level, overrides the environment default"
    )

    # Monitoring Configuration
    enable_metrics: bool = Field(default=False, description="Expose Prometheus metrics")
    metrics_port: int = Field(default=9090, description="Metrics endpoint port")

    @field_validator("default_alpha")
    @classmethod
    def validate_default_alpha(cls, v: float) -> float:
        if not 0 < v < 1:
            raise ValueError("default_alpha must be between 0 and 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str | None) -> str | None:
        if v is None:
            return v
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {sorted(allowed)}")
        return v.upper()

    def validate_configuration(self) -> list[str]:
        """Validate causal search specific configuration."""
        issues = super().validate_configuration()

        if self.environment == Environment.PRODUCTION:
            if self.log_level == "DEBUG":
                issues.append("DEBUG logging is very verbose for production searches")
            if not self.enable_parallel_processing:
                issues.append("Parallel processing should be enabled in production")

        if self.max_depth_cap < 1:
            issues.append("max_depth_cap below 1 limits searches to marginal tests")

        if self.default_n_jobs == 0 or self.default_n_jobs < -1:
            issues.append("default_n_jobs must be -1 or a positive integer")

        return issues


SEARCH_CONFIG_NAME = "causal_search"


def get_search_config() -> CausalSearchConfig:
    """Process-wide search settings, loaded from the environment on first use."""
    return config_manager.get_or_create(SEARCH_CONFIG_NAME, CausalSearchConfig)
