"""Configuration models for the adjacency search and stability selection."""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from shared.config import get_search_config

from .base import ConfigurationError

__all__ = ["MAX_DEPTH", "FasConfig", "CStarConfig", "build_config"]

#: Default bound for searches configured with depth -1 ("unlimited").
#: Overridden process-wide by CAUSAL_SEARCH_MAX_DEPTH_CAP.
MAX_DEPTH = 1000


def _default_backend() -> str:
    if get_search_config().enable_parallel_processing:
        return "threading"
    return "sequential"


class FasConfig(BaseModel):
    """Configuration for the fast adjacency search.

    Attributes:
        alpha: FDR level used when computing the removal cutoff
        depth: Maximum conditioning set size, -1 for unlimited
        max_depth_cap: Bound applied when depth is -1
        verbose: Log per-depth progress at INFO level
    """

    alpha: float = Field(
        default_factory=lambda: get_search_config().default_alpha,
        gt=0.0,
        lt=1.0,
        validate_default=True,
        description="FDR level for the removal cutoff",
    )

    depth: int = Field(
        default=-1,
        ge=-1,
        description="Maximum conditioning set size (-1 means unlimited)",
    )

    max_depth_cap: int = Field(
        default_factory=lambda: get_search_config().max_depth_cap,
        ge=0,
        validate_default=True,
        description="Depth bound used when depth is -1",
    )

    verbose: bool = Field(default=False, description="Log search progress")

    @property
    def effective_depth(self) -> int:
        """Depth bound actually used by the search loop."""
        return self.max_depth_cap if self.depth == -1 else self.depth


class CStarConfig(BaseModel):
    """Configuration for CStar stability selection.

    Attributes:
        target_name: Variable whose causes are being selected
        num_subsamples: Number of subsamples drawn
        percent_subsample_size: Fraction of rows in each subsample
        top_q: Number of top-ranked variables counted per subsample
        pi_threshold: Minimum selection frequency for the output graph
        n_jobs: Worker count for the subsample pool (-1 uses all cores)
        parallel_backend: joblib backend running the subsample tasks
        random_state: Base seed; subsample i uses ``random_state + i``
        verbose: Log per-subsample progress at INFO level
    """

    target_name: str = Field(..., min_length=1, description="Target variable name")

    num_subsamples: int = Field(
        default=100, ge=1, description="Number of subsamples"
    )

    percent_subsample_size: float = Field(
        default=0.5,
        gt=0.0,
        le=1.0,
        description="Fraction of rows drawn (without replacement) per subsample",
    )

    top_q: int = Field(
        default=1, ge=1, description="Top-ranked variables counted per subsample"
    )

    pi_threshold: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Selection frequency threshold",
    )

    n_jobs: int = Field(
        default_factory=lambda: get_search_config().default_n_jobs,
        validate_default=True,
        description="Number of parallel workers",
    )

    parallel_backend: Literal["threading", "sequential"] = Field(
        default_factory=_default_backend,
        validate_default=True,
        description="joblib backend",
    )

    random_state: Union[int, None] = Field(
        default=None, ge=0, description="Base random seed"
    )

    verbose: bool = Field(default=False, description="Log subsample progress")

    @field_validator("n_jobs")
    @classmethod
    def validate_n_jobs(cls, v: int) -> int:
        """Validate that n_jobs is -1 or a positive worker count."""
        if v == 0 or v < -1:
            raise ValueError("n_jobs must be -1 or a positive integer")
        return v


def build_config(model: type[BaseModel], **values: object) -> BaseModel:
    """Instantiate a config model, reporting bad values as ConfigurationError."""
    try:
        return model(**values)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {model.__name__} parameters: {e.errors()[0]['msg']} "
            f"({e.errors()[0]['loc']})"
        ) from e
