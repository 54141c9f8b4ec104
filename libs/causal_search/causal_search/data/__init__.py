"""Resampling and simulation utilities."""

from .sampling import BootstrapSampler
from .simulation import generate_linear_sem_data, scale_free_dag

__all__ = ["BootstrapSampler", "generate_linear_sem_data", "scale_free_dag"]
