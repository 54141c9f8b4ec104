"""Row resampling for stability selection."""

from __future__ import annotations

import pandas as pd

__all__ = ["BootstrapSampler"]


class BootstrapSampler:
    """Draws row samples from a dataset.

    Args:
        without_replacement: Draw distinct rows (subsampling) instead of a
            classic bootstrap with repeats
        random_state: Seed for the draw; None uses numpy's global state
    """

    def __init__(
        self, without_replacement: bool = True, random_state: int | None = None
    ) -> None:
        self.without_replacement = without_replacement
        self.random_state = random_state

    def sample(self, data: pd.DataFrame, size: int) -> pd.DataFrame:
        """Return ``size`` rows of ``data`` with a fresh 0..size-1 index."""
        if size < 1:
            raise ValueError(f"Sample size must be at least 1, got {size}")
        if self.without_replacement and size > len(data):
            raise ValueError(
                f"Cannot draw {size} rows without replacement from {len(data)}"
            )

        sample = data.sample(
            n=size,
            replace=not self.without_replacement,
            random_state=self.random_state,
        )
        return sample.reset_index(drop=True)
