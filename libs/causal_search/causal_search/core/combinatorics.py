"""Enumeration of candidate conditioning sets."""

from __future__ import annotations

import itertools
import math
from collections.abc import Iterator, Sequence
from typing import TypeVar

__all__ = ["conditioning_sets", "count_conditioning_sets"]

T = TypeVar("T")


def conditioning_sets(candidates: Sequence[T], size: int) -> Iterator[tuple[T, ...]]:
    """Yield every subset of ``candidates`` with ``size`` members.

    Subsets come out in lexicographic order of candidate positions, e.g. for
    four candidates and size 2: (0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3).
    Size 0 yields a single empty tuple.

    Args:
        candidates: Ordered candidate variables
        size: Number of variables per conditioning set

    Raises:
        ValueError: If size is negative
    """
    if size < 0:
        raise ValueError(f"Conditioning set size must be non-negative, got {size}")

    return itertools.combinations(tuple(candidates), size)


def count_conditioning_sets(n_candidates: int, size: int) -> int:
    """Number of subsets ``conditioning_sets`` yields for these arguments."""
    if size < 0 or n_candidates < 0:
        raise ValueError("Counts must be non-negative")
    return math.comb(n_candidates, size)
