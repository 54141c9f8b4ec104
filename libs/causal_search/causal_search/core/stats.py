"""Multiple-testing utilities."""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np

__all__ = ["fdr_cutoff"]


def fdr_cutoff(
    alpha: float,
    p_values: Iterable[float],
    negatively_correlated: bool = True,
    p_sorted: bool = False,
) -> float:
    """False discovery rate cutoff for a collection of p-values.

    With the p-values sorted ascending as p(1) <= ... <= p(m), finds the
    largest k with ``p(k) <= k / (m * c(m)) * alpha`` and returns p(k).
    ``c(m)`` is the harmonic number H(m) when the tests may be negatively
    correlated (Benjamini-Yekutieli), and 1 otherwise (Benjamini-Hochberg).

    Args:
        alpha: Target false discovery rate
        p_values: P-values to threshold
        negatively_correlated: Use the Benjamini-Yekutieli correction
        p_sorted: Whether ``p_values`` is already sorted ascending

    Returns:
        The cutoff p-value, or 0.0 if no p-value qualifies
    """
    if not 0 < alpha < 1:
        raise ValueError(f"alpha must be between 0 and 1, got {alpha}")

    p = np.asarray(list(p_values), dtype=float)
    m = p.size
    if m == 0:
        return 0.0
    if not p_sorted:
        p = np.sort(p)

    ranks = np.arange(1, m + 1, dtype=float)
    c_m = float(np.sum(1.0 / ranks)) if negatively_correlated else 1.0
    thresholds = ranks / (m * c_m) * alpha

    qualifying = np.nonzero(p <= thresholds)[0]
    if qualifying.size == 0:
        return 0.0
    return float(p[qualifying[-1]])
