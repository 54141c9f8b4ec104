"""Partial correlation (Fisher z) test for continuous data."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd
from scipy import stats

from ..core.base import (
    ConfigurationError,
    Node,
    TestExecutionError,
    variables_from_frame,
)
from .base import BaseIndependenceTest

__all__ = ["FisherZTest", "make_independence_test"]


class FisherZTest(BaseIndependenceTest):
    """Conditional independence via partial correlation and Fisher's z.

    The partial correlation of x and y given z is read off the inverse of
    the correlation submatrix over {x, y} + z. With n rows,
    ``sqrt(n - |z| - 3) * atanh(r)`` is standard normal under independence.
    The ``spearman`` method applies the same test to column ranks.
    """

    def __init__(
        self,
        data: pd.DataFrame,
        alpha: float = 0.05,
        method: str = "pearson",
        variables: Sequence[Node] | None = None,
    ) -> None:
        """Initialize the test.

        Args:
            data: Continuous data with variables as columns
            alpha: Significance level
            method: 'pearson' or 'spearman'
            variables: Nodes to use for the columns (created if omitted)
        """
        if method not in ("pearson", "spearman"):
            raise ConfigurationError(f"Unknown correlation method: {method}")

        if variables is None:
            variables = variables_from_frame(data)
        elif [node.name for node in variables] != [str(c) for c in data.columns]:
            raise ConfigurationError("Variables must match the data columns in order")

        super().__init__(variables, alpha)

        self.method = method
        self.n_samples = len(data)

        values = data.to_numpy(dtype=float)
        if method == "spearman":
            values = np.apply_along_axis(stats.rankdata, 0, values)
        self._correlation = np.corrcoef(values, rowvar=False)
        self._index = {node: i for i, node in enumerate(self._variables)}

    def _compute_p_value(self, x: Node, y: Node, z: tuple[Node, ...]) -> float:
        try:
            indices = [self._index[x], self._index[y]] + [self._index[v] for v in z]
        except KeyError as e:
            raise TestExecutionError(f"Unknown variable {e.args[0]!r}") from e

        df = self.n_samples - len(z) - 3
        if df <= 0:
            raise TestExecutionError(
                f"Too few samples ({self.n_samples}) for a conditioning set of size {len(z)}"
            )

        submatrix = self._correlation[np.ix_(indices, indices)]
        try:
            precision = np.linalg.inv(submatrix)
        except np.linalg.LinAlgError as e:
            raise TestExecutionError(
                f"Singular correlation matrix testing {x} _||_ {y} | {list(z)}"
            ) from e

        denominator = np.sqrt(precision[0, 0] * precision[1, 1])
        if not np.isfinite(denominator) or denominator <= 0:
            raise TestExecutionError(
                f"Degenerate partial correlation for {x} _||_ {y} | {list(z)}"
            )

        r = float(np.clip(-precision[0, 1] / denominator, -0.9999999, 0.9999999))
        z_stat = np.sqrt(df) * np.arctanh(r)
        return float(2 * stats.norm.sf(abs(z_stat)))

    def partial_correlation(self, x: Node, y: Node, z: Sequence[Node] = ()) -> float:
        """Partial correlation of x and y given z."""
        indices = [self._index[x], self._index[y]] + [self._index[v] for v in z]
        precision = np.linalg.inv(self._correlation[np.ix_(indices, indices)])
        return float(-precision[0, 1] / np.sqrt(precision[0, 0] * precision[1, 1]))


def make_independence_test(
    name: str,
    data: pd.DataFrame,
    alpha: float = 0.05,
    variables: Sequence[Node] | None = None,
) -> BaseIndependenceTest:
    """Build an independence test by name ('fisher_z', 'pearson' or 'spearman')."""
    if name in ("fisher_z", "pearson"):
        return FisherZTest(data, alpha=alpha, method="pearson", variables=variables)
    elif name == "spearman":
        return FisherZTest(data, alpha=alpha, method="spearman", variables=variables)
    else:
        raise ConfigurationError(f"Unknown independence test: {name}")
