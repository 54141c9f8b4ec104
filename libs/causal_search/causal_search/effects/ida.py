"""IDA-style lower bounds on causal effects.

For each candidate cause x the target is regressed on x together with every
admissible adjustment set drawn from x's neighbours in an estimated skeleton.
The smallest absolute coefficient of x over those regressions is a
conservative estimate of its effect (Maathuis, Kalisch & Buehlmann, 2009).
"""

from __future__ import annotations

import math

import pandas as pd
from sklearn.linear_model import LinearRegression

from ..core.combinatorics import conditioning_sets
from ..discovery.fas import FastAdjacencySearch
from ..independence.fisher_z import FisherZTest
from .base import BaseEffectRanker, NodeEffects

__all__ = ["IdaEffectRanker"]


class IdaEffectRanker(BaseEffectRanker):
    """Minimum-effect ranking over adjustment sets from a FAS skeleton."""

    def __init__(
        self, alpha: float = 0.05, depth: int = 2, max_adjustment_size: int = 3
    ) -> None:
        """Initialize the ranker.

        Args:
            alpha: Significance/FDR level of the skeleton search
            depth: Maximum conditioning set size of the skeleton search
            max_adjustment_size: Largest adjustment set tried per variable
        """
        if max_adjustment_size < 0:
            raise ValueError("max_adjustment_size must be non-negative")
        self.alpha = alpha
        self.depth = depth
        self.max_adjustment_size = max_adjustment_size

    def effects(self, data: pd.DataFrame, target: str) -> NodeEffects:
        test = FisherZTest(data, alpha=self.alpha)
        skeleton = FastAdjacencySearch(test, depth=self.depth).search().graph

        y = test.get_variable(target)
        order = {node: i for i, node in enumerate(test.variables)}

        pairs = []
        for x in test.variables:
            if x is y:
                continue
            neighbours = sorted(
                (z for z in skeleton.neighbors(x) if z is not y),
                key=order.__getitem__,
            )
            pairs.append((x.name, self._minimum_effect(data, target, x.name, neighbours)))

        return NodeEffects.from_pairs(pairs)

    def _minimum_effect(
        self, data: pd.DataFrame, target: str, cause: str, neighbours: list
    ) -> float:
        minimum = math.inf
        largest = min(len(neighbours), self.max_adjustment_size)

        for size in range(largest + 1):
            for adjustment in conditioning_sets(neighbours, size):
                columns = [cause] + [z.name for z in adjustment]
                model = LinearRegression().fit(data[columns], data[target])
                minimum = min(minimum, abs(float(model.coef_[0])))
                if minimum == 0.0:
                    return 0.0

        return minimum
