"""Shared mutable state of one adjacency search run.

The adjacency map and the table of per-pair maximum p-values are read and
written for every independence test. Both are only reachable through the
methods below, each of which holds the owning lock for its whole update.
``SearchSession`` ties them to the evolving FDR cutoff and is created
afresh for every search.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Iterable, Sequence

from ..core.base import Node, SepsetMap, pair_key
from ..core.stats import fdr_cutoff

__all__ = ["UNSET", "AdjacencyMap", "PMaxTable", "SearchSession"]

logger = logging.getLogger(__name__)

#: Marks a pair whose p-value has not been observed yet.
UNSET = -1.0


class AdjacencyMap:
    """Symmetric map from each variable to its current possible neighbours."""

    def __init__(self, nodes: Sequence[Node], pairs: Iterable[tuple[Node, Node]]) -> None:
        self._nodes = list(nodes)
        self._order = {node: i for i, node in enumerate(self._nodes)}
        self._adjacent: dict[Node, set[Node]] = {node: set() for node in self._nodes}
        self._lock = threading.Lock()

        for x, y in pairs:
            if x is y:
                raise ValueError(f"Self-adjacency requested for {x}")
            self._adjacent[x].add(y)
            self._adjacent[y].add(x)

    def _sorted(self, nodes: Iterable[Node]) -> list[Node]:
        return sorted(nodes, key=self._order.__getitem__)

    def neighbors(self, x: Node) -> list[Node]:
        """Current neighbours of x in variable order."""
        with self._lock:
            return self._sorted(self._adjacent[x])

    def is_adjacent(self, x: Node, y: Node) -> bool:
        with self._lock:
            return y in self._adjacent[x]

    def remove(self, x: Node, y: Node) -> bool:
        """Remove x - y in both directions; False if it was already gone."""
        with self._lock:
            if y not in self._adjacent[x]:
                return False
            self._adjacent[x].discard(y)
            self._adjacent[y].discard(x)
            return True

    def snapshot(self) -> dict[Node, list[Node]]:
        """Copy of the whole map, neighbours in variable order."""
        with self._lock:
            return {node: self._sorted(adj) for node, adj in self._adjacent.items()}

    def adjacent_pairs(self) -> list[tuple[Node, Node]]:
        """Adjacent pairs (x, y) with x before y in variable order."""
        with self._lock:
            return [
                (x, y)
                for x in self._nodes
                for y in self._sorted(self._adjacent[x])
                if self._order[x] < self._order[y]
            ]

    def free_degree(self) -> int:
        """Largest |adj(x) minus y| over all adjacent pairs (x, y)."""
        with self._lock:
            sizes = [len(adj) - 1 for adj in self._adjacent.values() if adj]
        return max(sizes, default=0)

    def is_symmetric(self) -> bool:
        with self._lock:
            return all(
                x in self._adjacent[y]
                for x, adj in self._adjacent.items()
                for y in adj
            )


class PMaxTable:
    """Largest p-value seen so far for each tracked pair.

    Values only ever increase. Pairs start at ``UNSET`` and the table is
    complete once every pair has been observed at least once.
    """

    def __init__(self, pairs: Iterable[tuple[Node, Node]]) -> None:
        self._pairs: list[tuple[Node, Node]] = []
        self._values: dict[frozenset[Node], float] = {}
        for x, y in pairs:
            key = pair_key(x, y)
            if key not in self._values:
                self._pairs.append((x, y))
                self._values[key] = UNSET
        self._n_unset = len(self._values)
        self._lock = threading.Lock()

    def raise_to(self, x: Node, y: Node, p: float) -> bool:
        """Record p for {x, y}; True if it raised the stored maximum."""
        key = pair_key(x, y)
        with self._lock:
            old = self._values[key]
            if not p > old:
                return False
            self._values[key] = p
            if old == UNSET:
                self._n_unset -= 1
            return True

    def get(self, x: Node, y: Node) -> float:
        with self._lock:
            return self._values[pair_key(x, y)]

    def is_complete(self) -> bool:
        with self._lock:
            return self._n_unset == 0

    def values(self) -> list[float]:
        with self._lock:
            return list(self._values.values())

    def items(self) -> list[tuple[tuple[Node, Node], float]]:
        """Pairs in insertion order with their current maxima."""
        with self._lock:
            return [((x, y), self._values[pair_key(x, y)]) for x, y in self._pairs]

    def __contains__(self, pair: tuple[Node, Node]) -> bool:
        x, y = pair
        return pair_key(x, y) in self._values

    def __len__(self) -> int:
        return len(self._values)


class SearchSession:
    """State of one search: adjacencies, p-value maxima, sepsets and cutoff.

    The cutoff starts at +inf and only ever decreases. It is recomputed only
    once every tracked pair has a p-value.
    """

    def __init__(
        self,
        adjacencies: AdjacencyMap,
        p_max: PMaxTable,
        alpha: float,
    ) -> None:
        self.adjacencies = adjacencies
        self.p_max = p_max
        self.alpha = alpha
        self.sepsets = SepsetMap()
        self.cutoff = math.inf
        self.cutoff_history: list[float] = []
        self._lock = threading.Lock()

    def record(
        self, x: Node, y: Node, p: float, conditioning_set: Sequence[Node]
    ) -> list[tuple[Node, Node]]:
        """Apply one test result and return the pairs it caused to be removed."""
        with self._lock:
            if not self.p_max.raise_to(x, y, p):
                return []
            if not self.p_max.is_complete():
                return []

            new_cutoff = fdr_cutoff(self.alpha, self.p_max.values())
            if not new_cutoff < self.cutoff:
                return []

            self.cutoff = new_cutoff
            self.cutoff_history.append(new_cutoff)

            removed = []
            for (a, b), value in self.p_max.items():
                if value > new_cutoff and self.adjacencies.remove(a, b):
                    self.sepsets.set(a, b, conditioning_set)
                    removed.append((a, b))

            if removed:
                logger.debug(
                    "Cutoff lowered to %.3g after %s - %s; removed %d adjacencies",
                    new_cutoff,
                    x,
                    y,
                    len(removed),
                )
            return removed
