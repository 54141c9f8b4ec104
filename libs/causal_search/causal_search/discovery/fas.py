"""Fast adjacency search with a false-discovery-rate removal cutoff.

The search starts from a candidate set of adjacencies and tests each
adjacent pair x - y for conditional independence given subsets of size
d = 0, 1, 2, ... of x's other neighbours. Instead of dropping an edge as
soon as one test exceeds alpha, it keeps, per pair, the largest p-value seen
so far. Once every pair has been tested, a Benjamini-Yekutieli cutoff over
these maxima decides which pairs are removed, and each later rise of a
maximum can lower the cutoff and prune further pairs.

Reference: Li, J., & Wang, Z. J. (2009). Controlling the false discovery
rate of the association/causality structure learned with the PC algorithm.
Journal of Machine Learning Research, 10, 475-514.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import networkx as nx
import pandas as pd

from shared.observability.metrics import get_metrics

from ..core.base import Node, SepsetMap
from ..core.combinatorics import conditioning_sets
from ..core.knowledge import Knowledge, possible_parents
from ..core.search_config import FasConfig, build_config
from ..independence.base import BaseIndependenceTest, CITestOutcome, run_ci_test
from ..independence.fisher_z import make_independence_test
from .base import BaseSearchAlgorithm, SearchResult
from .session import UNSET, AdjacencyMap, PMaxTable, SearchSession

__all__ = ["FasResult", "FastAdjacencySearch", "fast_adjacency_search", "FASAlgorithm"]

logger = logging.getLogger(__name__)


@dataclass
class FasResult(SearchResult):
    """Result of a fast adjacency search.

    ``graph`` is undirected and holds every variable; ``p_max`` maps name
    pairs (in variable order) to the largest p-value observed for them.
    """

    sepsets: SepsetMap = field(default_factory=SepsetMap)
    p_max: dict[tuple[str, str], float] = field(default_factory=dict)
    cutoff_history: list[float] = field(default_factory=list)
    max_depth_reached: int = -1
    n_independence_tests: int = 0
    n_test_failures: int = 0
    cancelled: bool = False

    @property
    def adjacencies(self) -> set[frozenset[str]]:
        """Remaining adjacencies as unordered name pairs."""
        return {frozenset((str(x), str(y))) for x, y in self.graph.edges()}

    @property
    def final_cutoff(self) -> float:
        return self.cutoff_history[-1] if self.cutoff_history else math.inf


class FastAdjacencySearch:
    """Depth-increasing adjacency search over the variables of a CI test."""

    def __init__(
        self,
        test: BaseIndependenceTest,
        knowledge: Knowledge | None = None,
        depth: int = -1,
        initial_graph: nx.Graph | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the search.

        Args:
            test: Independence test over the variables to search
            knowledge: Background knowledge restricting conditioning variables
            depth: Maximum conditioning set size, -1 for unlimited
            initial_graph: If given, only pairs adjacent here are candidates;
                nodes may be Nodes or names and are matched by name
            verbose: Log per-depth progress at INFO level

        Raises:
            ConfigurationError: If depth is below -1
        """
        self.config = build_config(
            FasConfig, alpha=test.alpha, depth=depth, verbose=verbose
        )
        self.test = test
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.initial_graph = initial_graph

        self._n_tests = 0
        self._n_failures = 0
        self._cancel_event: threading.Event | None = None
        self._log_level = logging.INFO if verbose else logging.DEBUG

    @property
    def depth(self) -> int:
        return self.config.depth

    def search(self, cancel_event: threading.Event | None = None) -> FasResult:
        """Run the adjacency search.

        Args:
            cancel_event: When set, the search stops at the next node or
                conditioning set and returns what it has so far

        Returns:
            FasResult with the pruned graph, sepsets and diagnostics
        """
        logger.log(self._log_level, "Starting Fast Adjacency Search.")
        start_time = time.perf_counter()

        self._cancel_event = cancel_event
        self._n_tests = 0
        self._n_failures = 0

        nodes = self.test.variables
        candidates = self._candidate_pairs(nodes)
        adjacencies = AdjacencyMap(nodes, candidates)
        session = SearchSession(adjacencies, PMaxTable(candidates), self.test.alpha)

        max_depth = self.config.effective_depth
        depth_reached = -1

        for d in range(max_depth + 1):
            if self._cancelled():
                break

            if d == 0:
                more = self._search_at_depth0(nodes, session, set(candidates))
            else:
                more = self._search_at_depth(nodes, session, d)
            depth_reached = d

            logger.log(
                self._log_level,
                "Depth %d done: %d adjacencies remain, cutoff %.3g",
                d,
                len(adjacencies.adjacent_pairs()),
                session.cutoff,
            )

            if not more:
                break

        result = self._build_result(nodes, session, depth_reached, start_time)
        logger.log(self._log_level, "Finishing Fast Adjacency Search.")
        return result

    def _candidate_pairs(self, nodes: Sequence[Node]) -> list[tuple[Node, Node]]:
        pairs = [
            (x, y) for i, x in enumerate(nodes) for y in nodes[i + 1 :]
        ]
        if self.initial_graph is None:
            return pairs

        allowed = {
            frozenset((str(u), str(v)))
            for u, v in self.initial_graph.edges()
            if str(u) != str(v)
        }
        return [(x, y) for x, y in pairs if frozenset((x.name, y.name)) in allowed]

    def _cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _search_at_depth0(
        self,
        nodes: Sequence[Node],
        session: SearchSession,
        candidates: set[tuple[Node, Node]],
    ) -> bool:
        empty: tuple[Node, ...] = ()

        for i, x in enumerate(nodes):
            if self._cancelled():
                break

            if (i + 1) % 100 == 0:
                logger.log(self._log_level, "Node # %d", i + 1)

            for y in nodes[i + 1 :]:
                if (x, y) not in candidates:
                    continue
                self._test_and_record(session, x, y, empty)

        return session.adjacencies.free_degree() > 0

    def _search_at_depth(
        self, nodes: Sequence[Node], session: SearchSession, depth: int
    ) -> bool:
        # Neighbourhoods as of the start of this depth
        adjacencies = session.adjacencies.snapshot()

        for count, x in enumerate(nodes, start=1):
            if self._cancelled():
                break

            if count % 100 == 0:
                logger.log(self._log_level, "count %d of %d", count, len(nodes))

            adjx = adjacencies[x]
            for y in adjx:
                others = [z for z in adjx if z is not y]
                ppx = possible_parents(x, others, self.knowledge)

                if len(ppx) < depth:
                    continue

                for conditioning_set in conditioning_sets(ppx, depth):
                    if self._cancelled():
                        break
                    self._test_and_record(session, x, y, conditioning_set)

        return session.adjacencies.free_degree() > depth

    def _test_and_record(
        self,
        session: SearchSession,
        x: Node,
        y: Node,
        conditioning_set: tuple[Node, ...],
    ) -> None:
        outcome = run_ci_test(self.test, x, y, conditioning_set)
        p = self._p_value_of(outcome, x, y, conditioning_set)

        removed = session.record(x, y, p, conditioning_set)
        if removed:
            get_metrics().record_edges_removed(len(removed))
            for a, b in removed:
                logger.debug(
                    "%s _||_ %s | %s p = %.2e",
                    a,
                    b,
                    [str(z) for z in conditioning_set],
                    session.p_max.get(a, b),
                )

    def _p_value_of(
        self,
        outcome: CITestOutcome,
        x: Node,
        y: Node,
        conditioning_set: tuple[Node, ...],
    ) -> float:
        """P-value to record; failed or malformed tests count as p = 0."""
        self._n_tests += 1
        get_metrics().record_independence_test(outcome.usable)
        if not outcome.usable:
            self._n_failures += 1
            reason = outcome.error if not outcome.ok else f"p-value {outcome.p_value!r}"
            logger.debug(
                "Independence test %s _||_ %s | %s failed (%s); treating as dependent",
                x,
                y,
                [str(z) for z in conditioning_set],
                reason,
            )
        return outcome.p_value_or(0.0)

    def _build_result(
        self,
        nodes: Sequence[Node],
        session: SearchSession,
        depth_reached: int,
        start_time: float,
    ) -> FasResult:
        graph = nx.Graph()
        graph.add_nodes_from(nodes)
        graph.add_edges_from(session.adjacencies.adjacent_pairs())

        p_max = {
            (x.name, y.name): value
            for (x, y), value in session.p_max.items()
            if value != UNSET
        }

        cancelled = self._cancelled()
        if cancelled:
            logger.warning(
                "Fast Adjacency Search cancelled after depth %d; result is partial",
                depth_reached,
            )

        return FasResult(
            graph=graph,
            algorithm_name="FAS",
            algorithm_parameters={
                "alpha": self.test.alpha,
                "depth": self.config.depth,
                "knowledge": repr(self.knowledge),
                "initial_graph": self.initial_graph is not None,
            },
            computation_time=time.perf_counter() - start_time,
            algorithm_diagnostics={
                "n_independence_tests": self._n_tests,
                "n_test_failures": self._n_failures,
                "n_removed": len(session.sepsets),
                "final_cutoff": session.cutoff,
            },
            sepsets=session.sepsets,
            p_max=p_max,
            cutoff_history=list(session.cutoff_history),
            max_depth_reached=depth_reached,
            n_independence_tests=self._n_tests,
            n_test_failures=self._n_failures,
            cancelled=cancelled,
        )


def fast_adjacency_search(
    test: BaseIndependenceTest,
    knowledge: Knowledge | None = None,
    depth: int = -1,
    initial_graph: nx.Graph | None = None,
    cancel_event: threading.Event | None = None,
    verbose: bool = False,
) -> FasResult:
    """Run a fast adjacency search in one call."""
    fas = FastAdjacencySearch(
        test,
        knowledge=knowledge,
        depth=depth,
        initial_graph=initial_graph,
        verbose=verbose,
    )
    return fas.search(cancel_event=cancel_event)


class FASAlgorithm(BaseSearchAlgorithm):
    """Fast adjacency search over a DataFrame.

    Builds the named independence test for the data and runs
    :class:`FastAdjacencySearch` on it.
    """

    algorithm_name = "FAS"

    def __init__(
        self,
        independence_test: str = "fisher_z",
        alpha: float | None = None,
        depth: int = -1,
        knowledge: Knowledge | None = None,
        initial_graph: nx.Graph | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the algorithm.

        Args:
            independence_test: Test name ('fisher_z', 'pearson' or 'spearman')
            alpha: Significance level of the test and FDR level of the cutoff;
                defaults to the process-wide ``default_alpha`` setting
            depth: Maximum conditioning set size, -1 for unlimited
            knowledge: Background knowledge
            initial_graph: Optional restriction of the candidate adjacencies
            verbose: Whether to log progress at INFO level
        """
        super().__init__(verbose=verbose)

        values = {"depth": depth, "verbose": verbose}
        if alpha is not None:
            values["alpha"] = alpha
        self.config = build_config(FasConfig, **values)
        self.independence_test = independence_test
        self.knowledge = knowledge
        self.initial_graph = initial_graph
        self.cancel_event = threading.Event()

    def cancel(self) -> None:
        """Ask a running search to stop at its next check point."""
        self.cancel_event.set()

    def _search_implementation(self, data: pd.DataFrame) -> FasResult:
        test = make_independence_test(
            self.independence_test, data, alpha=self.config.alpha
        )
        fas = FastAdjacencySearch(
            test,
            knowledge=self.knowledge,
            depth=self.config.depth,
            initial_graph=self.initial_graph,
            verbose=self.config.verbose,
        )
        try:
            result = fas.search(cancel_event=self.cancel_event)
        finally:
            self.cancel_event.clear()
        result.algorithm_parameters["independence_test"] = self.independence_test
        return result

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "independence_test": self.independence_test,
            "alpha": self.config.alpha,
            "depth": self.config.depth,
        }

    @property
    def result(self) -> Optional[FasResult]:
        return self._search_result  # type: ignore[return-value]
