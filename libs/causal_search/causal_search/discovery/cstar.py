"""CStar: causal stability ranking of the causes of a target variable.

Repeatedly subsamples the data, ranks every non-target variable by a lower
bound on its causal effect on the target, and counts how often each lands
in the top q. Variables selected in at least a fraction pi of the
subsamples are reported as causes of the target.

Reference: Stekhoven, D. J., Moraes, I., Sveinbjornsson, G., Hennig, L.,
Maathuis, M. H., & Buehlmann, P. (2012). Causal stability ranking.
Bioinformatics, 28(21), 2819-2823.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

import networkx as nx
import pandas as pd
from joblib import Parallel, delayed

from shared.observability.metrics import get_metrics

from ..core.base import (
    ConfigurationError,
    Node,
    TestExecutionError,
    variables_from_frame,
)
from ..core.search_config import CStarConfig, build_config
from ..data.sampling import BootstrapSampler
from ..effects.base import BaseEffectRanker
from .base import BaseSearchAlgorithm, SearchResult

__all__ = ["CStar", "CStarResult", "SelectionCounter"]

logger = logging.getLogger(__name__)


class SelectionCounter:
    """Per-variable selection counts, safe to increment from many threads."""

    def __init__(self, nodes: Sequence[Node]) -> None:
        self._counts: dict[Node, int] = {node: 0 for node in nodes}
        self._lock = threading.Lock()

    def increment(self, node: Node) -> None:
        with self._lock:
            if node not in self._counts:
                raise KeyError(f"{node} is not a counted variable")
            self._counts[node] += 1

    def get(self, node: Node) -> int:
        with self._lock:
            return self._counts[node]

    def snapshot(self) -> dict[Node, int]:
        with self._lock:
            return dict(self._counts)

    def total(self) -> int:
        with self._lock:
            return sum(self._counts.values())


@dataclass
class CStarResult(SearchResult):
    """Result of a CStar run.

    ``selection_counts`` and ``frequencies`` are ordered by decreasing
    count. ``graph`` is directed, with one edge from each selected variable
    into the target.
    """

    target: str = ""
    num_subsamples: int = 0
    selection_counts: dict[str, int] = field(default_factory=dict)
    frequencies: dict[str, float] = field(default_factory=dict)
    selected: list[str] = field(default_factory=list)

    @property
    def ranking(self) -> list[str]:
        return list(self.frequencies)


class CStar(BaseSearchAlgorithm):
    """Stability selection of the causes of a target variable."""

    algorithm_name = "CStar"

    def __init__(
        self,
        config: CStarConfig | None = None,
        ranker: BaseEffectRanker | None = None,
        sampler_factory: Callable[[Optional[int]], BootstrapSampler] | None = None,
        **overrides: Any,
    ) -> None:
        """Initialize CStar.

        Args:
            config: Full configuration; keyword overrides are applied on top
            ranker: Effect-ranking oracle, IDA-style minimum effects by default
            sampler_factory: Builds a sampler from a per-subsample seed
            **overrides: CStarConfig fields, e.g. ``target_name="Y", top_q=3``

        Raises:
            ConfigurationError: If the parameters are invalid
        """
        if config is None:
            config = build_config(CStarConfig, **overrides)
        elif overrides:
            config = build_config(CStarConfig, **{**config.model_dump(), **overrides})

        super().__init__(random_state=config.random_state, verbose=config.verbose)

        if ranker is None:
            from ..effects.ida import IdaEffectRanker

            ranker = IdaEffectRanker()

        self.config = config
        self.ranker = ranker
        self.sampler_factory = sampler_factory or (
            lambda seed: BootstrapSampler(without_replacement=True, random_state=seed)
        )

    def _search_implementation(self, data: pd.DataFrame) -> CStarResult:
        cfg = self.config
        start_time = time.perf_counter()

        variables = variables_from_frame(data)
        by_name = {node.name: node for node in variables}

        if cfg.target_name not in by_name:
            raise ConfigurationError(f"Target '{cfg.target_name}' not found in data")
        target = by_name[cfg.target_name]
        candidates = [node for node in variables if node is not target]

        if cfg.top_q > len(candidates):
            raise ConfigurationError(
                f"top_q={cfg.top_q} exceeds the {len(candidates)} non-target variables"
            )

        sample_size = int(cfg.percent_subsample_size * len(data))
        if sample_size < 1:
            raise ConfigurationError(
                f"percent_subsample_size={cfg.percent_subsample_size} gives empty "
                f"subsamples for {len(data)} rows"
            )

        counter = SelectionCounter(candidates)
        n_jobs = 1 if cfg.parallel_backend == "sequential" else cfg.n_jobs

        logger.info(
            "Starting CStar: %d subsamples of %d rows, top %d of %d variables",
            cfg.num_subsamples,
            sample_size,
            cfg.top_q,
            len(candidates),
        )

        Parallel(n_jobs=n_jobs, backend=cfg.parallel_backend)(
            delayed(self._run_subsample)(i, data, sample_size, counter, by_name)
            for i in range(cfg.num_subsamples)
        )

        return self._aggregate(target, candidates, counter, start_time)

    def _run_subsample(
        self,
        i: int,
        data: pd.DataFrame,
        sample_size: int,
        counter: SelectionCounter,
        by_name: dict[str, Node],
    ) -> None:
        cfg = self.config
        seed = cfg.random_state + i if cfg.random_state is not None else None
        sample = self.sampler_factory(seed).sample(data, sample_size)

        try:
            ranking = self.ranker.rank(sample, cfg.target_name)
        except Exception as e:
            raise TestExecutionError(
                f"Effect ranking failed on subsample {i + 1}: {e}"
            ) from e

        if len(ranking) < cfg.top_q:
            raise TestExecutionError(
                f"Ranking of subsample {i + 1} has {len(ranking)} entries, "
                f"fewer than top_q={cfg.top_q}"
            )

        for name, _ in ranking[: cfg.top_q]:
            node = by_name.get(name)
            if node is None or name == cfg.target_name:
                raise TestExecutionError(
                    f"Ranking of subsample {i + 1} names unknown variable '{name}'"
                )
            counter.increment(node)

        get_metrics().record_bootstrap_sample()
        logger.log(
            logging.INFO if cfg.verbose else logging.DEBUG,
            "Bootstrap #%d of %d",
            i + 1,
            cfg.num_subsamples,
        )

    def _aggregate(
        self,
        target: Node,
        candidates: list[Node],
        counter: SelectionCounter,
        start_time: float,
    ) -> CStarResult:
        cfg = self.config
        counts = counter.snapshot()

        ordered = sorted(candidates, key=lambda node: -counts[node])
        frequencies = {node.name: counts[node] / cfg.num_subsamples for node in ordered}
        selected = [node for node in ordered if frequencies[node.name] >= cfg.pi_threshold]

        graph = nx.DiGraph()
        graph.add_node(target)
        for node in selected:
            graph.add_edge(node, target)

        logger.info(
            "CStar selected %d of %d variables for %s at pi >= %.2f",
            len(selected),
            len(candidates),
            target,
            cfg.pi_threshold,
        )

        return CStarResult(
            graph=graph,
            algorithm_name="CStar",
            algorithm_parameters=cfg.model_dump(),
            computation_time=time.perf_counter() - start_time,
            algorithm_diagnostics={
                "n_selected": len(selected),
                "sample_size_fraction": cfg.percent_subsample_size,
            },
            target=target.name,
            num_subsamples=cfg.num_subsamples,
            selection_counts={node.name: counts[node] for node in ordered},
            frequencies=frequencies,
            selected=[node.name for node in selected],
        )
