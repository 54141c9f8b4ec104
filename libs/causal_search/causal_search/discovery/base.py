"""Base classes for data-level causal search algorithms.

This module provides the result container and the abstract algorithm class
that validates observational data before handing it to a search engine.
"""

from __future__ import annotations

import abc
import logging
import time
import warnings
from dataclasses import dataclass, field
from typing import Any, Optional

import networkx as nx
import numpy as np
import pandas as pd

from shared.observability.metrics import get_metrics

from ..core.base import CausalSearchError, SearchDataValidationError

__all__ = ["SearchResult", "BaseSearchAlgorithm"]

logger = logging.getLogger(__name__)


@dataclass
class SearchResult:
    """Result of a causal search algorithm.

    Contains the output graph along with the parameters used and
    algorithm-specific diagnostics.
    """

    graph: nx.Graph
    algorithm_name: str
    algorithm_parameters: dict[str, Any] = field(default_factory=dict)
    computation_time: Optional[float] = None
    algorithm_diagnostics: Optional[dict[str, Any]] = None

    @property
    def n_variables(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def n_edges(self) -> int:
        return self.graph.number_of_edges()

    @property
    def summary_stats(self) -> dict[str, Any]:
        """Get summary statistics of the search result."""
        n = self.n_variables
        max_edges = n * (n - 1) / 2
        stats = {
            "algorithm": self.algorithm_name,
            "n_variables": n,
            "n_edges": self.n_edges,
            "edge_density": self.n_edges / max_edges if max_edges > 0 else 0.0,
            "computation_time": self.computation_time,
        }
        if self.algorithm_diagnostics:
            stats.update(self.algorithm_diagnostics)
        return stats


class BaseSearchAlgorithm(abc.ABC):
    """Abstract base class for data-level causal search algorithms.

    Subclasses implement ``_search_implementation``; ``search`` validates
    the data, times the run and records metrics around it.
    """

    algorithm_name = "search"

    def __init__(self, random_state: int | None = None, verbose: bool = False) -> None:
        """Initialize the search algorithm.

        Args:
            random_state: Random seed for reproducible results
            verbose: Whether to log progress at INFO level
        """
        self.random_state = random_state
        self.verbose = verbose
        self.is_fitted = False

        self.variable_names: list[str] | None = None
        self._search_result: SearchResult | None = None

    @abc.abstractmethod
    def _search_implementation(self, data: pd.DataFrame) -> SearchResult:
        """Run the algorithm-specific search on validated data."""
        pass

    def search(self, data: pd.DataFrame) -> SearchResult:
        """Search for causal structure in data.

        Args:
            data: Input data as pandas DataFrame with variables as columns

        Returns:
            SearchResult with the output graph and diagnostics

        Raises:
            SearchDataValidationError: If input data fails validation
            CausalSearchError: If the search itself fails
        """
        self._validate_data(data)

        self.variable_names = [str(c) for c in data.columns]
        self._search_result = None

        metrics = get_metrics()
        start_time = time.perf_counter()

        try:
            result = self._search_implementation(data)
        except CausalSearchError as e:
            metrics.record_search(
                self.algorithm_name, time.perf_counter() - start_time, "failed"
            )
            metrics.record_error(type(e).__name__, self.algorithm_name)
            raise
        except Exception as e:
            metrics.record_search(
                self.algorithm_name, time.perf_counter() - start_time, "failed"
            )
            metrics.record_error(type(e).__name__, self.algorithm_name)
            raise CausalSearchError(
                f"Failed to run {self.__class__.__name__}: {str(e)}"
            ) from e

        metrics.record_search(
            self.algorithm_name, time.perf_counter() - start_time, "success"
        )

        self.is_fitted = True
        self._search_result = result

        logger.log(
            logging.INFO if self.verbose else logging.DEBUG,
            "%s finished: %d edges among %d variables",
            self.__class__.__name__,
            result.n_edges,
            result.n_variables,
        )

        return result

    def _validate_data(self, data: pd.DataFrame) -> None:
        """Validate input data for causal search.

        Args:
            data: Input data to validate

        Raises:
            SearchDataValidationError: If validation fails
        """
        if not isinstance(data, pd.DataFrame):
            raise SearchDataValidationError("Data must be a pandas DataFrame")

        if data.empty:
            raise SearchDataValidationError("Data cannot be empty")

        n_samples, n_variables = data.shape

        if n_variables < 2:
            raise SearchDataValidationError(
                "Need at least 2 variables for causal search"
            )

        if len(set(map(str, data.columns))) != n_variables:
            raise SearchDataValidationError("Variable names must be unique")

        min_samples_basic = 10
        recommended_samples = max(min_samples_basic, n_variables * 5, 30)

        if n_samples < min_samples_basic:
            raise SearchDataValidationError(
                f"Need at least {min_samples_basic} observations for causal search, got {n_samples}"
            )
        elif n_samples < recommended_samples:
            warnings.warn(
                f"Only {n_samples} samples for {n_variables} variables. "
                f"Recommend at least {recommended_samples} samples for reliable results.",
                UserWarning,
            )

        if data.isnull().any().any():
            missing_cols = data.columns[data.isnull().any()].tolist()
            raise SearchDataValidationError(
                f"Missing values not allowed. Found in columns: {missing_cols}"
            )

        non_numeric_cols = data.select_dtypes(exclude=[np.number]).columns
        if len(non_numeric_cols) > 0:
            raise SearchDataValidationError(
                f"Non-numeric columns not supported: {non_numeric_cols.tolist()}"
            )

        if np.isinf(data.to_numpy(dtype=float)).any():
            raise SearchDataValidationError("Infinite values not allowed in data")

        constant_vars = [col for col in data.columns if data[col].nunique() <= 1]
        if constant_vars:
            raise SearchDataValidationError(
                f"Constant variables not allowed: {constant_vars}"
            )
