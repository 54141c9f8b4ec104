"""Adjacency search and stability selection engines.

This module provides the FDR-controlled fast adjacency search, which prunes
a candidate graph with conditional independence tests, and CStar, which
selects stable causes of a target by subsampling.
"""

from .base import BaseSearchAlgorithm, SearchResult
from .cstar import CStar, CStarResult, SelectionCounter
from .fas import FASAlgorithm, FasResult, FastAdjacencySearch, fast_adjacency_search
from .session import UNSET, AdjacencyMap, PMaxTable, SearchSession

__all__ = [
    "BaseSearchAlgorithm",
    "SearchResult",
    "FASAlgorithm",
    "FasResult",
    "FastAdjacencySearch",
    "fast_adjacency_search",
    "CStar",
    "CStarResult",
    "SelectionCounter",
    "UNSET",
    "AdjacencyMap",
    "PMaxTable",
    "SearchSession",
]
