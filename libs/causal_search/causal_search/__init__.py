"""Causal structure search from observational data.

Provides an FDR-controlled fast adjacency search for learning the skeleton
of a causal graph and CStar stability selection for the causes of a target.
"""

__version__ = "0.1.0"

from .core import (
    CausalSearchError,
    ConfigurationError,
    CStarConfig,
    FasConfig,
    Knowledge,
    Node,
    SearchDataValidationError,
    SepsetMap,
    TestExecutionError,
)
from .data import BootstrapSampler, generate_linear_sem_data, scale_free_dag
from .discovery import (
    CStar,
    CStarResult,
    FASAlgorithm,
    FasResult,
    FastAdjacencySearch,
    fast_adjacency_search,
)
from .effects import BaseEffectRanker, FixedOrderRanker, IdaEffectRanker
from .independence import BaseIndependenceTest, FisherZTest

__all__ = [
    "__version__",
    "BaseEffectRanker",
    "BaseIndependenceTest",
    "BootstrapSampler",
    "CausalSearchError",
    "ConfigurationError",
    "CStar",
    "CStarConfig",
    "CStarResult",
    "FASAlgorithm",
    "FasConfig",
    "FasResult",
    "FastAdjacencySearch",
    "FisherZTest",
    "FixedOrderRanker",
    "IdaEffectRanker",
    "Knowledge",
    "Node",
    "SearchDataValidationError",
    "SepsetMap",
    "TestExecutionError",
    "fast_adjacency_search",
    "generate_linear_sem_data",
    "scale_free_dag",
]
