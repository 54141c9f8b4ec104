"""Core data model, knowledge filtering and configuration for causal search."""

from .base import (
    CausalSearchError,
    ConfigurationError,
    Node,
    SearchDataValidationError,
    SepsetMap,
    TestExecutionError,
    pair_key,
    variables_from_frame,
)
from .combinatorics import conditioning_sets, count_conditioning_sets
from .knowledge import Knowledge, possible_parent_of, possible_parents
from .search_config import MAX_DEPTH, CStarConfig, FasConfig, build_config
from .stats import fdr_cutoff

__all__ = [
    "Node",
    "SepsetMap",
    "pair_key",
    "variables_from_frame",
    "CausalSearchError",
    "ConfigurationError",
    "TestExecutionError",
    "SearchDataValidationError",
    "conditioning_sets",
    "count_conditioning_sets",
    "Knowledge",
    "possible_parent_of",
    "possible_parents",
    "MAX_DEPTH",
    "FasConfig",
    "CStarConfig",
    "build_config",
    "fdr_cutoff",
]
