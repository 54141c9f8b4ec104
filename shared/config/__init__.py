"""Settings for causal search processes."""

from .base import (
    BaseConfiguration,
    ConfigurationManager,
    Environment,
    config_manager,
)
from .causal_config import SEARCH_CONFIG_NAME, CausalSearchConfig, get_search_config

__all__ = [
    "SEARCH_CONFIG_NAME",
    "BaseConfiguration",
    "CausalSearchConfig",
    "ConfigurationManager",
    "Environment",
    "config_manager",
    "get_search_config",
]
