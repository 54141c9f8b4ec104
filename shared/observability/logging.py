"""Logging setup for causal search processes."""

import logging
import sys

from shared.config import CausalSearchConfig, Environment, get_search_config

# Subsample tasks log from joblib worker threads
LOG_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"

QUIET_LOGGERS = ("joblib",)


def resolve_log_level(config: CausalSearchConfig) -> int:
    """Explicit level if set, else DEBUG in development and INFO elsewhere."""
    if config.log_level is not None:
        return logging.getLevelName(config.log_level)
    if config.environment == Environment.DEVELOPMENT:
        return logging.DEBUG
    return logging.INFO


def setup_logging(config: CausalSearchConfig | None = None) -> None:
    """Route all records to stdout at the level the settings ask for."""
    if config is None:
        config = get_search_config()

    level = resolve_log_level(config)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    logging.getLogger("causal_search").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
