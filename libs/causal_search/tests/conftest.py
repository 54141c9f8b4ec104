"""Shared test fixtures for the causal search library.

This module provides scripted independence tests with known answers and
small simulated datasets reused across the engine tests.
"""

from collections.abc import Callable, Sequence

import numpy as np
import pandas as pd
import pytest

from causal_search.core.base import Node
from causal_search.independence.base import BaseIndependenceTest
from shared.config import SEARCH_CONFIG_NAME, CausalSearchConfig, config_manager


class ScriptedIndependenceTest(BaseIndependenceTest):
    """Independence test whose p-values come from a Python function.

    Every query is appended to ``calls`` as (x name, y name, z names).
    """

    def __init__(
        self,
        names: Sequence[str],
        p_value_fn: Callable[[str, str, tuple[str, ...]], float],
        alpha: float = 0.05,
    ) -> None:
        super().__init__([Node(name) for name in names], alpha=alpha)
        self.p_value_fn = p_value_fn
        self.calls: list[tuple[str, str, tuple[str, ...]]] = []

    def _compute_p_value(self, x, y, z):
        call = (x.name, y.name, tuple(v.name for v in z))
        self.calls.append(call)
        return self.p_value_fn(*call)


@pytest.fixture
def scripted_test():
    """Factory for scripted independence tests."""

    def make(names, p_value_fn, alpha=0.05):
        return ScriptedIndependenceTest(names, p_value_fn, alpha=alpha)

    return make


@pytest.fixture
def five_names():
    return ["A", "B", "C", "D", "E"]


@pytest.fixture
def random_state():
    """Provide a consistent random state for reproducible tests."""
    return 42


@pytest.fixture
def fork_data(random_state):
    """X <- Y -> Z with X and Z exactly uncorrelated given Y."""
    rng = np.random.RandomState(random_state)
    n = 500

    y = rng.normal(0, 1, n)
    e_x = rng.normal(0, 1, n)
    e_z = rng.normal(0, 1, n)

    # Remove from e_z every component along [1, y, e_x]
    basis = np.column_stack([np.ones(n), y, e_x])
    coef, *_ = np.linalg.lstsq(basis, e_z, rcond=None)
    e_z = e_z - basis @ coef

    return pd.DataFrame(
        {"X": 0.6 * y + e_x, "Y": y, "Z": 0.6 * y + e_z / e_z.std()}
    )


@pytest.fixture
def target_data(random_state):
    """Y driven strongly by A, weakly by B; C and D are noise."""
    rng = np.random.RandomState(random_state)
    n = 400

    a = rng.normal(0, 1, n)
    b = rng.normal(0, 1, n)
    c = rng.normal(0, 1, n)
    d = rng.normal(0, 1, n)
    y = 2.0 * a + 0.3 * b + rng.normal(0, 0.5, n)

    return pd.DataFrame({"Y": y, "A": a, "B": b, "C": c, "D": d})


@pytest.fixture
def noise_frame(random_state):
    """Six independent standard normal columns with Y first."""
    rng = np.random.RandomState(random_state)
    return pd.DataFrame(
        rng.normal(0, 1, (200, 6)), columns=["Y", "A", "B", "C", "D", "E"]
    )


@pytest.fixture
def search_settings():
    """Install process-wide search settings for one test.

    Call with CausalSearchConfig fields; the previous settings come back
    afterwards.
    """
    previous = config_manager.unregister_configuration(SEARCH_CONFIG_NAME)

    def install(**values):
        config = CausalSearchConfig(_env_file=None, **values)
        config_manager.register_configuration(SEARCH_CONFIG_NAME, config)
        return config

    yield install

    config_manager.unregister_configuration(SEARCH_CONFIG_NAME)
    if previous is not None:
        config_manager.register_configuration(SEARCH_CONFIG_NAME, previous)
