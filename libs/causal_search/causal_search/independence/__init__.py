"""Conditional independence tests used by the adjacency search."""

from .base import BaseIndependenceTest, CITestOutcome, run_ci_test
from .fisher_z import FisherZTest, make_independence_test

__all__ = [
    "BaseIndependenceTest",
    "CITestOutcome",
    "run_ci_test",
    "FisherZTest",
    "make_independence_test",
]
