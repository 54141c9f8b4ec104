"""Base interface for conditional independence tests.

A test is bound to one dataset. ``is_independent`` answers a single query and
remembers its p-value, which the adjacency search reads back through
``p_value``. Instances are therefore not safe to share between threads.
"""

from __future__ import annotations

import abc
from collections.abc import Sequence
from dataclasses import dataclass

from ..core.base import ConfigurationError, Node

__all__ = ["BaseIndependenceTest", "CITestOutcome", "run_ci_test"]


class BaseIndependenceTest(abc.ABC):
    """Abstract base class for conditional independence tests."""

    def __init__(self, variables: Sequence[Node], alpha: float = 0.05) -> None:
        """Initialize the test.

        Args:
            variables: Variables the test can be queried about
            alpha: Significance level; p-values above it mean independence
        """
        if not 0 < alpha < 1:
            raise ConfigurationError(f"alpha must be between 0 and 1, got {alpha}")

        self.alpha = alpha
        self._variables = list(variables)
        self._by_name = {node.name: node for node in self._variables}
        self._p_value: float | None = None

    @property
    def variables(self) -> list[Node]:
        return list(self._variables)

    @property
    def p_value(self) -> float:
        """P-value of the most recent ``is_independent`` call."""
        if self._p_value is None:
            raise RuntimeError("No independence test has been run yet")
        return self._p_value

    def get_variable(self, name: str) -> Node:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(f"Variable '{name}' not found") from None

    def is_independent(self, x: Node, y: Node, z: Sequence[Node] = ()) -> bool:
        """Test x _||_ y | z and remember the p-value."""
        self._p_value = None
        p_value = float(self._compute_p_value(x, y, tuple(z)))
        self._p_value = p_value
        return p_value > self.alpha

    @abc.abstractmethod
    def _compute_p_value(self, x: Node, y: Node, z: tuple[Node, ...]) -> float:
        """Compute the p-value of the null hypothesis x _||_ y | z."""
        pass


@dataclass(frozen=True)
class CITestOutcome:
    """Result of one independence query: a p-value or the error raised."""

    p_value: float | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def usable(self) -> bool:
        """True for a successful query with a p-value in [0, 1]."""
        return self.ok and self.p_value is not None and 0.0 <= self.p_value <= 1.0

    def p_value_or(self, fallback: float) -> float:
        """The p-value, or ``fallback`` if the query failed or gave no usable value."""
        return self.p_value if self.usable else fallback


def run_ci_test(
    test: BaseIndependenceTest, x: Node, y: Node, z: Sequence[Node]
) -> CITestOutcome:
    """Run one query, capturing a failure instead of raising it."""
    try:
        test.is_independent(x, y, z)
        return CITestOutcome(p_value=test.p_value)
    except Exception as e:
        return CITestOutcome(error=e)
