"""Base data structures and errors shared by the search engines.

This module provides the variable identity type, the separating-set map
and the exception hierarchy used across adjacency search and stability
selection.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import Any

import pandas as pd

__all__ = [
    "Node",
    "SepsetMap",
    "pair_key",
    "variables_from_frame",
    "CausalSearchError",
    "ConfigurationError",
    "TestExecutionError",
    "SearchDataValidationError",
]


class Node:
    """A named variable.

    Two nodes are equal only if they are the same object, so two datasets
    may both contain an ``X1`` without their variables being confused.
    """

    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise ValueError("Node name must be a non-empty string")
        object.__setattr__(self, "_name", name)

    @property
    def name(self) -> str:
        """Name of the variable."""
        return self._name

    def __setattr__(self, key: str, value: Any) -> None:
        raise AttributeError("Node is immutable")

    def __repr__(self) -> str:
        return f"Node({self._name!r})"

    def __str__(self) -> str:
        return self._name


def variables_from_frame(data: pd.DataFrame) -> list[Node]:
    """Create one Node per column, in column order."""
    return [Node(str(column)) for column in data.columns]


def pair_key(x: Node, y: Node) -> frozenset[Node]:
    """Unordered key for the pair {x, y}."""
    if x is y:
        raise ValueError(f"A pair needs two distinct variables, got {x} twice")
    return frozenset((x, y))


class SepsetMap:
    """Maps unordered variable pairs to the set that separated them."""

    def __init__(self) -> None:
        self._sepsets: dict[frozenset[Node], tuple[Node, ...]] = {}

    def set(self, x: Node, y: Node, conditioning_set: Sequence[Node]) -> None:
        self._sepsets[pair_key(x, y)] = tuple(conditioning_set)

    def get(self, x: Node, y: Node) -> tuple[Node, ...] | None:
        """Separating set for {x, y}, or None if the pair was never separated."""
        return self._sepsets.get(pair_key(x, y))

    def __contains__(self, pair: tuple[Node, Node]) -> bool:
        x, y = pair
        return pair_key(x, y) in self._sepsets

    def __len__(self) -> int:
        return len(self._sepsets)

    def items(self) -> Iterator[tuple[tuple[Node, Node], tuple[Node, ...]]]:
        for key, conditioning_set in self._sepsets.items():
            x, y = sorted(key, key=lambda node: node.name)
            yield (x, y), conditioning_set

    def as_name_dict(self) -> dict[tuple[str, str], list[str]]:
        """Name-keyed copy, convenient for reporting."""
        return {
            (x.name, y.name): [z.name for z in conditioning_set]
            for (x, y), conditioning_set in self.items()
        }


class CausalSearchError(Exception):
    """Base exception for causal search specific errors."""

    pass


class ConfigurationError(CausalSearchError, ValueError):
    """Raised when a search is configured with invalid parameters."""

    pass


class TestExecutionError(CausalSearchError):
    """Raised when an independence test or effect ranking fails."""

    __test__ = False


class SearchDataValidationError(CausalSearchError):
    """Raised when search input data fails validation."""

    pass
