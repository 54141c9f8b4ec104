"""Interface for ranking variables by their causal effect on a target."""

from __future__ import annotations

import abc
from collections.abc import Sequence
from dataclasses import dataclass

import pandas as pd

from ..core.base import ConfigurationError

__all__ = ["BaseEffectRanker", "NodeEffects", "FixedOrderRanker"]


@dataclass(frozen=True)
class NodeEffects:
    """Variables ordered by decreasing effect magnitude on a target."""

    names: tuple[str, ...]
    effects: tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.names) != len(self.effects):
            raise ValueError("names and effects must have the same length")

    @classmethod
    def from_pairs(cls, pairs: Sequence[tuple[str, float]]) -> NodeEffects:
        """Sort (name, effect) pairs by decreasing effect; ties keep input order."""
        ordered = sorted(pairs, key=lambda pair: -pair[1])
        return cls(
            names=tuple(name for name, _ in ordered),
            effects=tuple(float(effect) for _, effect in ordered),
        )

    def top(self, q: int) -> tuple[str, ...]:
        return self.names[:q]

    def as_pairs(self) -> list[tuple[str, float]]:
        return list(zip(self.names, self.effects))


class BaseEffectRanker(abc.ABC):
    """Ranks the non-target variables of a sample by effect on the target.

    ``rank`` is called concurrently from several workers, so implementations
    must not keep per-call state on the instance.
    """

    @abc.abstractmethod
    def effects(self, data: pd.DataFrame, target: str) -> NodeEffects:
        """Estimate and order the effects of every other column on ``target``."""
        pass

    def rank(self, data: pd.DataFrame, target: str) -> list[tuple[str, float]]:
        """(name, effect) pairs in decreasing order of effect magnitude."""
        if target not in data.columns:
            raise ConfigurationError(f"Target '{target}' not found in data")
        return self.effects(data, target).as_pairs()


class FixedOrderRanker(BaseEffectRanker):
    """Returns the same ranking for every sample.

    Useful as a reference oracle: variables listed in ``order`` come first,
    any remaining columns follow in column order with effect 0.
    """

    def __init__(self, order: Sequence[str]) -> None:
        self.order = list(order)

    def effects(self, data: pd.DataFrame, target: str) -> NodeEffects:
        columns = [str(c) for c in data.columns if str(c) != target]
        listed = [name for name in self.order if name in columns]
        n = len(listed)
        pairs = [(name, float(n - i)) for i, name in enumerate(listed)]
        pairs += [(name, 0.0) for name in columns if name not in listed]
        return NodeEffects.from_pairs(pairs)
