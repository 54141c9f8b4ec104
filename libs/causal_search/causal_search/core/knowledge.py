"""Background knowledge about forbidden and required edges.

Knowledge is expressed over variable names so it can be written before any
dataset is loaded. Tiers encode a temporal order: a variable in a later
tier can never cause a variable in an earlier one.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from .base import ConfigurationError

if TYPE_CHECKING:
    from .base import Node

__all__ = ["Knowledge", "possible_parent_of", "possible_parents"]


class Knowledge:
    """Forbidden/required directed edges plus optional temporal tiers."""

    def __init__(self) -> None:
        self._forbidden: set[tuple[str, str]] = set()
        self._required: set[tuple[str, str]] = set()
        self._tiers: dict[str, int] = {}
        self._forbidden_within_tier: set[int] = set()

    def set_forbidden(self, a: str, b: str) -> None:
        """Forbid the edge a -> b."""
        if (a, b) in self._required:
            raise ConfigurationError(f"Edge {a} -> {b} is already required")
        self._forbidden.add((a, b))

    def set_required(self, a: str, b: str) -> None:
        """Require the edge a -> b."""
        if self.is_forbidden(a, b):
            raise ConfigurationError(f"Edge {a} -> {b} is forbidden")
        self._required.add((a, b))

    def remove_forbidden(self, a: str, b: str) -> None:
        self._forbidden.discard((a, b))

    def remove_required(self, a: str, b: str) -> None:
        self._required.discard((a, b))

    def add_to_tier(self, tier: int, name: str) -> None:
        """Place a variable in a temporal tier (0 is earliest)."""
        if tier < 0:
            raise ConfigurationError(f"Tier must be non-negative, got {tier}")
        for a, b in self._required:
            if name in (a, b) and self._tier_forbids(a, b, {**self._tiers, name: tier}):
                raise ConfigurationError(
                    f"Placing {name} in tier {tier} contradicts required edge {a} -> {b}"
                )
        self._tiers[name] = tier

    def set_tier_forbidden_within(self, tier: int, forbidden: bool = True) -> None:
        """Forbid (or allow) edges between variables of the same tier."""
        if forbidden:
            self._forbidden_within_tier.add(tier)
        else:
            self._forbidden_within_tier.discard(tier)

    def tier_of(self, name: str) -> int | None:
        return self._tiers.get(name)

    def is_forbidden(self, a: str, b: str) -> bool:
        """True if background knowledge rules out a -> b."""
        if (a, b) in self._forbidden:
            return True
        return self._tier_forbids(a, b, self._tiers)

    def is_required(self, a: str, b: str) -> bool:
        """True if background knowledge demands a -> b."""
        return (a, b) in self._required

    def is_empty(self) -> bool:
        return not (self._forbidden or self._required or self._tiers)

    def _tier_forbids(self, a: str, b: str, tiers: dict[str, int]) -> bool:
        tier_a = tiers.get(a)
        tier_b = tiers.get(b)
        if tier_a is None or tier_b is None:
            return False
        if tier_a > tier_b:
            return True
        return tier_a == tier_b and tier_a in self._forbidden_within_tier

    def __repr__(self) -> str:
        return (
            f"Knowledge(forbidden={len(self._forbidden)}, "
            f"required={len(self._required)}, tiers={len(set(self._tiers.values()))})"
        )


def possible_parent_of(z: str, x: str, knowledge: Knowledge) -> bool:
    """Whether z may act as a conditioning variable for x.

    z qualifies unless z -> x is forbidden or x -> z is required.
    """
    return not knowledge.is_forbidden(z, x) and not knowledge.is_required(x, z)


def possible_parents(
    x: Node, candidates: Sequence[Node], knowledge: Knowledge
) -> list[Node]:
    """Filter ``candidates`` down to possible parents of ``x``, keeping order."""
    if knowledge.is_empty():
        return list(candidates)
    return [z for z in candidates if possible_parent_of(z.name, x.name, knowledge)]
