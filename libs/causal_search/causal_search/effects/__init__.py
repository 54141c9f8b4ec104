"""Effect-ranking oracles used by stability selection."""

from .base import BaseEffectRanker, FixedOrderRanker, NodeEffects
from .ida import IdaEffectRanker

__all__ = ["BaseEffectRanker", "FixedOrderRanker", "IdaEffectRanker", "NodeEffects"]
