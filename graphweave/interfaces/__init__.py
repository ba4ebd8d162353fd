"""Boundary interfaces: vector search backends and domain capabilities."""

from graphweave.interfaces.domain import (
    ConsistencyChecker,
    ConsistencyResult,
    MetadataRouter,
    SeedExpander,
)
from graphweave.interfaces.search import VectorHit, VectorSearch

__all__ = [
    "ConsistencyChecker",
    "ConsistencyResult",
    "MetadataRouter",
    "SeedExpander",
    "VectorHit",
    "VectorSearch",
]
