"""Optional domain capability hooks.

A capability object implements any subset of these protocols. Call sites
check each hook with ``isinstance`` and fall back to the core default when it
is missing. Capabilities are always passed explicitly, never looked up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from graphweave.rag.models import KgRagConfig
    from graphweave.store.snapshot import GraphSnapshot
    from graphweave.store.store import PropertyGraphStore


class ConsistencyResult(BaseModel):
    """Verdict of a domain consistency check on generated text."""

    ok: bool = True
    issues: list[str] = Field(default_factory=list)


@runtime_checkable
class SeedExpander(Protocol):
    """Chooses the node ids a KG slice is grown from."""

    def expand_seeds(
        self, store: PropertyGraphStore, seeds: list[str], config: KgRagConfig
    ) -> list[str]: ...


@runtime_checkable
class MetadataRouter(Protocol):
    """Derives a vector-search metadata filter from a KG slice."""

    def build_metadata_filter(self, kg_slice: GraphSnapshot) -> dict[str, Any]: ...


@runtime_checkable
class ConsistencyChecker(Protocol):
    """Checks a draft against domain rules using the live store."""

    def check_consistency(self, draft: str, store: PropertyGraphStore) -> ConsistencyResult: ...
