"""Query, config and bundle models for KG-augmented retrieval."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from graphweave.interfaces.search import VectorHit
from graphweave.store.snapshot import GraphSnapshot

VECTOR_SEARCH_UNAVAILABLE = "vector_search_unavailable"
PASSAGES_TRUNCATED = "passages_truncated"


class KgRagConfig(BaseModel):
    """Knobs for one build_context call."""

    expand_hops: int = Field(default=1, ge=0)
    allowed_edge_labels: list[str] | None = None
    max_kg_nodes: int = Field(default=60, ge=0)
    vector_k: int = Field(default=8, ge=0)
    route_by_metadata: bool = False
    # seconds; None waits for the backend indefinitely
    search_timeout: float | None = Field(default=None, gt=0)


class RagQuery(BaseModel):
    """A retrieval request. ``scope`` is carried through untouched for capabilities."""

    text_query: str
    kg_seeds: list[str] = Field(default_factory=list)
    scope: dict[str, Any] = Field(default_factory=dict)
    max_prompt_tokens: int | None = Field(default=None, ge=0)


class ContextBundle(BaseModel):
    """KG slice plus ranked passages handed to a generation caller."""

    kg_slice: GraphSnapshot
    passages: list[VectorHit] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return VECTOR_SEARCH_UNAVAILABLE in self.notes
