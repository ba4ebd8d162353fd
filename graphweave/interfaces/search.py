"""Vector search interface and hit model."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


class VectorHit(BaseModel):
    """A single passage returned by a vector search backend."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    score: float
    metadata: dict[str, Any] = {}


@runtime_checkable
class VectorSearch(Protocol):
    """Semantic search backend (cosine, ANN, hybrid...).

    ``search`` may be a plain method or a coroutine function; the retrieval
    engine awaits coroutines directly and runs plain methods in a worker
    thread so a deadline can still be applied.
    """

    def search(
        self, text_query: str, metadata_filter: dict[str, Any], k: int
    ) -> list[VectorHit] | Awaitable[list[VectorHit]]: ...
