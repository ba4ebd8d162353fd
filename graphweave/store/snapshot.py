"""Point-in-time graph snapshots and their JSON wire format.

The wire format is fixed::

    {"nodes": [{"id", "label", "props"}], "edges": [{"id", "label", "from", "to", "props"}]}

Node and edge order is insertion order and survives a round trip; property
map key order does not have to.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from graphweave.store.models import Edge, Node

logger = logging.getLogger(__name__)


class GraphSnapshot(BaseModel):
    """Ordered node and edge lists detached from any live store."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @property
    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    @property
    def edge_ids(self) -> list[str]:
        return [e.id for e in self.edges]

    def __len__(self) -> int:
        return len(self.nodes)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict form using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GraphSnapshot:
        if not isinstance(data, dict):
            raise ValueError(f"snapshot must be a mapping, got {type(data).__name__}")
        return cls.model_validate(
            {"nodes": data.get("nodes") or [], "edges": data.get("edges") or []}
        )

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize the snapshot to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, data: str) -> GraphSnapshot:
        """Deserialize a snapshot from a JSON string."""
        return cls.from_dict(json.loads(data))

    def save(self, path: Path) -> None:
        """Write the snapshot to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json(), encoding="utf-8")
        logger.debug("Saved snapshot (%d nodes, %d edges) to %s", len(self.nodes), len(self.edges), path)

    @classmethod
    def load(cls, path: Path) -> GraphSnapshot:
        """Read a snapshot from a JSON file."""
        return cls.from_json(Path(path).read_text(encoding="utf-8"))
