"""Property graph store, node/edge models and snapshots."""

from graphweave.store.models import (
    MAX_PROP_DEPTH,
    Direction,
    Edge,
    Node,
    check_prop_value,
    props_equal,
    props_match,
)
from graphweave.store.snapshot import GraphSnapshot
from graphweave.store.store import PropertyGraphStore

__all__ = [
    "MAX_PROP_DEPTH",
    "Direction",
    "Edge",
    "GraphSnapshot",
    "Node",
    "PropertyGraphStore",
    "check_prop_value",
    "props_equal",
    "props_match",
]
