"""In-memory property graph store."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from graphweave.errors import DuplicateIdError, InvalidPropertyError, NotFoundError
from graphweave.store.models import Direction, Edge, Node, check_props, props_match
from graphweave.store.snapshot import GraphSnapshot

if TYPE_CHECKING:
    from graphweave.validation.models import StructureSchema, ValidationResult

logger = logging.getLogger(__name__)

_DIRECTIONS = ("in", "out", "both")


def _new_id() -> str:
    return uuid.uuid4().hex


def _merge_props(current: dict[str, Any], changes: dict[str, Any] | None) -> dict[str, Any]:
    """Shallow merge of a checked partial map; None changes nothing."""
    if changes is None:
        return dict(current)
    if not isinstance(changes, dict):
        raise InvalidPropertyError("props", f"expected a map, got {type(changes).__name__}")
    return {**current, **check_props(changes)}


class PropertyGraphStore:
    """Owns node/edge identity and attributes.

    Edges may reference node ids that do not exist (yet). Endpoint existence
    is only checked by :meth:`validate_structure`, so bulk loads can insert
    edges before their nodes. Deleting a node removes every edge incident to
    it, including edges that were created before the node existed.

    Not thread-safe: callers serialize mutations.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, Edge] = {}
        # node id -> edge ids (dict used as an insertion-ordered set)
        self._out: dict[str, dict[str, None]] = {}
        self._in: dict[str, dict[str, None]] = {}
        # creation sequence numbers, used for deterministic ordering
        self._node_seq: dict[str, int] = {}
        self._edge_seq: dict[str, int] = {}
        self._counter = 0

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def create_node(
        self,
        label: str,
        props: dict[str, Any] | None = None,
        node_id: str | None = None,
    ) -> Node:
        """Create a node. Generates an id when *node_id* is None."""
        if node_id is None:
            node_id = self._fresh_id(self._nodes)
        elif node_id in self._nodes:
            raise DuplicateIdError("node", node_id)
        node = Node(id=node_id, label=label, props=props or {})
        self._insert_node(node)
        logger.debug("Created node %s (%s)", node_id, label)
        return node.model_copy(deep=True)

    def get_node(self, node_id: str) -> Node:
        return self._require_node(node_id).model_copy(deep=True)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes

    def update_node(self, node_id: str, props: dict[str, Any] | None) -> Node:
        """Merge *props* into the node's attributes; unmentioned keys are kept."""
        node = self._require_node(node_id)
        updated = node.model_copy(update={"props": _merge_props(node.props, props)})
        self._nodes[node_id] = updated
        return updated.model_copy(deep=True)

    def delete_node(self, node_id: str) -> list[str]:
        """Delete a node and every incident edge. Returns the removed edge ids."""
        self._require_node(node_id)
        incident = list(self._out.get(node_id, {})) + [
            eid for eid in self._in.get(node_id, {}) if eid not in self._out.get(node_id, {})
        ]
        for eid in incident:
            self._remove_edge(eid)
        del self._nodes[node_id]
        del self._node_seq[node_id]
        self._out.pop(node_id, None)
        self._in.pop(node_id, None)
        logger.debug("Deleted node %s (cascaded %d edges)", node_id, len(incident))
        return incident

    def find_nodes(
        self,
        label: str | None = None,
        props: dict[str, Any] | None = None,
    ) -> list[str]:
        """Ids of nodes with *label* (if given) whose props contain *props*."""
        return [
            n.id
            for n in self._nodes.values()
            if (label is None or n.label == label) and props_match(n.props, props)
        ]

    def nodes(self) -> Iterator[Node]:
        """Iterate over copies of all nodes in creation order."""
        for node in list(self._nodes.values()):
            yield node.model_copy(deep=True)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def node_order(self, node_id: str) -> int:
        """Creation sequence number of a node (lower is older)."""
        self._require_node(node_id)
        return self._node_seq[node_id]

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def create_edge(
        self,
        label: str,
        source: str,
        target: str,
        props: dict[str, Any] | None = None,
        edge_id: str | None = None,
    ) -> Edge:
        """Create a directed edge. Endpoints need not exist yet."""
        if edge_id is None:
            edge_id = self._fresh_id(self._edges)
        elif edge_id in self._edges:
            raise DuplicateIdError("edge", edge_id)
        edge = Edge(id=edge_id, label=label, source=source, target=target, props=props or {})
        self._insert_edge(edge)
        logger.debug("Created edge %s (%s: %s -> %s)", edge_id, label, source, target)
        return edge.model_copy(deep=True)

    def get_edge(self, edge_id: str) -> Edge:
        return self._require_edge(edge_id).model_copy(deep=True)

    def has_edge(self, edge_id: str) -> bool:
        return edge_id in self._edges

    def update_edge(self, edge_id: str, props: dict[str, Any] | None) -> Edge:
        """Merge *props* into the edge's attributes. Label and endpoints never change."""
        edge = self._require_edge(edge_id)
        updated = edge.model_copy(update={"props": _merge_props(edge.props, props)})
        self._edges[edge_id] = updated
        return updated.model_copy(deep=True)

    def delete_edge(self, edge_id: str) -> None:
        self._require_edge(edge_id)
        self._remove_edge(edge_id)
        logger.debug("Deleted edge %s", edge_id)

    def find_edges(
        self,
        label: str | None = None,
        props: dict[str, Any] | None = None,
        source: str | None = None,
        target: str | None = None,
    ) -> list[str]:
        """Ids of edges matching label, endpoints and a props subset."""
        if source is not None:
            candidates = [self._edges[eid] for eid in self._out.get(source, {})]
        elif target is not None:
            candidates = [self._edges[eid] for eid in self._in.get(target, {})]
        else:
            candidates = list(self._edges.values())
        return [
            e.id
            for e in candidates
            if (label is None or e.label == label)
            and (source is None or e.source == source)
            and (target is None or e.target == target)
            and props_match(e.props, props)
        ]

    def edges(self) -> Iterator[Edge]:
        """Iterate over copies of all edges in creation order."""
        for edge in list(self._edges.values()):
            yield edge.model_copy(deep=True)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def edge_order(self, edge_id: str) -> int:
        """Creation sequence number of an edge (lower is older)."""
        self._require_edge(edge_id)
        return self._edge_seq[edge_id]

    def incident_edges(self, node_id: str, direction: Direction = "both") -> list[Edge]:
        """Edges leaving, entering or touching *node_id*, in creation order.

        Works for ids that are not (or no longer) nodes, so callers can see
        dangling edges. Returned edges are the stored instances; treat them as
        read-only.
        """
        if direction not in _DIRECTIONS:
            raise ValueError(f"direction must be one of {_DIRECTIONS}, got {direction!r}")
        if direction == "out":
            ids = list(self._out.get(node_id, {}))
        elif direction == "in":
            ids = list(self._in.get(node_id, {}))
        else:
            # self-loops appear in both maps, keep one copy
            merged = dict.fromkeys(self._out.get(node_id, {}))
            merged.update(dict.fromkeys(self._in.get(node_id, {})))
            ids = sorted(merged, key=self._edge_seq.__getitem__)
        return [self._edges[eid] for eid in ids]

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        """Return a deep, detached copy of the store in insertion order."""
        return GraphSnapshot(
            nodes=[n.model_copy(deep=True) for n in self._nodes.values()],
            edges=[e.model_copy(deep=True) for e in self._edges.values()],
        )

    def restore(self, snapshot: GraphSnapshot | dict[str, Any]) -> None:
        """Replace the whole store with *snapshot*, loaded as if into an empty store.

        Raises DuplicateIdError if the snapshot repeats a node or edge id; the
        store is left untouched in that case.
        """
        if isinstance(snapshot, dict):
            snapshot = GraphSnapshot.from_dict(snapshot)
        fresh = PropertyGraphStore()
        for node in snapshot.nodes:
            if node.id in fresh._nodes:
                raise DuplicateIdError("node", node.id)
            fresh._insert_node(node.model_copy(deep=True))
        for edge in snapshot.edges:
            if edge.id in fresh._edges:
                raise DuplicateIdError("edge", edge.id)
            fresh._insert_edge(edge.model_copy(deep=True))
        self.__dict__.update(fresh.__dict__)
        logger.debug("Restored %d nodes and %d edges", self.node_count, self.edge_count)

    @classmethod
    def from_snapshot(cls, snapshot: GraphSnapshot | dict[str, Any]) -> PropertyGraphStore:
        store = cls()
        store.restore(snapshot)
        return store

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_structure(
        self,
        schema: StructureSchema | dict[str, Any] | None = None,
        *,
        check_connectivity: bool = False,
    ) -> ValidationResult:
        """Check the current graph against *schema*; dangling edges are always reported."""
        from graphweave.validation.validator import validate_structure

        return validate_structure(self.snapshot(), schema, check_connectivity=check_connectivity)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fresh_id(self, taken: dict[str, Any]) -> str:
        new_id = _new_id()
        while new_id in taken:
            new_id = _new_id()
        return new_id

    def _next_seq(self) -> int:
        self._counter += 1
        return self._counter

    def _insert_node(self, node: Node) -> None:
        self._nodes[node.id] = node
        self._node_seq[node.id] = self._next_seq()

    def _insert_edge(self, edge: Edge) -> None:
        self._edges[edge.id] = edge
        self._edge_seq[edge.id] = self._next_seq()
        self._out.setdefault(edge.source, {})[edge.id] = None
        self._in.setdefault(edge.target, {})[edge.id] = None

    def _remove_edge(self, edge_id: str) -> None:
        edge = self._edges.pop(edge_id)
        del self._edge_seq[edge_id]
        _discard(self._out, edge.source, edge_id)
        _discard(self._in, edge.target, edge_id)

    def _require_node(self, node_id: str) -> Node:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NotFoundError("node", node_id) from None

    def _require_edge(self, edge_id: str) -> Edge:
        try:
            return self._edges[edge_id]
        except KeyError:
            raise NotFoundError("edge", edge_id) from None


def _discard(index: dict[str, dict[str, None]], node_id: str, edge_id: str) -> None:
    """Drop *edge_id* from a node's adjacency entry, removing the entry once empty."""
    bucket = index.get(node_id)
    if bucket is None:
        return
    bucket.pop(edge_id, None)
    if not bucket:
        del index[node_id]
