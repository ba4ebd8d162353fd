"""Read-only traversal over a PropertyGraphStore."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable

from graphweave.errors import NotFoundError
from graphweave.store.models import Direction, Edge
from graphweave.store.snapshot import GraphSnapshot
from graphweave.store.store import PropertyGraphStore

logger = logging.getLogger(__name__)


def _other_end(edge: Edge, node_id: str) -> str:
    return edge.target if edge.source == node_id else edge.source


class TraversalEngine:
    """Neighbor queries, shortest paths and bounded subgraph extraction.

    Never mutates the store. Every ordering decision falls back to creation
    order, so results are deterministic for a fixed store state.
    """

    def __init__(self, store: PropertyGraphStore) -> None:
        self._store = store

    @property
    def store(self) -> PropertyGraphStore:
        return self._store

    def neighbors(
        self,
        node_id: str,
        direction: Direction = "out",
        edge_label: str | None = None,
    ) -> list[str]:
        """Ids of existing nodes one edge away from *node_id*, in discovery order."""
        if not self._store.has_node(node_id):
            raise NotFoundError("node", node_id)
        found: dict[str, None] = {}
        for edge in self._store.incident_edges(node_id, direction):
            if edge_label is not None and edge.label != edge_label:
                continue
            other = _other_end(edge, node_id)
            if self._store.has_node(other):
                found[other] = None
        return list(found)

    def shortest_path(
        self,
        start: str,
        goal: str,
        edge_labels: Iterable[str] | None = None,
        direction: Direction = "out",
    ) -> list[str]:
        """Unweighted BFS path from *start* to *goal*, both inclusive.

        Returns an empty list when *goal* is unreachable. Among equally short
        paths the one discovered first (edge creation order) wins.
        """
        for node_id in (start, goal):
            if not self._store.has_node(node_id):
                raise NotFoundError("node", node_id)
        if start == goal:
            return [start]

        allowed = set(edge_labels) if edge_labels is not None else None
        parents: dict[str, str | None] = {start: None}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            for edge in self._store.incident_edges(current, direction):
                if allowed is not None and edge.label not in allowed:
                    continue
                nxt = _other_end(edge, current)
                if nxt in parents or not self._store.has_node(nxt):
                    continue
                parents[nxt] = current
                if nxt == goal:
                    return _unwind(parents, goal)
                queue.append(nxt)
        return []

    def subgraph(
        self,
        seeds: Iterable[str],
        depth: int,
        edge_labels: Iterable[str] | None = None,
        max_nodes: int | None = None,
        direction: Direction = "both",
    ) -> GraphSnapshot:
        """Breadth-first slice around *seeds*, at most *depth* hops and *max_nodes* nodes.

        When a layer would overflow the node budget, its candidates are ranked
        by the number of edges they already share with the admitted slice
        (descending, ties by creation order). Only the top candidates get in;
        the rest of that layer and everything deeper is dropped.

        Seeds that are not in the store are ignored. The slice contains every
        allowed-label edge between admitted nodes, except at depth 0 where it
        carries no edges.
        """
        if depth < 0:
            raise ValueError(f"depth must be >= 0, got {depth}")
        if max_nodes is not None and max_nodes < 0:
            raise ValueError(f"max_nodes must be >= 0, got {max_nodes}")

        allowed = set(edge_labels) if edge_labels is not None else None
        budget = max_nodes if max_nodes is not None else float("inf")
        admitted: dict[str, None] = {}

        layer = [s for s in dict.fromkeys(seeds) if self._store.has_node(s)]
        layer, truncated = self._admit(layer, admitted, allowed, budget)

        for hop in range(depth):
            if truncated or not layer:
                break
            candidates: dict[str, None] = {}
            for node_id in layer:
                for edge in self._store.incident_edges(node_id, direction):
                    if allowed is not None and edge.label not in allowed:
                        continue
                    other = _other_end(edge, node_id)
                    if other in admitted or other in candidates:
                        continue
                    if self._store.has_node(other):
                        candidates[other] = None
            layer, truncated = self._admit(list(candidates), admitted, allowed, budget)
            if truncated:
                logger.debug(
                    "Subgraph budget of %s nodes reached at hop %d; dropped %d candidates",
                    max_nodes,
                    hop + 1,
                    len(candidates) - len(layer),
                )

        edges = self._slice_edges(admitted, allowed) if depth > 0 else []
        return GraphSnapshot(
            nodes=[self._store.get_node(nid) for nid in admitted],
            edges=edges,
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _admit(
        self,
        candidates: list[str],
        admitted: dict[str, None],
        allowed: set[str] | None,
        budget: float,
    ) -> tuple[list[str], bool]:
        """Add *candidates* to *admitted*, ranking them if the budget would overflow.

        Returns the newly admitted ids and whether the layer was truncated.
        """
        room = budget - len(admitted)
        if len(candidates) <= room:
            admitted.update(dict.fromkeys(candidates))
            return candidates, False

        def rank(node_id: str) -> tuple[int, int]:
            return (-self._slice_degree(node_id, admitted, allowed), self._store.node_order(node_id))

        chosen = sorted(candidates, key=rank)[: max(int(room), 0)]
        admitted.update(dict.fromkeys(chosen))
        return chosen, True

    def _slice_degree(
        self, node_id: str, admitted: dict[str, None], allowed: set[str] | None
    ) -> int:
        """Number of allowed edges linking *node_id* to already-admitted nodes."""
        return sum(
            1
            for edge in self._store.incident_edges(node_id, "both")
            if (allowed is None or edge.label in allowed)
            and _other_end(edge, node_id) in admitted
        )

    def _slice_edges(self, admitted: dict[str, None], allowed: set[str] | None) -> list[Edge]:
        picked: dict[str, Edge] = {}
        for node_id in admitted:
            for edge in self._store.incident_edges(node_id, "out"):
                if edge.target in admitted and (allowed is None or edge.label in allowed):
                    picked[edge.id] = edge
        ordered = sorted(picked.values(), key=lambda e: self._store.edge_order(e.id))
        return [e.model_copy(deep=True) for e in ordered]


def _unwind(parents: dict[str, str | None], goal: str) -> list[str]:
    path: list[str] = []
    cur: str | None = goal
    while cur is not None:
        path.append(cur)
        cur = parents[cur]
    path.reverse()
    return path
