"""Structural validation of graph snapshots against a StructureSchema."""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from graphweave.store.snapshot import GraphSnapshot
from graphweave.validation.models import StructureSchema, ValidationResult


def validate_structure(
    snapshot: GraphSnapshot,
    schema: StructureSchema | dict[str, Any] | None = None,
    *,
    check_connectivity: bool = False,
) -> ValidationResult:
    """Report every schema violation and dangling edge in *snapshot*.

    Pure: reads the snapshot, never raises for rule violations. Issues follow
    node creation order, then edge creation order.
    """
    if schema is None:
        schema = StructureSchema()
    elif isinstance(schema, dict):
        schema = StructureSchema.model_validate(schema)

    issues: list[str] = []
    labels: dict[str, str] = {n.id: n.label for n in snapshot.nodes}

    node_allow = set(schema.allowed_node_labels) if schema.allowed_node_labels is not None else None
    for node in snapshot.nodes:
        if node_allow is not None and node.label not in node_allow:
            issues.append(f"node {node.id!r}: label {node.label!r} is not in allowedNodeLabels")
        for key in schema.required_props.get(node.label, []):
            if key not in node.props:
                issues.append(f"node {node.id!r} ({node.label}): missing required prop {key!r}")

    edge_allow = set(schema.allowed_edge_labels) if schema.allowed_edge_labels is not None else None
    permitted: dict[str, set[tuple[str, str]]] = defaultdict(set)
    for c in schema.edge_label_constraints:
        permitted[c.label].add((c.from_label, c.to_label))

    for edge in snapshot.edges:
        if edge_allow is not None and edge.label not in edge_allow:
            issues.append(f"edge {edge.id!r}: label {edge.label!r} is not in allowedEdgeLabels")
        dangling = False
        if edge.source not in labels:
            issues.append(f"edge {edge.id!r} ({edge.label}): from node {edge.source!r} does not exist")
            dangling = True
        if edge.target not in labels:
            issues.append(f"edge {edge.id!r} ({edge.label}): to node {edge.target!r} does not exist")
            dangling = True
        if dangling or edge.label not in permitted:
            continue
        pair = (labels[edge.source], labels[edge.target])
        if pair not in permitted[edge.label]:
            allowed_pairs = ", ".join(f"{a}->{b}" for a, b in sorted(permitted[edge.label]))
            issues.append(
                f"edge {edge.id!r}: label {edge.label!r} not allowed from "
                f"{pair[0]!r} to {pair[1]!r} (edgeLabelConstraints permit {allowed_pairs})"
            )

    warnings: list[str] = []
    if check_connectivity:
        components = connected_components(snapshot)
        if len(components) > 1:
            sizes = ", ".join(str(len(c)) for c in components)
            warnings.append(f"graph has {len(components)} disconnected components (sizes: {sizes})")

    return ValidationResult(ok=not issues, issues=issues, warnings=warnings)


def connected_components(snapshot: GraphSnapshot) -> list[list[str]]:
    """Weakly connected components over existing nodes, ignoring dangling edges.

    Components are listed in order of their first node's creation; members
    keep creation order too.
    """
    parent: dict[str, str] = {n.id: n.id for n in snapshot.nodes}

    def find(x: str) -> str:
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    for edge in snapshot.edges:
        if edge.source in parent and edge.target in parent:
            a, b = find(edge.source), find(edge.target)
            if a != b:
                parent[b] = a

    groups: dict[str, list[str]] = {}
    for node in snapshot.nodes:
        groups.setdefault(find(node.id), []).append(node.id)
    return list(groups.values())
