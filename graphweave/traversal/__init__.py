"""Graph traversal: neighbors, shortest paths and bounded subgraphs."""

from graphweave.traversal.engine import TraversalEngine

__all__ = ["TraversalEngine"]
