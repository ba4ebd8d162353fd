"""graphweave: property graph engine with KG-augmented retrieval."""

from graphweave.errors import DuplicateIdError, GraphError, InvalidPropertyError, NotFoundError
from graphweave.interfaces import (
    ConsistencyChecker,
    ConsistencyResult,
    MetadataRouter,
    SeedExpander,
    VectorHit,
    VectorSearch,
)
from graphweave.rag import ContextBundle, KgRagConfig, KgRagEngine, RagQuery, check_consistency
from graphweave.store import Edge, GraphSnapshot, Node, PropertyGraphStore
from graphweave.traversal import TraversalEngine
from graphweave.validation import StructureSchema, ValidationResult, validate_structure

__version__ = "0.1.0"

__all__ = [
    "ConsistencyChecker",
    "ConsistencyResult",
    "ContextBundle",
    "DuplicateIdError",
    "Edge",
    "GraphError",
    "GraphSnapshot",
    "InvalidPropertyError",
    "KgRagConfig",
    "KgRagEngine",
    "MetadataRouter",
    "Node",
    "NotFoundError",
    "PropertyGraphStore",
    "RagQuery",
    "SeedExpander",
    "StructureSchema",
    "TraversalEngine",
    "ValidationResult",
    "VectorHit",
    "VectorSearch",
    "check_consistency",
    "validate_structure",
]
