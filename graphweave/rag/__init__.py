"""KG-augmented retrieval orchestration."""

from graphweave.rag.engine import KgRagEngine, check_consistency, estimate_tokens, fit_to_budget
from graphweave.rag.models import (
    PASSAGES_TRUNCATED,
    VECTOR_SEARCH_UNAVAILABLE,
    ContextBundle,
    KgRagConfig,
    RagQuery,
)

__all__ = [
    "PASSAGES_TRUNCATED",
    "VECTOR_SEARCH_UNAVAILABLE",
    "ContextBundle",
    "KgRagConfig",
    "KgRagEngine",
    "RagQuery",
    "check_consistency",
    "estimate_tokens",
    "fit_to_budget",
]
