"""In-memory term-overlap search backend.

Implements the VectorSearch protocol without embeddings so the CLI and tests
have something to route against. Production deployments plug in their own
ANN index instead.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from graphweave.interfaces.search import VectorHit
from graphweave.store.models import props_equal

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(text: str) -> set[str]:
    return {t.lower() for t in _TOKEN_RE.findall(text)}


def metadata_matches(metadata: dict[str, Any], metadata_filter: dict[str, Any]) -> bool:
    """Equality filter. A list filter value matches when the field equals any item."""
    for key, wanted in metadata_filter.items():
        if key not in metadata:
            return False
        actual = metadata[key]
        if isinstance(wanted, list):
            if not any(props_equal(actual, w) for w in wanted):
                return False
        elif not props_equal(actual, wanted):
            return False
    return True


@dataclass
class _Passage:
    id: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    terms: set[str] = field(default_factory=set)


class LexicalSearch:
    """Scores passages by normalised term overlap with the query."""

    def __init__(self, passages: list[VectorHit | dict[str, Any]] | None = None) -> None:
        self._passages: list[_Passage] = []
        for p in passages or []:
            if isinstance(p, VectorHit):
                self.add(p.id, p.text, dict(p.metadata))
            else:
                self.add(str(p["id"]), p["text"], p.get("metadata") or {})

    def __len__(self) -> int:
        return len(self._passages)

    def add(self, passage_id: str, text: str, metadata: dict[str, Any] | None = None) -> None:
        self._passages.append(
            _Passage(id=passage_id, text=text, metadata=metadata or {}, terms=tokenize(text))
        )

    def search(self, text_query: str, metadata_filter: dict[str, Any], k: int) -> list[VectorHit]:
        """Top *k* passages sharing terms with *text_query*, best first."""
        query_terms = tokenize(text_query)
        if not query_terms or k <= 0:
            return []
        scored: list[tuple[float, int, _Passage]] = []
        for pos, p in enumerate(self._passages):
            if metadata_filter and not metadata_matches(p.metadata, metadata_filter):
                continue
            overlap = len(query_terms & p.terms)
            if not overlap:
                continue
            score = overlap / math.sqrt(len(query_terms) * len(p.terms))
            scored.append((score, pos, p))
        scored.sort(key=lambda s: (-s[0], s[1]))
        return [
            VectorHit(id=p.id, text=p.text, score=round(score, 6), metadata=dict(p.metadata))
            for score, _, p in scored[:k]
        ]

    @classmethod
    def load(cls, path: str | Path) -> LexicalSearch:
        """Load passages from a JSON list or a JSONL file of ``{id, text, metadata}``."""
        path = Path(path)
        raw = path.read_text(encoding="utf-8")
        if raw.lstrip().startswith("["):
            records = json.loads(raw)
        else:
            records = [json.loads(line) for line in raw.splitlines() if line.strip()]
        backend = cls(records)
        logger.debug("Loaded %d passages from %s", len(backend), path)
        return backend
