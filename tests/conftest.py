"""Shared test fixtures for graphweave."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from graphweave.config.models import GraphweaveConfig
from graphweave.interfaces.search import VectorHit
from graphweave.store import PropertyGraphStore


class FakeSearch:
    """Records calls and returns canned hits."""

    def __init__(self, hits: list[VectorHit] | None = None, error: Exception | None = None):
        self.hits = hits or []
        self.error = error
        self.calls: list[tuple[str, dict, int]] = []

    def search(self, text_query, metadata_filter, k):
        self.calls.append((text_query, metadata_filter, k))
        if self.error is not None:
            raise self.error
        return list(self.hits)


@pytest.fixture
def store():
    return PropertyGraphStore()


@pytest.fixture
def story_store():
    """Small story graph: characters, a place and an event.

    alice -KNOWS-> bob -KNOWS-> carol
    alice -LIVES_IN-> town <-LIVES_IN- bob
    carol -ATTENDED-> feast
    """
    s = PropertyGraphStore()
    s.create_node("Character", {"name": "Alice", "age": 30}, node_id="alice")
    s.create_node("Character", {"name": "Bob", "age": 41}, node_id="bob")
    s.create_node("Character", {"name": "Carol", "tags": ["hero", "scout"]}, node_id="carol")
    s.create_node("Place", {"name": "Town", "meta": {"region": "north"}}, node_id="town")
    s.create_node("Event", {"name": "Feast"}, node_id="feast")
    s.create_edge("KNOWS", "alice", "bob", edge_id="e1")
    s.create_edge("KNOWS", "bob", "carol", edge_id="e2")
    s.create_edge("LIVES_IN", "alice", "town", edge_id="e3")
    s.create_edge("LIVES_IN", "bob", "town", edge_id="e4")
    s.create_edge("ATTENDED", "carol", "feast", {"role": "guest"}, edge_id="e5")
    return s


@pytest.fixture
def sample_hits():
    return [
        VectorHit(id="p1", text="Alice and Bob met in town.", score=0.42, metadata={"place": "town"}),
        VectorHit(id="p2", text="Carol attended the feast as a guest of honour.", score=0.91),
        VectorHit(id="p3", text="Bob keeps the town ledger.", score=0.67, metadata={"place": "town"}),
    ]


@pytest.fixture
def fake_search(sample_hits):
    return FakeSearch(sample_hits)


@pytest.fixture
def sample_config():
    return GraphweaveConfig()


@pytest.fixture
def snapshot_file(tmp_path: Path, story_store) -> Path:
    """The story graph written as a wire-format snapshot file."""
    path = tmp_path / "story.json"
    path.write_text(json.dumps(story_store.snapshot().to_dict()))
    return path


@pytest.fixture
def make_search():
    """Factory for FakeSearch instances with custom hits or a failure."""
    return FakeSearch
