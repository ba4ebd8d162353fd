"""Tests for graphweave.rag — context building, degradation, budgets and capability hooks."""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from graphweave.interfaces.domain import ConsistencyResult
from graphweave.interfaces.search import VectorHit
from graphweave.rag import (
    ContextBundle,
    KgRagConfig,
    KgRagEngine,
    RagQuery,
    check_consistency,
    estimate_tokens,
    fit_to_budget,
)
from graphweave.rag.models import PASSAGES_TRUNCATED, VECTOR_SEARCH_UNAVAILABLE
from graphweave.search import LexicalSearch


class SlowSearch:
    def __init__(self, delay: float):
        self.delay = delay

    async def search(self, text_query, metadata_filter, k):
        await asyncio.sleep(self.delay)
        return []


class BlockingSearch:
    """Sync backend that blocks until released or its own limit passes."""

    def __init__(self, limit: float = 5.0):
        self.limit = limit
        self.release = threading.Event()

    def search(self, text_query, metadata_filter, k):
        self.release.wait(self.limit)
        return []


class StoryCapability:
    """Seeds from the feast, routes on the slice's places, flags drafts mentioning ghosts."""

    def expand_seeds(self, store, seeds, config):
        return ["feast"]

    def build_metadata_filter(self, kg_slice):
        places = [n.id for n in kg_slice.nodes if n.label == "Place"]
        return {"place": places}

    def check_consistency(self, draft, store):
        if "ghost" in draft and not store.has_node("ghost"):
            return ConsistencyResult(ok=False, issues=["unknown character: ghost"])
        return ConsistencyResult()


class RouterOnly:
    def build_metadata_filter(self, kg_slice):
        return {"place": "town"}


def _fixed(tokens: int):
    return lambda text: tokens


# ---------------------------------------------------------------------------
# build_context
# ---------------------------------------------------------------------------


class TestBuildContext:
    @pytest.mark.asyncio
    async def test_bundle_has_slice_and_passages(self, story_store, fake_search, sample_hits):
        engine = KgRagEngine(story_store, fake_search)
        bundle = await engine.build_context(RagQuery(text_query="who lives in town", kg_seeds=["alice"]))
        assert isinstance(bundle, ContextBundle)
        assert bundle.kg_slice.node_ids == ["alice", "bob", "town"]
        assert bundle.passages == sample_hits
        assert bundle.notes == []
        assert bundle.degraded is False

    @pytest.mark.asyncio
    async def test_search_receives_query_and_k(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, KgRagConfig(vector_k=3))
        await engine.build_context(RagQuery(text_query="feast"))
        assert fake_search.calls == [("feast", {}, 3)]

    @pytest.mark.asyncio
    async def test_failing_search_degrades(self, story_store, make_search):
        engine = KgRagEngine(story_store, make_search(error=RuntimeError("index offline")))
        bundle = await engine.build_context(RagQuery(text_query="q", kg_seeds=["carol"]))
        assert bundle.kg_slice.node_ids == ["carol", "bob", "feast"]
        assert bundle.passages == []
        assert bundle.notes == [VECTOR_SEARCH_UNAVAILABLE]
        assert bundle.degraded is True

    @pytest.mark.asyncio
    async def test_timed_out_search_degrades(self, story_store):
        engine = KgRagEngine(story_store, SlowSearch(5), KgRagConfig(search_timeout=0.05))
        bundle = await engine.build_context(RagQuery(text_query="q", kg_seeds=["alice"]))
        assert bundle.notes == [VECTOR_SEARCH_UNAVAILABLE]
        assert len(bundle.kg_slice.nodes) == 3

    @pytest.mark.asyncio
    async def test_malformed_hits_degrade(self, story_store):
        class Broken:
            def search(self, text_query, metadata_filter, k):
                return [{"id": "x"}]

        bundle = await KgRagEngine(story_store, Broken()).build_context(RagQuery(text_query="q"))
        assert bundle.degraded

    @pytest.mark.asyncio
    async def test_dict_hits_are_converted(self, story_store):
        class DictSearch:
            async def search(self, text_query, metadata_filter, k):
                return [{"id": "d1", "text": "hello", "score": 0.5}]

        bundle = await KgRagEngine(story_store, DictSearch()).build_context(RagQuery(text_query="q"))
        assert bundle.passages == [VectorHit(id="d1", text="hello", score=0.5)]

    @pytest.mark.asyncio
    async def test_no_seeds_gives_empty_slice(self, story_store, fake_search):
        bundle = await KgRagEngine(story_store, fake_search).build_context(RagQuery(text_query="q"))
        assert bundle.kg_slice.nodes == []
        assert len(bundle.passages) == 3

    @pytest.mark.asyncio
    async def test_max_kg_nodes_bound(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, KgRagConfig(expand_hops=3, max_kg_nodes=2))
        bundle = await engine.build_context(RagQuery(text_query="q", kg_seeds=["bob"]))
        assert len(bundle.kg_slice.nodes) == 2
        assert bundle.kg_slice.node_ids[0] == "bob"

    @pytest.mark.asyncio
    async def test_allowed_edge_labels(self, story_store, fake_search):
        engine = KgRagEngine(
            story_store, fake_search, KgRagConfig(expand_hops=2, allowed_edge_labels=["LIVES_IN"])
        )
        bundle = await engine.build_context(RagQuery(text_query="q", kg_seeds=["alice"]))
        assert bundle.kg_slice.node_ids == ["alice", "town", "bob"]
        assert bundle.kg_slice.edge_ids == ["e3", "e4"]

    @pytest.mark.asyncio
    async def test_per_call_config_overrides_default(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, KgRagConfig(expand_hops=0))
        bundle = await engine.build_context(
            RagQuery(text_query="q", kg_seeds=["alice"]), config=KgRagConfig(expand_hops=1)
        )
        assert len(bundle.kg_slice.nodes) == 3

    @pytest.mark.asyncio
    async def test_store_not_mutated(self, story_store, fake_search):
        before = story_store.snapshot().to_dict()
        await KgRagEngine(story_store, fake_search).build_context(
            RagQuery(text_query="q", kg_seeds=["alice"]), capability=StoryCapability()
        )
        assert story_store.snapshot().to_dict() == before

    @pytest.mark.asyncio
    async def test_scope_is_carried_through(self, story_store, fake_search):
        query = RagQuery(text_query="q", scope={"chapter": 3})
        await KgRagEngine(story_store, fake_search).build_context(query)
        assert query.scope == {"chapter": 3}

    @pytest.mark.asyncio
    async def test_concurrent_calls_are_independent(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search)
        bundles = await asyncio.gather(
            engine.build_context(RagQuery(text_query="a", kg_seeds=["alice"])),
            engine.build_context(RagQuery(text_query="b", kg_seeds=["feast"])),
        )
        assert bundles[0].kg_slice.node_ids == ["alice", "bob", "town"]
        assert bundles[1].kg_slice.node_ids == ["feast", "carol"]
        assert sorted(c[0] for c in fake_search.calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_lexical_backend(self, story_store, sample_hits):
        engine = KgRagEngine(story_store, LexicalSearch(sample_hits))
        bundle = await engine.build_context(RagQuery(text_query="town ledger", kg_seeds=["bob"]))
        assert [p.id for p in bundle.passages] == ["p3", "p1"]


# ---------------------------------------------------------------------------
# Token budget
# ---------------------------------------------------------------------------


class TestBudget:
    @pytest.mark.asyncio
    async def test_no_budget_keeps_hits_unmodified(self, story_store, fake_search, sample_hits):
        bundle = await KgRagEngine(story_store, fake_search).build_context(RagQuery(text_query="q"))
        assert [p.id for p in bundle.passages] == ["p1", "p2", "p3"]

    @pytest.mark.asyncio
    async def test_budget_keeps_best_scores(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, token_estimator=_fixed(10))
        bundle = await engine.build_context(RagQuery(text_query="q", max_prompt_tokens=25))
        assert [p.id for p in bundle.passages] == ["p2", "p3"]
        assert bundle.notes == [PASSAGES_TRUNCATED]

    @pytest.mark.asyncio
    async def test_budget_large_enough_adds_no_note(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, token_estimator=_fixed(10))
        bundle = await engine.build_context(RagQuery(text_query="q", max_prompt_tokens=30))
        assert [p.id for p in bundle.passages] == ["p2", "p3", "p1"]
        assert bundle.notes == []

    @pytest.mark.asyncio
    async def test_zero_budget(self, story_store, fake_search):
        bundle = await KgRagEngine(story_store, fake_search).build_context(
            RagQuery(text_query="q", max_prompt_tokens=0)
        )
        assert bundle.passages == []
        assert bundle.notes == [PASSAGES_TRUNCATED]

    def test_fit_to_budget_stops_at_first_overflow(self, sample_hits):
        sizes = {"p1": 1, "p2": 5, "p3": 10}
        kept, dropped = fit_to_budget(sample_hits, 12, lambda text: sizes[_by_text(sample_hits, text)])
        assert [h.id for h in kept] == ["p2"]
        assert dropped == 2

    def test_fit_to_budget_none(self, sample_hits):
        kept, dropped = fit_to_budget(sample_hits, None)
        assert kept == sample_hits
        assert kept is not sample_hits
        assert dropped == 0

    @pytest.mark.parametrize(
        ("text", "expected"), [("", 1), ("abcd", 1), ("abcde", 2), ("x" * 400, 100)]
    )
    def test_estimate_tokens(self, text, expected):
        assert estimate_tokens(text) == expected


def _by_text(hits: list[VectorHit], text: str) -> str:
    return next(h.id for h in hits if h.text == text)


# ---------------------------------------------------------------------------
# Capability hooks
# ---------------------------------------------------------------------------


class TestCapabilities:
    @pytest.mark.asyncio
    async def test_expand_seeds_hook_replaces_seeds(self, story_store, fake_search):
        bundle = await KgRagEngine(story_store, fake_search).build_context(
            RagQuery(text_query="q", kg_seeds=["alice"]), capability=StoryCapability()
        )
        assert bundle.kg_slice.node_ids == ["feast", "carol"]

    @pytest.mark.asyncio
    async def test_routing_off_sends_empty_filter(self, story_store, fake_search):
        await KgRagEngine(story_store, fake_search).build_context(
            RagQuery(text_query="q", kg_seeds=["alice"]), capability=RouterOnly()
        )
        assert fake_search.calls[0][1] == {}

    @pytest.mark.asyncio
    async def test_routing_on_uses_capability_filter(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, KgRagConfig(route_by_metadata=True))
        await engine.build_context(
            RagQuery(text_query="q", kg_seeds=["alice"]), capability=RouterOnly()
        )
        assert fake_search.calls[0][1] == {"place": "town"}

    @pytest.mark.asyncio
    async def test_routing_on_without_router_sends_empty_filter(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search, KgRagConfig(route_by_metadata=True))
        await engine.build_context(RagQuery(text_query="q"), capability=object())
        assert fake_search.calls[0][1] == {}

    @pytest.mark.asyncio
    async def test_routed_lexical_search(self, story_store, sample_hits):
        cfg = KgRagConfig(route_by_metadata=True)
        engine = KgRagEngine(story_store, LexicalSearch(sample_hits), cfg)
        bundle = await engine.build_context(
            RagQuery(text_query="Bob town", kg_seeds=["alice"]),
            capability=RouterOnly(),
        )
        assert {p.id for p in bundle.passages} == {"p1", "p3"}

    @pytest.mark.asyncio
    async def test_plain_object_uses_defaults(self, story_store, fake_search):
        bundle = await KgRagEngine(story_store, fake_search).build_context(
            RagQuery(text_query="q", kg_seeds=["alice"]), capability=object()
        )
        assert bundle.kg_slice.node_ids == ["alice", "bob", "town"]

    def test_check_consistency_delegates(self, story_store, fake_search):
        engine = KgRagEngine(story_store, fake_search)
        result = engine.check_consistency("the ghost appeared", StoryCapability())
        assert result.ok is False
        assert result.issues == ["unknown character: ghost"]

    def test_check_consistency_passes_without_hook(self, story_store):
        assert check_consistency("anything at all", None, story_store) == ConsistencyResult(ok=True, issues=[])
        assert check_consistency("anything", RouterOnly(), story_store).ok is True

    def test_check_consistency_sees_live_store(self, story_store):
        story_store.create_node("Character", node_id="ghost")
        assert check_consistency("the ghost appeared", StoryCapability(), story_store).ok


def test_config_validation():
    with pytest.raises(ValueError):
        KgRagConfig(expand_hops=-1)
    with pytest.raises(ValueError):
        KgRagConfig(search_timeout=0)


def test_blocking_backend_deadline_holds_under_asyncio_run(story_store):
    backend = BlockingSearch()
    engine = KgRagEngine(story_store, backend, KgRagConfig(search_timeout=0.05))
    query = RagQuery(text_query="q", kg_seeds=["alice"])
    started = time.monotonic()
    try:
        bundle = asyncio.run(engine.build_context(query))
        elapsed = time.monotonic() - started
    finally:
        backend.release.set()
    assert bundle.notes == [VECTOR_SEARCH_UNAVAILABLE]
    assert bundle.kg_slice.node_ids == ["alice", "bob", "town"]
    assert elapsed < 1.0


def test_blocking_backend_result_still_used_when_fast(story_store, sample_hits):
    class QuickSync:
        def search(self, text_query, metadata_filter, k):
            return list(sample_hits)

    engine = KgRagEngine(story_store, QuickSync(), KgRagConfig(search_timeout=5))
    bundle = asyncio.run(engine.build_context(RagQuery(text_query="q")))
    assert [p.id for p in bundle.passages] == ["p1", "p2", "p3"]
    assert bundle.notes == []
