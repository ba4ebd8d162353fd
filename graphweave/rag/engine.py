"""KG-augmented retrieval: expand a graph slice, route and run a vector search, bundle."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import math
import threading
from collections.abc import Callable
from typing import Any

from graphweave.interfaces.domain import (
    ConsistencyChecker,
    ConsistencyResult,
    MetadataRouter,
    SeedExpander,
)
from graphweave.interfaces.search import VectorHit, VectorSearch
from graphweave.rag.models import (
    PASSAGES_TRUNCATED,
    VECTOR_SEARCH_UNAVAILABLE,
    ContextBundle,
    KgRagConfig,
    RagQuery,
)
from graphweave.store.snapshot import GraphSnapshot
from graphweave.store.store import PropertyGraphStore
from graphweave.traversal.engine import TraversalEngine

logger = logging.getLogger(__name__)


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, at least one."""
    return max(1, math.ceil(len(text) / 4))


def fit_to_budget(
    hits: list[VectorHit],
    max_tokens: int | None,
    estimator: Callable[[str], int] = estimate_tokens,
) -> tuple[list[VectorHit], int]:
    """Keep the best-scoring hits whose combined size fits *max_tokens*.

    Returns ``(kept, dropped_count)``. With no budget the hits come back
    unmodified and in their original order.
    """
    if max_tokens is None:
        return list(hits), 0
    ranked = sorted(hits, key=lambda h: h.score, reverse=True)
    kept: list[VectorHit] = []
    used = 0
    for hit in ranked:
        cost = estimator(hit.text)
        if used + cost > max_tokens:
            break
        kept.append(hit)
        used += cost
    return kept, len(ranked) - len(kept)


def check_consistency(
    draft: str,
    capability: object | None,
    store: PropertyGraphStore,
) -> ConsistencyResult:
    """Delegate to the capability's consistency hook; pass when it has none.

    The core performs no semantic validation itself.
    """
    if isinstance(capability, ConsistencyChecker):
        return capability.check_consistency(draft, store)
    return ConsistencyResult(ok=True, issues=[])


def _in_daemon_thread(fn: Callable[..., Any], *args: Any) -> asyncio.Future:
    """Run a blocking call on a daemon thread and expose it as a loop future.

    A call abandoned after a timeout keeps running in the background without
    holding up loop shutdown (``asyncio.run`` joins the default executor) or
    interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _resolve(result: Any = None, error: Exception | None = None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _worker() -> None:
        try:
            result = fn(*args)
        except Exception as e:
            callback = functools.partial(_resolve, error=e)
        else:
            callback = functools.partial(_resolve, result)
        try:
            loop.call_soon_threadsafe(callback)
        except RuntimeError:
            logger.debug("Search finished after its event loop closed; result discarded")

    threading.Thread(target=_worker, name="graphweave-search", daemon=True).start()
    return future


class KgRagEngine:
    """Builds context bundles from a graph store and a vector search backend.

    Never mutates the store. The KG slice is captured before the search is
    awaited, so writes landing during the search are not reflected in that
    bundle. Independent ``build_context`` calls share no mutable state and
    may run concurrently.
    """

    def __init__(
        self,
        store: PropertyGraphStore,
        search: VectorSearch,
        config: KgRagConfig | None = None,
        token_estimator: Callable[[str], int] = estimate_tokens,
    ) -> None:
        self._store = store
        self._search = search
        self._config = config or KgRagConfig()
        self._traversal = TraversalEngine(store)
        self._estimate = token_estimator

    @property
    def config(self) -> KgRagConfig:
        return self._config

    async def build_context(
        self,
        query: RagQuery,
        config: KgRagConfig | None = None,
        capability: object | None = None,
    ) -> ContextBundle:
        """Expand, route, retrieve and bundle.

        A failing or timed-out search does not raise: the bundle keeps its KG
        slice, has no passages and carries the ``vector_search_unavailable``
        note.
        """
        cfg = config or self._config

        kg_slice = self.expand(query, cfg, capability)
        metadata_filter = self.route(kg_slice, cfg, capability)

        try:
            hits = await self._run_search(query.text_query, metadata_filter, cfg)
        except Exception as e:
            logger.warning("Vector search unavailable, returning KG-only context: %r", e)
            return ContextBundle(kg_slice=kg_slice, passages=[], notes=[VECTOR_SEARCH_UNAVAILABLE])

        passages, dropped = fit_to_budget(hits, query.max_prompt_tokens, self._estimate)
        notes: list[str] = []
        if dropped:
            notes.append(PASSAGES_TRUNCATED)
            logger.debug("Dropped %d passages to fit %s tokens", dropped, query.max_prompt_tokens)

        logger.info(
            "Built context: %d KG nodes, %d edges, %d passages",
            len(kg_slice.nodes),
            len(kg_slice.edges),
            len(passages),
        )
        return ContextBundle(kg_slice=kg_slice, passages=passages, notes=notes)

    def expand(
        self, query: RagQuery, config: KgRagConfig, capability: object | None = None
    ) -> GraphSnapshot:
        """Grow the KG slice from the query seeds, or from the capability's seeds."""
        seeds = list(query.kg_seeds)
        if isinstance(capability, SeedExpander):
            seeds = list(capability.expand_seeds(self._store, seeds, config))
            logger.debug("Capability expanded seeds to %d ids", len(seeds))
        return self._traversal.subgraph(
            seeds,
            config.expand_hops,
            config.allowed_edge_labels,
            config.max_kg_nodes,
        )

    def route(
        self, kg_slice: GraphSnapshot, config: KgRagConfig, capability: object | None = None
    ) -> dict[str, Any]:
        """Metadata filter for the search; empty unless routing is on and supported."""
        if config.route_by_metadata and isinstance(capability, MetadataRouter):
            return dict(capability.build_metadata_filter(kg_slice))
        return {}

    def check_consistency(self, draft: str, capability: object | None = None) -> ConsistencyResult:
        return check_consistency(draft, capability, self._store)

    async def _run_search(
        self, text_query: str, metadata_filter: dict[str, Any], config: KgRagConfig
    ) -> list[VectorHit]:
        search_fn = self._search.search
        args = (text_query, metadata_filter, config.vector_k)

        async def _call() -> Any:
            if inspect.iscoroutinefunction(search_fn):
                result = await search_fn(*args)
            else:
                result = await _in_daemon_thread(search_fn, *args)
            if inspect.isawaitable(result):
                result = await result
            return result

        raw = await asyncio.wait_for(_call(), timeout=config.search_timeout)
        return [h if isinstance(h, VectorHit) else VectorHit.model_validate(h) for h in raw]
