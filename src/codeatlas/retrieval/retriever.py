from __future__ import annotations

import asyncio
import logging
import os
import time

from ..config import Settings
from ..errors import SourceUnavailable, ValidationError
from ..graph.store import GraphStore
from .models import RetrievalMetadata, RetrievalOptions, RetrievalResult, RetrievedContext
from .scoring import apply_weights, rank, rerank, source_breakdown
from .sources import CodeGraphSource, ContextSource, index_sources


logger = logging.getLogger(__name__)


def resolve_sources(options: RetrievalOptions) -> list[str]:
    """Sources a strategy actually queries, in request order."""
    enabled = list(dict.fromkeys(options.sources))
    if options.strategy == "graph":
        return [s for s in enabled if s == "code"]
    if options.strategy == "keyword":
        return [s for s in enabled if s != "code"]
    return enabled


class HybridRetriever:
    """Query code graph and prebuilt indexes concurrently; fuse, filter, rank.

    Stateless per request: the store and index files are owned elsewhere.
    """

    def __init__(self, *, sources: list[ContextSource]):
        self.sources = {s.name: s for s in sources}

    @classmethod
    def create(
        cls,
        *,
        store: GraphStore | None,
        index_dir: str | os.PathLike[str] | None = None,
        settings: Settings | None = None,
    ) -> "HybridRetriever":
        settings = settings or Settings()
        srcs: list[ContextSource] = []
        if store is not None:
            srcs.append(CodeGraphSource(store))
        srcs.extend(index_sources(index_dir if index_dir is not None else settings.index_path()))
        return cls(sources=srcs)

    def _run_source(self, source: ContextSource, query: str, options: RetrievalOptions) -> list[RetrievedContext]:
        try:
            return source.retrieve(query, options)
        except SourceUnavailable as e:
            logger.warning("Source %s unavailable: %s", source.name, e)
            return []

    async def retrieve(self, query: str, options: RetrievalOptions | None = None) -> RetrievalResult:
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty")
        options = (options or RetrievalOptions()).validate()
        t0 = time.perf_counter()

        enabled = resolve_sources(options)
        active = [self.sources[name] for name in enabled if name in self.sources]
        missing = [name for name in enabled if name not in self.sources]
        if missing:
            logger.debug("No source registered for: %s", ", ".join(missing))

        results = await asyncio.gather(*(asyncio.to_thread(self._run_source, s, query, options) for s in active))
        contexts = [c for batch in results for c in batch]
        logger.debug("%d candidates from %d source(s)", len(contexts), len(active))

        contexts = apply_weights(contexts, options, enabled_sources=len(enabled))
        contexts = [c for c in contexts if c.score >= options.min_score]
        if options.rerank and contexts:
            contexts = rerank(contexts, query, options)
        contexts = rank(contexts)

        total_found = len(contexts)
        contexts = contexts[: int(options.max_results)]
        meta = RetrievalMetadata(
            query=query,
            strategy=options.strategy,
            total_found=total_found,
            returned=len(contexts),
            source_breakdown=source_breakdown(contexts),
            retrieval_time_ms=(time.perf_counter() - t0) * 1000.0,
            reranked=bool(options.rerank),
        )
        logger.info("retrieve %r: %d found, %d returned in %.1f ms", query, total_found, len(contexts), meta.retrieval_time_ms)
        return RetrievalResult(contexts=contexts, metadata=meta)

    def retrieve_sync(self, query: str, options: RetrievalOptions | None = None) -> RetrievalResult:
        return asyncio.run(self.retrieve(query, options))
