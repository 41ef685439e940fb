from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Iterable, Mapping

from ..graph.models import ContentChunk
from ..graph.store import GraphStore
from ..index.embedder import EmbeddingService
from .dedup import deduplicate
from .discovery import discover_and_attach
from .embedding import embed_documentation
from .models import PipelineConfig, PipelineResult, PipelineStats, RawEntity
from .normalize import normalize
from .packages import PackageResolver
from .relevance import apply_relevance_filter
from .static import enrich_static


logger = logging.getLogger(__name__)


class EntityPipeline:
    """Raw entities of one file -> filtered, merged, classified, scored entities.

    Stages run sequentially and hold no shared state, so one pipeline can be
    reused for many files; graph-store write consistency is the store's job.
    """

    def __init__(
        self,
        config: PipelineConfig | Mapping[str, Any] | None = None,
        *,
        graph_store: GraphStore | None = None,
        embedding_service: EmbeddingService | None = None,
    ):
        if config is None or isinstance(config, PipelineConfig):
            self.config = config or PipelineConfig()
        else:
            self.config = PipelineConfig.from_mapping(config)
        self.graph_store = graph_store
        self.embedding_service = embedding_service

    def process(
        self,
        raw_entities: Iterable[RawEntity],
        file_path: str,
        *,
        chunks: list[ContentChunk] | None = None,
        source_code: str | None = None,
    ) -> PipelineResult:
        t0 = time.perf_counter()
        original = list(raw_entities)
        cfg = self.config

        filtered = apply_relevance_filter(original, cfg)
        deduplicated = deduplicate(filtered, cfg)
        normalized = normalize(deduplicated, file_path, cfg, resolver=PackageResolver())
        static_enriched = enrich_static(normalized, cfg, source_code=source_code, file_path=file_path)

        # Later stages mutate in place; keep the static snapshot intact.
        enriched = [replace(e, relationships=list(e.relationships)) for e in static_enriched]
        enriched = embed_documentation(enriched, self.embedding_service)
        enriched = discover_and_attach(enriched, cfg, store=self.graph_store, chunks=chunks)

        stats = PipelineStats(
            total_raw=len(original),
            total_filtered=len(filtered),
            discarded_count=len(original) - len(filtered),
            deduplicated_count=len(filtered) - len(deduplicated),
            final_count=len(enriched),
            processing_time_ms=(time.perf_counter() - t0) * 1000.0,
        )
        logger.info(
            "%s: %d raw -> %d kept (%d discarded, %d merged) -> %d enriched in %.1f ms",
            file_path,
            stats.total_raw,
            stats.total_filtered,
            stats.discarded_count,
            stats.deduplicated_count,
            stats.final_count,
            stats.processing_time_ms,
        )
        return PipelineResult(
            original=original,
            filtered=filtered,
            deduplicated=deduplicated,
            normalized=normalized,
            static_enriched=static_enriched,
            enriched=enriched,
            stats=stats,
        )
