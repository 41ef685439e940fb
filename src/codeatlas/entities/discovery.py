from __future__ import annotations

import logging
import sqlite3

from ..errors import SourceUnavailable
from ..graph.models import ContentChunk
from ..graph.store import GraphStore
from .models import EnrichedEntity, PipelineConfig, Relationship
from .relationships import merge_relationships


logger = logging.getLogger(__name__)

DISCOVERY_CONFIDENCE = 0.85
DOC_CHUNK_TYPES = frozenset(["jsdoc", "phpdoc", "docstring", "doc-comment"])


def existing_node_id(entity: EnrichedEntity, store: GraphStore) -> str | None:
    """Id of an already-persisted node for (name, kind) with linked content."""
    node_id = entity.node_id
    try:
        chunks = store.get_related_chunks([node_id], 1)
    except (SourceUnavailable, sqlite3.Error, OSError) as e:
        logger.warning("Discovery lookup failed for %s: %s", node_id, e)
        return None
    return node_id if chunks else None


def find_documentation(entity: EnrichedEntity, chunks: list[ContentChunk]) -> str | None:
    for c in chunks:
        if c.symbol_name == entity.name and (c.chunk_type or "").lower() in DOC_CHUNK_TYPES:
            return c.content
    return None


def discover_and_attach(
    entities: list[EnrichedEntity],
    config: PipelineConfig,
    *,
    store: GraphStore | None = None,
    chunks: list[ContentChunk] | None = None,
) -> list[EnrichedEntity]:
    """Link entities to existing graph nodes and attach documentation."""
    found = documented = 0
    for e in entities:
        if config.discover_existing_entities and store is not None:
            node_id = existing_node_id(e, store)
            if node_id is not None:
                found += 1
                e.relationships = merge_relationships(
                    [*e.relationships, Relationship(node_id, "references", DISCOVERY_CONFIDENCE, ("existing-node",))]
                )

        if config.extract_documentation and chunks:
            doc = find_documentation(e, chunks)
            if doc is not None:
                e.documentation = doc
                documented += 1

    logger.debug("discovery: %d linked to existing nodes, %d documented", found, documented)
    return entities
