from __future__ import annotations

import logging

from ..errors import EmbeddingServiceError
from ..index.embedder import EmbeddingService
from .models import EnrichedEntity


logger = logging.getLogger(__name__)


def documentation_text(entity: EnrichedEntity) -> str:
    doc = entity.doc_block
    if doc is None:
        return ""

    parts = [f"Entity: {entity.name}"]
    if entity.semantic_type != "unknown":
        parts.append(f"Type: {entity.semantic_type}")
    if doc.description:
        parts.append(doc.description)
    for p in doc.params:
        parts.append(" ".join(x for x in (f"@param {p.name}", f"{{{p.type}}}" if p.type else "", p.description) if x))
    if doc.returns is not None:
        r = doc.returns
        parts.append(" ".join(x for x in ("@returns", f"{{{r.type}}}" if r.type else "", r.description) if x))
    for t in doc.throws:
        parts.append(" ".join(x for x in ("@throws", f"{{{t.type}}}" if t.type else "", t.description) if x))
    if doc.deprecated:
        parts.append(f"@deprecated {doc.deprecated}")
    if doc.since:
        parts.append(f"@since {doc.since}")
    for ex in doc.examples:
        parts.append(f"Example: {ex}")
    return "\n".join(parts).strip()


def embed_documentation(
    entities: list[EnrichedEntity],
    service: EmbeddingService | None,
) -> list[EnrichedEntity]:
    """Attach a doc embedding to entities that carry a doc block.

    Embedding is opportunistic: without a service, or when it fails, the
    entities pass through unchanged.
    """
    documented = [e for e in entities if e.doc_block is not None]
    if service is None or not documented:
        return entities

    try:
        service.initialize()
    except (EmbeddingServiceError, OSError, RuntimeError) as e:
        logger.warning("Embedding service unavailable, skipping doc embeddings: %s", e)
        return entities

    ok = failed = 0
    for e in documented:
        text = documentation_text(e)
        if not text:
            continue
        try:
            vector = [float(x) for x in service.embed(text)]
        except (EmbeddingServiceError, OSError, RuntimeError, ValueError) as err:
            logger.warning("Failed to embed documentation of %r: %s", e.name, err)
            failed += 1
            continue
        e.doc_embedding = {
            "vector": vector,
            "text": text,
            "dimensions": len(vector),
            "model": service.model_name,
        }
        ok += 1

    logger.debug("doc embeddings: %d generated, %d failed", ok, failed)
    return entities
