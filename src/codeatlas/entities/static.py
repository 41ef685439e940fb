from __future__ import annotations

import logging
from collections import Counter

from ..errors import EvidenceExtractionError
from .confidence import compute_score, gather_evidence
from .declarations import declaration_text
from .docblock import extract_doc_block
from .models import DocBlock, EnrichedEntity, NormalizedEntity, PipelineConfig, promote
from .relationships import infer_relationships, refine_relationship
from .semantic import classify


logger = logging.getLogger(__name__)


def _safe_declaration(entity: NormalizedEntity, source: str | None) -> str | None:
    try:
        return declaration_text(entity, source)
    except EvidenceExtractionError as e:
        logger.warning("Declaration of %r not parsed: %s", entity.name, e)
        return None


def _safe_doc_block(entity: NormalizedEntity, source: str | None) -> DocBlock | None:
    if not source or entity.line is None:
        return None
    try:
        return extract_doc_block(source, entity.line)
    except EvidenceExtractionError as e:
        logger.warning("Malformed doc block for %r at line %s: %s", entity.name, entity.line, e)
        return None


def enrich_static(
    entities: list[NormalizedEntity],
    config: PipelineConfig,
    *,
    source_code: str | None = None,
    file_path: str | None = None,
) -> list[EnrichedEntity]:
    """Classify, relate and score every entity of one file.

    Relationships for the whole file are inferred first so that each entity's
    usage count (how many others point at it) is known before scoring.
    """
    staged: list[EnrichedEntity] = []
    for e in entities:
        declaration = _safe_declaration(e, source_code)
        doc = _safe_doc_block(e, source_code) if config.extract_documentation else None
        rels = infer_relationships(e, entities, declaration) if config.infer_relationships else []
        staged.append(
            promote(
                e,
                EnrichedEntity,
                semantic_type=classify(e, doc, declaration),
                relationships=rels,
                doc_block=doc,
                location=(file_path or e.source or "unknown", e.line) if e.line is not None else None,
            )
        )

    known = {e.name for e in entities}
    targeted_by: Counter[str] = Counter()
    for e in staged:
        for target in {r.target for r in e.relationships}:
            if target != e.name:
                targeted_by[target] += 1

    for e in staged:
        e.relationships = [refine_relationship(r, e, known) for r in e.relationships]
        if config.calculate_confidence:
            ev = gather_evidence(e, e.doc_block, e.semantic_type, e.relationships, entities, targeted_by[e.name])
            e.confidence = compute_score(ev)
        else:
            e.confidence = e.relevance_score

    if staged:
        types = Counter(e.semantic_type for e in staged)
        logger.debug(
            "static enrichment: %d entities, %d relationships, %d documented, types=%s",
            len(staged),
            sum(len(e.relationships) for e in staged),
            sum(1 for e in staged if e.doc_block is not None),
            dict(types),
        )
    return staged
