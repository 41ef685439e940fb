from __future__ import annotations

from dataclasses import dataclass

from .models import DocBlock, NormalizedEntity, Relationship, clamp01


BASE_SCORE = 0.5
DOC_WEIGHT = 0.15
TYPES_WEIGHT = 0.10
TESTS_WEIGHT = 0.10
RELATIONSHIP_STEP = 0.05
RELATIONSHIP_CAP = 0.15
USAGE_STEP = 0.03
USAGE_CAP = 0.10
EXPORTED_WEIGHT = 0.05
UNKNOWN_TYPE_CONFIDENCE = 0.5
KNOWN_TYPE_CONFIDENCE = 0.9
MIN_DOC_DESCRIPTION = 10


@dataclass(frozen=True)
class ConfidenceEvidence:
    has_doc: bool
    has_type_annotations: bool
    has_tests: bool
    relationship_count: int
    usage_count: int
    is_exported: bool
    semantic_type_confidence: float


def has_sibling_test(entity: NormalizedEntity, all_entities: list[NormalizedEntity]) -> bool:
    name = entity.name.lower()
    for other in all_entities:
        if other is entity:
            continue
        o = other.name.lower()
        if name in o and o != name and ("test" in o or "spec" in o):
            return True
    return False


def gather_evidence(
    entity: NormalizedEntity,
    doc: DocBlock | None,
    semantic_type: str,
    relationships: list[Relationship],
    all_entities: list[NormalizedEntity],
    usage_count: int,
) -> ConfidenceEvidence:
    has_types = bool(entity.metadata.get("hasTypeAnnotations"))
    if doc is not None:
        has_types = has_types or any(p.type for p in doc.params) or bool(doc.returns and doc.returns.type)
    return ConfidenceEvidence(
        has_doc=doc is not None and len(doc.description) > MIN_DOC_DESCRIPTION,
        has_type_annotations=has_types,
        has_tests=has_sibling_test(entity, all_entities),
        relationship_count=len(relationships),
        usage_count=usage_count,
        is_exported=entity.kind == "export" and entity.category == "internal",
        semantic_type_confidence=UNKNOWN_TYPE_CONFIDENCE if semantic_type == "unknown" else KNOWN_TYPE_CONFIDENCE,
    )


def compute_score(ev: ConfidenceEvidence) -> float:
    score = BASE_SCORE
    if ev.has_doc:
        score += DOC_WEIGHT
    if ev.has_type_annotations:
        score += TYPES_WEIGHT
    if ev.has_tests:
        score += TESTS_WEIGHT
    score += min(ev.relationship_count * RELATIONSHIP_STEP, RELATIONSHIP_CAP)
    score += min(ev.usage_count * USAGE_STEP, USAGE_CAP)
    if ev.is_exported:
        score += EXPORTED_WEIGHT
    return clamp01(score * ev.semantic_type_confidence)
