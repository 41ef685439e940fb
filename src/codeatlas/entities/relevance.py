from __future__ import annotations

import logging
import re
from typing import Iterable

from .models import NormalizedEntity, PipelineConfig, RawEntity, promote


logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = frozenset(
    ["string", "number", "boolean", "any", "void", "null", "undefined", "unknown", "never", "object", "symbol", "bigint"]
)

_ASSET_RE = re.compile(r"\.(css|scss|sass|less|png|jpg|jpeg|svg|gif|webp|ico|woff|woff2|ttf|eot)$", re.IGNORECASE)

# Base relevance by entity kind; exported symbols are the public surface.
BASE_RELEVANCE: dict[str, float] = {
    "export": 1.0,
    "class": 0.9,
    "function": 0.9,
    "import": 0.8,
    "variable": 0.7,
    "call": 0.6,
    "typeRef": 0.5,
}
UNRESOLVED_IMPORT_PENALTY = 0.3
PRIVATE_MEMBER_FACTOR = 0.3


def is_asset_import(source: str | None) -> bool:
    return bool(source) and _ASSET_RE.search(source) is not None


def relevance_score(entity: RawEntity) -> float:
    score = BASE_RELEVANCE.get(entity.kind, 0.5)
    if entity.kind == "import" and not entity.source:
        score -= UNRESOLVED_IMPORT_PENALTY
    if entity.is_private:
        score *= PRIVATE_MEMBER_FACTOR
    return max(0.0, min(1.0, score))


def drop_reason(entity: RawEntity, config: PipelineConfig) -> str | None:
    """Return why `entity` is noise, or None when it should be kept."""
    if config.skip_local_variables and entity.kind == "variable" and entity.scope == "local":
        return "local variable"
    if config.skip_primitive_types and entity.kind == "typeRef" and entity.name.lower() in PRIMITIVE_TYPES:
        return "primitive type"
    if config.skip_asset_imports and entity.kind == "import" and is_asset_import(entity.source):
        return "asset import"
    if config.skip_private_members and entity.is_private:
        return "private member"
    return None


def apply_relevance_filter(entities: Iterable[RawEntity], config: PipelineConfig) -> list[NormalizedEntity]:
    out: list[NormalizedEntity] = []
    dropped = 0
    for e in entities:
        reason = drop_reason(e, config)
        if reason is not None:
            dropped += 1
            logger.debug("drop %s %r: %s", e.kind, e.name, reason)
            continue
        out.append(
            promote(
                e,
                NormalizedEntity,
                relevance_score=relevance_score(e),
                filter_reason="private member" if e.is_private else None,
                normalized_name=e.name,
            )
        )
    logger.debug("relevance filter kept %d, dropped %d", len(out), dropped)
    return out
