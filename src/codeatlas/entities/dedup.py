from __future__ import annotations

import logging

from .models import NormalizedEntity, PipelineConfig, promote


logger = logging.getLogger(__name__)


def provenance_tag(entity: NormalizedEntity) -> str:
    return f"line-{entity.line}" if entity.line is not None else "line-unknown"


def deduplicate(entities: list[NormalizedEntity], config: PipelineConfig) -> list[NormalizedEntity]:
    """Merge entities sharing (kind, name, source); first-seen order is kept.

    The survivor counts occurrences, records a provenance tag per merged
    mention and unions import specifiers into a sorted list.
    """
    if not config.merge_identical_entities:
        return [promote(e, NormalizedEntity, occurrences=1, merged_from=[]) for e in entities]

    by_key: dict[tuple[str, str, str | None], NormalizedEntity] = {}
    for e in entities:
        key = e.identity_key
        existing = by_key.get(key)
        if existing is None:
            first = promote(e, NormalizedEntity, occurrences=1, merged_from=[])
            if first.specifiers is not None:
                first.specifiers = sorted(set(first.specifiers))
            by_key[key] = first
            continue

        existing.occurrences += 1
        existing.merged_from.append(provenance_tag(e))
        if e.kind == "import" and e.specifiers:
            existing.specifiers = sorted(set(existing.specifiers or []) | set(e.specifiers))

    out = list(by_key.values())
    logger.debug("dedup merged %d duplicates into %d entities", len(entities) - len(out), len(out))
    return out
