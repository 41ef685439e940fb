from __future__ import annotations

import logging

from .models import NormalizedEntity, PipelineConfig, promote
from .packages import PackageResolver


logger = logging.getLogger(__name__)

RUNTIME_BUILTINS = frozenset(["fs", "path", "crypto", "http", "https", "os", "util", "events"])


def categorize(source: str) -> str:
    if source in RUNTIME_BUILTINS or source.startswith("node:"):
        return "builtin"
    if source.startswith("./") or source.startswith("../") or source.startswith(".\\") or source.startswith("..\\"):
        return "internal"
    return "external"


def normalize(
    entities: list[NormalizedEntity],
    file_path: str,
    config: PipelineConfig,
    *,
    resolver: PackageResolver | None = None,
) -> list[NormalizedEntity]:
    resolver = resolver or PackageResolver()
    out: list[NormalizedEntity] = []
    for e in entities:
        normalized_name = e.name
        category = "internal"
        package_info = None

        if e.kind == "import" and e.source:
            category = categorize(e.source)
            if category == "internal" and config.normalize_path_separators:
                normalized_name = e.source.replace("\\", "/")
            elif category == "external" and config.resolve_package_info:
                package_info = resolver.resolve(e.source, file_path)

        out.append(
            promote(
                e,
                NormalizedEntity,
                normalized_name=normalized_name,
                category=category,
                package_info=package_info,
            )
        )
    logger.debug(
        "normalized %d entities (%d external)", len(out), sum(1 for e in out if e.category == "external")
    )
    return out
