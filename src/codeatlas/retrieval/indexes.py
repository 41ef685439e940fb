from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from ..errors import SourceUnavailable
from .models import IndexEntry


# Index file name and the key it may nest its entries under.
INDEX_FILES: dict[str, tuple[str, str]] = {
    "documentation": ("docs.json", "docs"),
    "prevention": ("rules.json", "rules"),
    "task": ("tasks.json", "tasks"),
}


def _entry(raw: Any, n: int) -> IndexEntry | None:
    if not isinstance(raw, dict):
        return None
    keywords = raw.get("keywords")
    if not isinstance(keywords, list):
        keywords = []
    last_modified = raw.get("lastModified", raw.get("last_modified"))
    if isinstance(last_modified, bool) or not isinstance(last_modified, (str, int, float)):
        last_modified = None
    return IndexEntry(
        id=str(raw.get("id") or f"entry-{n}"),
        title=str(raw.get("title") or ""),
        path=str(raw["path"]) if raw.get("path") else None,
        content=str(raw.get("content") or ""),
        category=str(raw["category"]) if raw.get("category") else None,
        keywords=tuple(str(k) for k in keywords if k is not None),
        last_modified=last_modified,
    )


def load_index(path: str | os.PathLike[str], key: str | None = None) -> list[IndexEntry]:
    """Read a prebuilt index: a JSON array of entries, or an object holding one under `key`."""
    p = Path(path)
    if not p.exists():
        raise SourceUnavailable(f"Index not found: {p}")
    try:
        data = json.loads(p.read_text(encoding="utf-8", errors="replace"))
    except (OSError, json.JSONDecodeError) as e:
        raise SourceUnavailable(f"Unreadable index {p}: {e}") from e

    if isinstance(data, dict):
        data = data.get(key, []) if key else []
    if not isinstance(data, list):
        raise SourceUnavailable(f"Index {p} does not hold a list of entries")

    out: list[IndexEntry] = []
    try:
        for i, raw in enumerate(data):
            entry = _entry(raw, i)
            if entry is not None:
                out.append(entry)
    except (TypeError, ValueError) as e:
        raise SourceUnavailable(f"Malformed entry in index {p}: {e}") from e
    return out
