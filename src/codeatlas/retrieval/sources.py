from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from ..errors import SourceUnavailable
from ..graph.store import GraphStore
from .indexes import INDEX_FILES, load_index
from .models import RetrievalOptions, RetrievedContext
from .scoring import (
    MIN_CANDIDATE_SCORE,
    SUBGRAPH_DEPTH,
    code_score,
    head_snippet,
    index_score,
    query_tokens,
    snippet_around,
    subgraph_cap,
)


logger = logging.getLogger(__name__)


class ContextSource(Protocol):
    """One provenance of contexts. Raises SourceUnavailable when it cannot answer."""

    name: str

    def retrieve(self, query: str, options: RetrievalOptions) -> list[RetrievedContext]: ...


def _iso(ts: int | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).isoformat()


class CodeGraphSource:
    name = "code"

    def __init__(self, store: GraphStore):
        self.store = store

    def retrieve(self, query: str, options: RetrievalOptions) -> list[RetrievedContext]:
        tokens = query_tokens(query)
        try:
            graph = self.store.get_subgraph(None, SUBGRAPH_DEPTH, subgraph_cap(options.max_results))
            scored = [(n, code_score(n.label, n.id, tokens)) for n in graph.nodes]
            scored = [(n, s) for n, s in scored if s >= MIN_CANDIDATE_SCORE]
            texts = self.store.get_chunk_contents([n.id for n, _ in scored])
            out: list[RetrievedContext] = []
            for node, score in scored:
                content = texts.get(node.id) or node.label
                meta = {
                    "label": node.label,
                    "type": node.type,
                    "category": node.metadata.get("semanticType"),
                    "lastModified": _iso(node.updated_at),
                }
                if "line" in node.metadata:
                    meta["line"] = node.metadata["line"]
                out.append(
                    RetrievedContext(
                        id=node.id,
                        content=content,
                        source="code",
                        score=score,
                        file_path=node.metadata.get("filePath"),
                        metadata=meta,
                        snippet=head_snippet(content),
                    )
                )
        except (sqlite3.Error, OSError) as e:
            raise SourceUnavailable(f"Graph store unavailable: {e}") from e
        logger.debug("code: %d of %d nodes matched", len(out), len(graph.nodes))
        return out


class IndexSource:
    """Contexts from a prebuilt JSON index (documentation, prevention rules, tasks)."""

    def __init__(self, name: str, path: str | os.PathLike[str], *, key: str | None = None):
        self.name = name
        self.path = Path(path)
        self.key = key

    def retrieve(self, query: str, options: RetrievalOptions) -> list[RetrievedContext]:
        tokens = query_tokens(query)
        out: list[RetrievedContext] = []
        for entry in load_index(self.path, self.key):
            score = index_score(entry, tokens, options.category)
            if score < MIN_CANDIDATE_SCORE:
                continue
            out.append(
                RetrievedContext(
                    id=entry.id,
                    content=entry.content,
                    source=self.name,  # type: ignore[arg-type]
                    score=score,
                    file_path=entry.path,
                    metadata={
                        "title": entry.title,
                        "category": entry.category,
                        "keywords": list(entry.keywords),
                        "lastModified": entry.last_modified,
                    },
                    snippet=snippet_around(entry.content, tokens),
                )
            )
        logger.debug("%s: %d entries matched", self.name, len(out))
        return out


def index_sources(index_dir: str | os.PathLike[str]) -> list[IndexSource]:
    root = Path(index_dir)
    return [IndexSource(name, root / fname, key=key) for name, (fname, key) in INDEX_FILES.items()]
