"""Scoring, weighting and re-ranking of retrieved contexts.

Every coefficient is a module-level constant; scores are clipped to [0, 1].
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone

from .models import IndexEntry, RetrievalOptions, RetrievedContext


MIN_CANDIDATE_SCORE = 0.3

# Code graph: per query token found in the node label / node id.
LABEL_MATCH = 0.4
ID_MATCH = 0.3

# Indexes: per query token found in title / any keyword / content.
TITLE_MATCH = 0.4
KEYWORD_MATCH = 0.3
CONTENT_MATCH = 0.2
CATEGORY_BONUS = 0.2

# Re-ranking factors.
OVERLAP_FACTOR = 0.5
CATEGORY_BOOST = 1.3
RECENT_30D_BOOST = 1.2
RECENT_90D_BOOST = 1.1
QUALITY_BOOST = 1.1
QUALITY_MIN_CHARS = 200
QUALITY_MAX_CHARS = 2000

SNIPPET_CHARS = 200
SNIPPET_LEAD = 50

SUBGRAPH_MIN_NODES = 500
SUBGRAPH_NODES_PER_RESULT = 50
SUBGRAPH_DEPTH = 2

# Numeric timestamps above this are epoch milliseconds.
EPOCH_MS_THRESHOLD = 1e11


def query_tokens(query: str) -> list[str]:
    return query.lower().split()


def subgraph_cap(max_results: int) -> int:
    return max(SUBGRAPH_MIN_NODES, SUBGRAPH_NODES_PER_RESULT * int(max_results))


def code_score(label: str, node_id: str, tokens: list[str]) -> float:
    label = label.lower()
    node_id = node_id.lower()
    score = 0.0
    for t in tokens:
        if t in label:
            score += LABEL_MATCH
        if t in node_id:
            score += ID_MATCH
    return min(score, 1.0)


def index_score(entry: IndexEntry, tokens: list[str], category: str | None = None) -> float:
    title = entry.title.lower()
    content = entry.content.lower()
    keywords = [k.lower() for k in entry.keywords]

    score = 0.0
    for t in tokens:
        if t in title:
            score += TITLE_MATCH
    for t in tokens:
        if any(t in k for k in keywords):
            score += KEYWORD_MATCH
    for t in tokens:
        if t in content:
            score += CONTENT_MATCH
    if category and entry.category == category:
        score += CATEGORY_BONUS
    return min(score, 1.0)


def snippet_around(content: str, tokens: list[str]) -> str:
    lower = content.lower()
    hits = [p for p in (lower.find(t) for t in tokens) if p != -1]
    if not hits:
        return content[:SNIPPET_CHARS] + ("..." if len(content) > SNIPPET_CHARS else "")

    pos = min(hits)
    start = max(0, pos - SNIPPET_LEAD)
    end = min(len(content), pos + SNIPPET_CHARS - SNIPPET_LEAD)
    out = content[start:end]
    if start > 0:
        out = "..." + out
    if end < len(content):
        out = out + "..."
    return out


def head_snippet(content: str) -> str:
    return content if len(content) <= SNIPPET_CHARS else content[:SNIPPET_CHARS] + "..."


def apply_weights(
    contexts: list[RetrievedContext],
    options: RetrievalOptions,
    *,
    enabled_sources: int,
) -> list[RetrievedContext]:
    # A lone source keeps its raw scores.
    if enabled_sources == 1:
        return list(contexts)
    return [replace(c, score=c.score * options.weight_for(c.source)) for c in contexts]


def parse_timestamp(value: object) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts > EPOCH_MS_THRESHOLD:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def rerank_factor(ctx: RetrievedContext, tokens: list[str], options: RetrievalOptions, *, now: float) -> float:
    factor = 1.0

    content = ctx.content.lower()
    if tokens:
        overlap = sum(1 for t in tokens if t in content) / len(tokens)
        factor *= 1.0 + OVERLAP_FACTOR * overlap

    if options.category and ctx.metadata.get("category") == options.category:
        factor *= CATEGORY_BOOST

    modified = parse_timestamp(ctx.metadata.get("lastModified"))
    if modified is not None:
        days = (now - modified.timestamp()) / 86400.0
        if days < 30:
            factor *= RECENT_30D_BOOST
        elif days < 90:
            factor *= RECENT_90D_BOOST

    if QUALITY_MIN_CHARS <= len(ctx.content) <= QUALITY_MAX_CHARS:
        factor *= QUALITY_BOOST
    return factor


def rerank(
    contexts: list[RetrievedContext],
    query: str,
    options: RetrievalOptions,
    *,
    now: float | None = None,
) -> list[RetrievedContext]:
    now = time.time() if now is None else now
    tokens = query_tokens(query)
    return [replace(c, score=min(c.score * rerank_factor(c, tokens, options, now=now), 1.0)) for c in contexts]


def rank(contexts: list[RetrievedContext]) -> list[RetrievedContext]:
    return sorted(contexts, key=lambda c: (-c.score, c.id))


def source_breakdown(contexts: list[RetrievedContext]) -> dict[str, int]:
    counts = Counter(c.source for c in contexts)
    return {s: counts.get(s, 0) for s in ("code", "documentation", "prevention", "task", "metadata")}
