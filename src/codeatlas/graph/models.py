from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GraphNode:
    id: str
    label: str
    type: str
    metadata: dict[str, Any] = field(default_factory=dict)
    updated_at: int | None = None  # unix seconds


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    type: str
    confidence: float = 1.0
    evidence: tuple[str, ...] = ()


@dataclass(frozen=True)
class Subgraph:
    nodes: list[GraphNode]
    edges: list[GraphEdge]


@dataclass(frozen=True)
class ContentChunk:
    """A content fragment (code chunk, doc comment, markdown section).

    `metadata` may carry `symbolName`, `chunkType`, `filePath`, `lineStart`,
    `lineEnd`.
    """

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def symbol_name(self) -> str | None:
        return self.metadata.get("symbolName")

    @property
    def chunk_type(self) -> str | None:
        return self.metadata.get("chunkType")
