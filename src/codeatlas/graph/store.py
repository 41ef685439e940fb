from __future__ import annotations

from typing import Protocol

from .models import ContentChunk, GraphEdge, Subgraph


class GraphStore(Protocol):
    """Port to the persisted knowledge graph.

    Implementations own write consistency; callers hold no locks.
    """

    def create_relationships(self, edges: list[GraphEdge]) -> int: ...

    def get_subgraph(self, seed_ids: list[str] | None, depth: int, max_nodes: int) -> Subgraph: ...

    def get_related_chunks(self, ids: list[str], depth: int) -> list[ContentChunk]: ...

    def get_chunk_contents(self, node_ids: list[str]) -> dict[str, str]: ...
