from __future__ import annotations

import logging
from dataclasses import dataclass

from ..entities.models import EnrichedEntity
from .models import ContentChunk, GraphEdge, GraphNode
from .sqlite_graph import SqliteGraphStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    nodes: int
    edges: int
    chunks: int


def file_node_id(file_path: str) -> str:
    return "file:" + file_path.replace("\\", "/")


def ref_node_id(target: str) -> str:
    return f"ref:{target}"


def _entity_node(e: EnrichedEntity, file_path: str) -> GraphNode:
    meta = {
        "name": e.name,
        "kind": e.kind,
        "semanticType": e.semantic_type,
        "confidence": round(e.confidence, 6),
        "category": e.category,
        "occurrences": e.occurrences,
        "filePath": file_path,
    }
    if e.line is not None:
        meta["line"] = e.line
    if e.source:
        meta["source"] = e.source
    if e.package_info is not None:
        meta["package"] = {"name": e.package_info.name, "version": e.package_info.version}
    if e.documentation:
        meta["documentation"] = e.documentation
    if any(r.type == "references" and r.target == e.node_id for r in e.relationships):
        meta["existingNode"] = True
    return GraphNode(id=e.node_id, label=e.name, type=e.kind, metadata=meta)


def save_entities(
    store: SqliteGraphStore,
    entities: list[EnrichedEntity],
    file_path: str,
    *,
    chunks: list[ContentChunk] | None = None,
) -> SaveResult:
    """Persist one file's enriched entities.

    Relationship targets that name an entity of this batch point at its node;
    targets that already are node ids are kept; anything else (modules,
    packages, names defined elsewhere) gets a `ref:` placeholder node.
    """
    fid = file_node_id(file_path)
    by_name: dict[str, str] = {}
    for e in entities:
        by_name.setdefault(e.name, e.node_id)

    nodes = [GraphNode(id=fid, label=file_path, type="file", metadata={"filePath": file_path})]
    nodes.extend(_entity_node(e, file_path) for e in entities)
    known_ids = {n.id for n in nodes}

    edges: list[GraphEdge] = []
    refs: dict[str, GraphNode] = {}
    for e in entities:
        edges.append(GraphEdge(fid, e.node_id, "contains", 1.0, ()))
        for rel in e.relationships:
            if rel.target in by_name:
                target = by_name[rel.target]
            elif rel.target.startswith(("entity:", "file:", "ref:")):
                target = rel.target
            else:
                target = ref_node_id(rel.target)
                if target not in known_ids and target not in refs:
                    refs[target] = GraphNode(id=target, label=rel.target, type="reference", metadata={})
            if target == e.node_id:
                continue
            edges.append(GraphEdge(e.node_id, target, rel.type, rel.confidence, rel.evidence))
    nodes.extend(refs.values())

    n_nodes = store.upsert_nodes(nodes)
    n_edges = store.create_relationships(edges)

    n_chunks = 0
    for c in chunks or []:
        owner = by_name.get(c.symbol_name or "")
        n_chunks += store.add_chunks([c], node_id=owner)

    logger.info("%s: saved %d nodes, %d edges, %d chunks", file_path, n_nodes, n_edges, n_chunks)
    return SaveResult(nodes=n_nodes, edges=n_edges, chunks=n_chunks)
