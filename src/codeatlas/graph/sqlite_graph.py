from __future__ import annotations

import json
import os
import sqlite3
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Iterable

from .models import ContentChunk, GraphEdge, GraphNode, Subgraph


SCHEMA_VERSION = 1


def connect(db_path: str | os.PathLike[str]) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    # Retrieval sources read from worker threads.
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def init_graph(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
          key TEXT PRIMARY KEY,
          value TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS nodes (
          node_id TEXT PRIMARY KEY,
          label TEXT NOT NULL,
          type TEXT NOT NULL,
          metadata_json TEXT NOT NULL,
          updated_at INTEGER NOT NULL
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_nodes_label ON nodes(label);")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS edges (
          source TEXT NOT NULL,
          target TEXT NOT NULL,
          type TEXT NOT NULL,
          confidence REAL NOT NULL,
          evidence_json TEXT NOT NULL,
          PRIMARY KEY (source, target, type)
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_source ON edges(source);")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_edges_target ON edges(target);")

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS chunks (
          chunk_id TEXT PRIMARY KEY,
          content TEXT NOT NULL,
          metadata_json TEXT NOT NULL
        );
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS node_chunks (
          node_id TEXT NOT NULL,
          chunk_id TEXT NOT NULL REFERENCES chunks(chunk_id) ON DELETE CASCADE,
          PRIMARY KEY (node_id, chunk_id)
        );
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_node_chunks_chunk ON node_chunks(chunk_id);")

    conn.execute(
        "INSERT OR REPLACE INTO meta(key, value) VALUES(?, ?)",
        ("schema_version", str(SCHEMA_VERSION)),
    )
    conn.commit()


def _node(row: sqlite3.Row) -> GraphNode:
    return GraphNode(
        id=str(row["node_id"]),
        label=str(row["label"]),
        type=str(row["type"]),
        metadata=json.loads(row["metadata_json"]),
        updated_at=int(row["updated_at"]),
    )


def _edge(row: sqlite3.Row) -> GraphEdge:
    return GraphEdge(
        source=str(row["source"]),
        target=str(row["target"]),
        type=str(row["type"]),
        confidence=float(row["confidence"]),
        evidence=tuple(json.loads(row["evidence_json"])),
    )


def _placeholders(n: int) -> str:
    return ",".join(["?"] * n)


def _merge_metadata(old: dict[str, Any], new: dict[str, Any]) -> dict[str, Any]:
    meta = {**old, **new}
    count = new.get("occurrences")
    if not isinstance(count, int):
        return meta
    path = new.get("filePath")
    if not path:
        if isinstance(old.get("occurrences"), int):
            meta["occurrences"] = old["occurrences"] + count
        return meta
    by_file = dict(old.get("occurrencesByFile") or {})
    if not by_file and isinstance(old.get("occurrences"), int) and old.get("filePath"):
        by_file[old["filePath"]] = old["occurrences"]
    by_file[path] = count
    meta["occurrencesByFile"] = by_file
    meta["occurrences"] = sum(by_file.values())
    return meta


class SqliteGraphStore:
    """SQLite-backed knowledge graph: nodes, typed edges, linked content chunks.

    A single connection is shared across threads; every statement runs under
    one lock, which is what makes concurrent pipeline writes consistent.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = threading.RLock()
        init_graph(conn)

    @classmethod
    def open(cls, db_path: str | os.PathLike[str]) -> "SqliteGraphStore":
        return cls(connect(db_path))

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    # -- writes ---------------------------------------------------------

    def upsert_nodes(self, nodes: Iterable[GraphNode]) -> int:
        """Insert or merge nodes by id.

        Metadata is merged key by key. An integer `occurrences` entry is kept per
        `filePath` in `occurrencesByFile`, so rescanning a file replaces its
        count; `occurrences` is the sum over files. Without a `filePath` the
        count is added to the stored one.
        """
        now = int(time.time())
        n = 0
        with self._lock:
            for node in nodes:
                row = self.conn.execute(
                    "SELECT metadata_json FROM nodes WHERE node_id = ?", (node.id,)
                ).fetchone()
                meta = dict(node.metadata)
                if row is not None:
                    meta = _merge_metadata(json.loads(row["metadata_json"]), meta)
                elif isinstance(meta.get("occurrences"), int) and meta.get("filePath"):
                    meta["occurrencesByFile"] = {meta["filePath"]: meta["occurrences"]}
                self.conn.execute(
                    """
                    INSERT INTO nodes(node_id, label, type, metadata_json, updated_at)
                    VALUES(?, ?, ?, ?, ?)
                    ON CONFLICT(node_id) DO UPDATE SET
                      label=excluded.label,
                      type=excluded.type,
                      metadata_json=excluded.metadata_json,
                      updated_at=excluded.updated_at
                    """,
                    (
                        node.id,
                        node.label,
                        node.type,
                        json.dumps(meta, ensure_ascii=True, sort_keys=True),
                        int(node.updated_at if node.updated_at is not None else now),
                    ),
                )
                n += 1
            self.conn.commit()
        return n

    def create_relationships(self, edges: list[GraphEdge]) -> int:
        """Upsert edges on (source, target, type), keeping the highest confidence."""
        with self._lock:
            self.conn.executemany(
                """
                INSERT INTO edges(source, target, type, confidence, evidence_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(source, target, type) DO UPDATE SET
                  evidence_json = CASE WHEN excluded.confidence > confidence
                                       THEN excluded.evidence_json ELSE evidence_json END,
                  confidence = MAX(confidence, excluded.confidence)
                """,
                [
                    (e.source, e.target, e.type, float(e.confidence), json.dumps(list(e.evidence), ensure_ascii=True))
                    for e in edges
                ],
            )
            self.conn.commit()
        return len(edges)

    def add_chunks(self, chunks: Iterable[ContentChunk], *, node_id: str | None = None) -> int:
        n = 0
        with self._lock:
            for c in chunks:
                self.conn.execute(
                    "INSERT OR REPLACE INTO chunks(chunk_id, content, metadata_json) VALUES(?, ?, ?)",
                    (c.id, c.content, json.dumps(c.metadata, ensure_ascii=True, sort_keys=True)),
                )
                if node_id is not None:
                    self.conn.execute(
                        "INSERT OR IGNORE INTO node_chunks(node_id, chunk_id) VALUES(?, ?)",
                        (node_id, c.id),
                    )
                n += 1
            self.conn.commit()
        return n

    # -- reads ----------------------------------------------------------

    def get_node(self, node_id: str) -> GraphNode | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT node_id, label, type, metadata_json, updated_at FROM nodes WHERE node_id = ?",
                (node_id,),
            ).fetchone()
        return _node(row) if row is not None else None

    def _neighbors(self, ids: list[str]) -> set[str]:
        if not ids:
            return set()
        ph = _placeholders(len(ids))
        rows = self.conn.execute(
            f"SELECT source, target FROM edges WHERE source IN ({ph}) OR target IN ({ph})",
            [*ids, *ids],
        ).fetchall()
        out: set[str] = set()
        for r in rows:
            out.add(str(r["source"]))
            out.add(str(r["target"]))
        return out

    def _expand(self, seed_ids: list[str], depth: int, max_nodes: int) -> list[str]:
        # Breadth-first over undirected edges; order is deterministic.
        seen: list[str] = []
        visited: set[str] = set()
        queue = deque((sid, 0) for sid in dict.fromkeys(seed_ids))
        while queue and len(seen) < max_nodes:
            nid, d = queue.popleft()
            if nid in visited:
                continue
            visited.add(nid)
            seen.append(nid)
            if d >= depth:
                continue
            for nb in sorted(self._neighbors([nid]) - visited):
                queue.append((nb, d + 1))
        return seen

    def get_subgraph(self, seed_ids: list[str] | None, depth: int, max_nodes: int) -> Subgraph:
        """Nodes reachable from `seed_ids` within `depth` hops, capped at `max_nodes`.

        Without seeds, the most recently updated nodes are returned.
        """
        max_nodes = max(0, int(max_nodes))
        with self._lock:
            if seed_ids is None:
                rows = self.conn.execute(
                    """
                    SELECT node_id, label, type, metadata_json, updated_at
                    FROM nodes
                    ORDER BY updated_at DESC, node_id ASC
                    LIMIT ?
                    """,
                    (max_nodes,),
                ).fetchall()
                nodes = [_node(r) for r in rows]
            else:
                ids = self._expand(list(seed_ids), int(depth), max_nodes)
                nodes = []
                if ids:
                    rows = self.conn.execute(
                        f"SELECT node_id, label, type, metadata_json, updated_at FROM nodes WHERE node_id IN ({_placeholders(len(ids))})",
                        ids,
                    ).fetchall()
                    by_id = {str(r["node_id"]): r for r in rows}
                    nodes = [_node(by_id[i]) for i in ids if i in by_id]

            node_ids = [n.id for n in nodes]
            edges: list[GraphEdge] = []
            if node_ids:
                ph = _placeholders(len(node_ids))
                rows = self.conn.execute(
                    f"""
                    SELECT source, target, type, confidence, evidence_json
                    FROM edges
                    WHERE source IN ({ph}) AND target IN ({ph})
                    ORDER BY source, target, type
                    """,
                    [*node_ids, *node_ids],
                ).fetchall()
                edges = [_edge(r) for r in rows]
        return Subgraph(nodes=nodes, edges=edges)

    def get_related_chunks(self, ids: list[str], depth: int) -> list[ContentChunk]:
        """Chunks linked to `ids`, and to their neighbours up to `depth - 1` hops.

        Depth 1 means only the chunks linked to the given nodes themselves.
        """
        if not ids or depth < 1:
            return []
        with self._lock:
            node_ids = self._expand(list(ids), int(depth) - 1, 10_000)
            ph = _placeholders(len(node_ids))
            rows = self.conn.execute(
                f"""
                SELECT DISTINCT c.chunk_id, c.content, c.metadata_json
                FROM node_chunks nc
                JOIN chunks c ON c.chunk_id = nc.chunk_id
                WHERE nc.node_id IN ({ph})
                ORDER BY c.chunk_id
                """,
                node_ids,
            ).fetchall()
        return [
            ContentChunk(id=str(r["chunk_id"]), content=str(r["content"]), metadata=json.loads(r["metadata_json"]))
            for r in rows
        ]

    def get_chunk_contents(self, node_ids: list[str]) -> dict[str, str]:
        """First linked chunk text per node (by chunk id)."""
        if not node_ids:
            return {}
        with self._lock:
            rows = self.conn.execute(
                f"""
                SELECT nc.node_id, c.content
                FROM node_chunks nc
                JOIN chunks c ON c.chunk_id = nc.chunk_id
                WHERE nc.node_id IN ({_placeholders(len(node_ids))})
                ORDER BY nc.node_id, c.chunk_id
                """,
                list(node_ids),
            ).fetchall()
        out: dict[str, str] = {}
        for r in rows:
            out.setdefault(str(r["node_id"]), str(r["content"]))
        return out

    def counts(self) -> dict[str, Any]:
        with self._lock:
            nodes = int(self.conn.execute("SELECT COUNT(*) AS n FROM nodes").fetchone()["n"])
            edges = int(self.conn.execute("SELECT COUNT(*) AS n FROM edges").fetchone()["n"])
            chunks = int(self.conn.execute("SELECT COUNT(*) AS n FROM chunks").fetchone()["n"])
            by_type = self.conn.execute("SELECT type, COUNT(*) AS n FROM nodes GROUP BY type ORDER BY type").fetchall()
        return {
            "nodes": nodes,
            "edges": edges,
            "chunks": chunks,
            "nodes_by_type": {str(r["type"]): int(r["n"]) for r in by_type},
        }
