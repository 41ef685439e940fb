from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from .config import Settings
from .entities.models import PipelineConfig, RawEntity
from .entities.pipeline import EntityPipeline
from .errors import ValidationError
from .eval.run_eval import run_eval
from .graph.models import ContentChunk
from .graph.persist import save_entities
from .graph.sqlite_graph import SqliteGraphStore
from .index.embedder import FastEmbedService
from .retrieval.models import DEFAULT_SOURCES, RetrievalOptions
from .retrieval.retriever import HybridRetriever


app = typer.Typer(add_completion=False, help="CodeAtlas: code knowledge graph and hybrid context retrieval.")
console = Console()


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default: CODEATLAS_LOG_LEVEL)"),
):
    level = (log_level or Settings().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_time=False, show_path=False)],
        force=True,
    )


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path}: invalid JSON ({e.msg})") from e


def load_raw_entities(path: Path) -> list[RawEntity]:
    data = _read_json(path)
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        raise ValidationError(f"{path}: expected a JSON array of entity objects")
    return [RawEntity.from_dict(d) for d in data]


def load_chunks(path: Path) -> list[ContentChunk]:
    data = _read_json(path)
    if not isinstance(data, list):
        raise ValidationError(f"{path}: expected a JSON array of chunks")
    out: list[ContentChunk] = []
    for i, d in enumerate(data):
        if not isinstance(d, dict) or "content" not in d:
            raise ValidationError(f"{path}: chunk #{i} needs 'content'")
        out.append(ContentChunk(id=str(d.get("id") or f"{path.stem}:{i}"), content=str(d["content"]), metadata=dict(d.get("metadata") or {})))
    return out


def _fail(e: ValidationError) -> typer.Exit:
    console.print(str(e), style="red", markup=False)
    return typer.Exit(code=2)


@app.command()
def scan(
    entities: Path = typer.Option(..., "--entities", exists=True, file_okay=True, dir_okay=False, help="Raw entities JSON"),
    file: str = typer.Option(..., "--file", help="Path of the file the entities were extracted from"),
    source: Path | None = typer.Option(None, "--source", exists=True, dir_okay=False, help="Source text of that file"),
    chunks: Path | None = typer.Option(None, "--chunks", exists=True, dir_okay=False, help="Content chunks JSON"),
    config: Path | None = typer.Option(None, "--config", exists=True, dir_okay=False, help="Pipeline options JSON"),
    db: Path | None = typer.Option(None, "--db", help="SQLite graph DB (default: CODEATLAS_DB_PATH)"),
    embed: bool = typer.Option(False, "--embed/--no-embed", help="Embed doc blocks with fastembed"),
):
    """Run the entity pipeline on one file and persist the result."""
    settings = Settings()
    try:
        raw = load_raw_entities(entities)
        chunk_list = load_chunks(chunks) if chunks is not None else None
        cfg = PipelineConfig.from_mapping(_read_json(config)) if config is not None else PipelineConfig()
    except ValidationError as e:
        raise _fail(e)
    source_code = source.read_text(encoding="utf-8", errors="replace") if source is not None else None

    store = SqliteGraphStore.open(db or settings.db_path)
    try:
        pipeline = EntityPipeline(
            cfg,
            graph_store=store,
            embedding_service=FastEmbedService(settings.embed_model) if embed else None,
        )
        result = pipeline.process(raw, file, chunks=chunk_list, source_code=source_code)
        saved = save_entities(store, result.enriched, file, chunks=chunk_list)
    finally:
        store.close()

    s = result.stats
    console.print(f"Raw entities: {s.total_raw}")
    console.print(f"Kept after filter: {s.total_filtered} (discarded {s.discarded_count})")
    console.print(f"Merged duplicates: {s.deduplicated_count}")
    console.print(f"Enriched: {s.final_count} in {s.processing_time_ms:.1f} ms")
    console.print(f"Saved: {saved.nodes} nodes, {saved.edges} edges, {saved.chunks} chunks")


@app.command()
def retrieve(
    query: str = typer.Argument(...),
    db: Path | None = typer.Option(None, "--db", help="SQLite graph DB (default: CODEATLAS_DB_PATH)"),
    workspace: Path | None = typer.Option(None, "--workspace", help="Workspace root holding the indexes"),
    source: list[str] | None = typer.Option(None, "--source", help="Source to query (repeatable)"),
    strategy: str = typer.Option("hybrid", "--strategy", help="hybrid | semantic | graph | keyword"),
    max_results: int = typer.Option(10, "--max-results"),
    min_score: float = typer.Option(0.5, "--min-score"),
    rerank: bool = typer.Option(True, "--rerank/--no-rerank"),
    category: str | None = typer.Option(None, "--category"),
    show_text: bool = typer.Option(False, "--show-text", help="Also print full context text"),
):
    """Retrieve ranked contexts for a query."""
    settings = Settings()
    db_path = db or Path(settings.db_path)
    opts = RetrievalOptions(
        strategy=strategy,  # type: ignore[arg-type]
        sources=tuple(source) if source else DEFAULT_SOURCES,
        max_results=max_results,
        min_score=min_score,
        rerank=rerank,
        category=category,
    )

    store = SqliteGraphStore.open(db_path) if db_path.exists() else None
    try:
        retriever = HybridRetriever.create(store=store, index_dir=settings.index_path(workspace), settings=settings)
        try:
            result = retriever.retrieve_sync(query, opts)
        except ValidationError as e:
            raise _fail(e)
    finally:
        if store is not None:
            store.close()

    m = result.metadata
    table = Table(title=f"{m.returned} of {m.total_found} contexts ({m.retrieval_time_ms:.0f} ms)")
    table.add_column("#", justify="right", width=4)
    table.add_column("score", justify="right", width=8)
    table.add_column("source")
    table.add_column("id")
    table.add_column("snippet")

    for i, c in enumerate(result.contexts, start=1):
        preview = " ".join((c.snippet or c.content).split())
        table.add_row(Text(str(i)), Text(f"{c.score:.3f}"), Text(c.source), Text(c.id), Text(preview))
    console.print(table)
    console.print(", ".join(f"{k}={v}" for k, v in m.source_breakdown.items() if v), markup=False)

    if show_text:
        for c in result.contexts:
            console.print("\n" + "=" * 80, markup=False)
            console.print(c.id, markup=False, style="bold")
            console.print(c.content, markup=False)


@app.command()
def stats(
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
):
    """Show graph stats."""
    store = SqliteGraphStore.open(db)
    try:
        counts = store.counts()
    finally:
        store.close()

    table = Table(title="CodeAtlas Stats")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Nodes", str(counts["nodes"]))
    table.add_row("Edges", str(counts["edges"]))
    table.add_row("Chunks", str(counts["chunks"]))
    console.print(table)

    if counts["nodes_by_type"]:
        t2 = Table(title="Nodes by Type")
        t2.add_column("type")
        t2.add_column("count")
        for k, v in counts["nodes_by_type"].items():
            t2.add_row(k, str(v))
        console.print(t2)


@app.command("eval")
def eval_(
    eval_set: Path = typer.Option(..., "--eval-set", exists=True, file_okay=True, dir_okay=False),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    workspace: Path | None = typer.Option(None, "--workspace"),
    k: int = typer.Option(10, "-k", help="Top-k retrieval"),
    min_score: float = typer.Option(0.5, "--min-score"),
):
    """Evaluate retrieval recall@k over a JSONL question set."""
    settings = Settings()
    store = SqliteGraphStore.open(db)
    try:
        retriever = HybridRetriever.create(store=store, index_dir=settings.index_path(workspace), settings=settings)
        try:
            summary = run_eval(retriever=retriever, eval_path=eval_set, k=k, options=RetrievalOptions(min_score=min_score))
        except ValidationError as e:
            raise _fail(e)
    finally:
        store.close()

    console.print(f"Examples: {summary.n}")
    console.print(f"Retrieval recall@{summary.k}: {summary.retrieval_recall:.3f}")
    for q in summary.misses[:10]:
        console.print(f"- miss: {q}", markup=False, style="yellow")


if __name__ == "__main__":
    app()
