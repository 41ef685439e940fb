from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    # Default DB path used by the CLI.
    db_path: str = os.getenv("CODEATLAS_DB_PATH", "./data/graph.db")

    # Workspace root and the prebuilt docs/rules/tasks indexes (relative to it).
    workspace: str = os.getenv("CODEATLAS_WORKSPACE", ".")
    index_dir: str = os.getenv("CODEATLAS_INDEX_DIR", ".codeatlas/indexes")

    # Embeddings
    embed_model: str = os.getenv("CODEATLAS_EMBED_MODEL", "BAAI/bge-small-en-v1.5")

    log_level: str = os.getenv("CODEATLAS_LOG_LEVEL", "WARNING")

    def index_path(self, workspace: str | os.PathLike[str] | None = None) -> Path:
        root = Path(workspace if workspace is not None else self.workspace)
        p = Path(self.index_dir)
        return p if p.is_absolute() else root / p
