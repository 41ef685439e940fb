from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path

from ..errors import ValidationError
from ..retrieval.models import RetrievalOptions
from ..retrieval.retriever import HybridRetriever
from .metrics import mean, recall_at_k


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvalRow:
    question: str
    required_ids: list[str]


@dataclass(frozen=True)
class EvalSummary:
    n: int
    k: int
    retrieval_recall: float
    misses: list[str]


def load_eval_set(path: str | Path) -> list[EvalRow]:
    p = Path(path)
    rows: list[EvalRow] = []
    for lineno, line in enumerate(p.read_text(encoding="utf-8", errors="replace").splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            raw = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValidationError(f"{p}:{lineno}: invalid JSON ({e.msg})") from e
        if not isinstance(raw, dict) or not str(raw.get("question") or "").strip():
            raise ValidationError(f"{p}:{lineno}: row needs a non-empty 'question'")
        rows.append(EvalRow(question=str(raw["question"]), required_ids=[str(x) for x in raw.get("required_ids") or []]))
    return rows


def run_eval(
    *,
    retriever: HybridRetriever,
    eval_path: str | Path,
    k: int,
    options: RetrievalOptions | None = None,
) -> EvalSummary:
    rows = load_eval_set(eval_path)
    base = options or RetrievalOptions()
    opts = replace(base, max_results=int(k))

    scores: list[float] = []
    misses: list[str] = []
    for i, row in enumerate(rows, start=1):
        result = retriever.retrieve_sync(row.question, opts)
        score = recall_at_k(row.required_ids, [c.id for c in result.contexts])
        scores.append(score)
        if score == 0.0:
            misses.append(row.question)

        if i % 10 == 0:
            logger.info("Evaluated %d/%d", i, len(rows))

    return EvalSummary(n=len(rows), k=int(k), retrieval_recall=mean(scores), misses=misses)
