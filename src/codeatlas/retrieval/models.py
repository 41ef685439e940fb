from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from ..errors import ValidationError


Source = Literal["code", "documentation", "task", "prevention", "metadata"]
Strategy = Literal["hybrid", "semantic", "graph", "keyword"]

SOURCES: tuple[str, ...] = ("code", "documentation", "prevention", "task", "metadata")
STRATEGIES: tuple[str, ...] = ("hybrid", "semantic", "graph", "keyword")
DEFAULT_SOURCES: tuple[str, ...] = ("code", "documentation", "prevention")


@dataclass(frozen=True)
class IndexEntry:
    id: str
    title: str = ""
    path: str | None = None
    content: str = ""
    category: str | None = None
    keywords: tuple[str, ...] = ()
    last_modified: str | float | None = None  # ISO-8601 or epoch (s or ms)


@dataclass(frozen=True)
class RetrievedContext:
    id: str
    content: str
    source: Source
    score: float
    file_path: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    snippet: str | None = None


@dataclass(frozen=True)
class RetrievalOptions:
    strategy: Strategy = "hybrid"
    sources: tuple[str, ...] = DEFAULT_SOURCES
    max_results: int = 10
    min_score: float = 0.5
    rerank: bool = True
    category: str | None = None

    code_weight: float = 0.4
    doc_weight: float = 0.3
    prevention_weight: float = 0.2
    task_weight: float = 0.1

    def validate(self) -> "RetrievalOptions":
        if self.strategy not in STRATEGIES:
            raise ValidationError(f"Unknown strategy: {self.strategy!r} (expected one of {', '.join(STRATEGIES)})")
        unknown = [s for s in self.sources if s not in SOURCES]
        if unknown:
            raise ValidationError(f"Unknown source(s): {', '.join(map(str, unknown))}")
        if int(self.max_results) < 1:
            raise ValidationError("max_results must be >= 1")
        if not 0.0 <= float(self.min_score) <= 1.0:
            raise ValidationError("min_score must be within [0, 1]")
        for name in ("code_weight", "doc_weight", "prevention_weight", "task_weight"):
            if float(getattr(self, name)) < 0.0:
                raise ValidationError(f"{name} must be >= 0")
        return self

    def weight_for(self, source: str) -> float:
        return {
            "code": self.code_weight,
            "documentation": self.doc_weight,
            "prevention": self.prevention_weight,
            "task": self.task_weight,
        }.get(source, 0.0)


@dataclass(frozen=True)
class RetrievalMetadata:
    query: str
    strategy: str
    total_found: int
    returned: int
    source_breakdown: dict[str, int]
    retrieval_time_ms: float
    reranked: bool


@dataclass(frozen=True)
class RetrievalResult:
    contexts: list[RetrievedContext]
    metadata: RetrievalMetadata
