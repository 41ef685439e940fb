from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Literal, Mapping, TypeVar

from ..errors import ValidationError


EntityKind = Literal["import", "export", "call", "class", "function", "variable", "typeRef"]
Scope = Literal["local", "module", "global"]
Category = Literal["internal", "external", "builtin"]
RelationshipType = Literal[
    "imports",
    "exports",
    "calls",
    "extends",
    "implements",
    "uses",
    "depends-on",
    "references",
]
SemanticType = Literal[
    "react-component",
    "react-hook",
    "react-context",
    "api-handler",
    "api-route",
    "api-middleware",
    "service",
    "repository",
    "model",
    "dto",
    "entity",
    "utility",
    "helper",
    "config",
    "constant",
    "enum",
    "type-definition",
    "test-suite",
    "test-helper",
    "unknown",
]

ENTITY_KINDS: frozenset[str] = frozenset(
    ["import", "export", "call", "class", "function", "variable", "typeRef"]
)
ENTITY_SCOPES: frozenset[str] = frozenset(["local", "module", "global"])


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, float(x)))


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str | None = None
    manager: str | None = None  # npm | yarn | pnpm
    is_dev_dependency: bool = False


@dataclass(frozen=True)
class Relationship:
    target: str
    type: RelationshipType
    confidence: float
    evidence: tuple[str, ...] = ()


@dataclass(frozen=True)
class DocParam:
    name: str
    type: str | None = None
    description: str = ""
    optional: bool = False
    default: str | None = None


@dataclass(frozen=True)
class DocReturn:
    type: str | None = None
    description: str = ""


@dataclass(frozen=True)
class DocTag:
    tag: str
    name: str | None = None
    type: str | None = None
    description: str = ""


@dataclass(frozen=True)
class DocBlock:
    description: str
    summary: str
    params: tuple[DocParam, ...] = ()
    returns: DocReturn | None = None
    throws: tuple[DocReturn, ...] = ()
    tags: tuple[DocTag, ...] = ()
    examples: tuple[str, ...] = ()
    deprecated: str | None = None
    since: str | None = None
    author: str | None = None
    is_async: bool = False


@dataclass
class RawEntity:
    """One syntactic mention produced by a language extractor for one file."""

    kind: EntityKind
    name: str
    source: str | None = None
    specifiers: list[str] | None = None
    line: int | None = None
    scope: Scope = "module"
    is_private: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def identity_key(self) -> tuple[str, str, str | None]:
        return (self.kind, self.name, self.source)

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "RawEntity":
        kind = d.get("kind", d.get("type"))
        if not isinstance(kind, str) or kind not in ENTITY_KINDS:
            raise ValidationError(f"Unknown entity kind: {kind!r}")
        name = d.get("name")
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Entity without a name: {dict(d)!r}")
        specifiers = d.get("specifiers")
        scope = d.get("scope") or "module"
        if not isinstance(scope, str) or scope not in ENTITY_SCOPES:
            raise ValidationError(f"Unknown scope for {name!r}: {scope!r}")
        line = d.get("line")
        if line is not None:
            try:
                line = int(line)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Invalid line for {name!r}: {line!r}") from e
        return cls(
            kind=kind,
            name=name,
            source=d.get("source") or None,
            specifiers=[str(s) for s in specifiers] if specifiers else None,
            line=line,
            scope=scope,
            is_private=bool(d.get("isPrivate", d.get("is_private", False))),
            metadata=dict(d.get("metadata") or {}),
        )


@dataclass
class NormalizedEntity(RawEntity):
    relevance_score: float = 1.0
    filter_reason: str | None = None
    occurrences: int = 1
    merged_from: list[str] = field(default_factory=list)
    normalized_name: str = ""
    category: Category = "internal"
    package_info: PackageInfo | None = None


@dataclass
class EnrichedEntity(NormalizedEntity):
    confidence: float = 0.0
    semantic_type: SemanticType = "unknown"
    relationships: list[Relationship] = field(default_factory=list)
    documentation: str | None = None
    doc_block: DocBlock | None = None
    doc_embedding: dict[str, Any] | None = None
    location: tuple[str, int] | None = None

    @property
    def node_id(self) -> str:
        return f"entity:{self.name}:{self.kind}"


E = TypeVar("E", bound=RawEntity)


def promote(entity: RawEntity, cls: type[E], **changes: Any) -> E:
    """Copy `entity` into a richer stage type, carrying every shared field."""
    values = {f.name: getattr(entity, f.name) for f in fields(entity)}
    values["metadata"] = dict(entity.metadata)
    if entity.specifiers is not None:
        values["specifiers"] = list(entity.specifiers)
    if "merged_from" in values:
        values["merged_from"] = list(values["merged_from"])
    if "relationships" in values:
        values["relationships"] = list(values["relationships"])
    values.update(changes)
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in values.items() if k in known})


@dataclass(frozen=True)
class PipelineConfig:
    # Relevance filter
    skip_local_variables: bool = True
    skip_primitive_types: bool = True
    skip_asset_imports: bool = True
    skip_private_members: bool = False

    # Deduplication
    merge_identical_entities: bool = True

    # Normalization
    resolve_package_info: bool = True
    normalize_path_separators: bool = True

    # Enrichment
    extract_documentation: bool = True
    infer_relationships: bool = True
    calculate_confidence: bool = True
    discover_existing_entities: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "PipelineConfig":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"Unknown pipeline option(s): {', '.join(unknown)}")
        for k, v in data.items():
            if not isinstance(v, bool):
                raise ValidationError(f"Pipeline option {k} must be a boolean, got {v!r}")
        return cls(**data)


@dataclass(frozen=True)
class PipelineStats:
    total_raw: int
    total_filtered: int
    discarded_count: int
    deduplicated_count: int
    final_count: int
    processing_time_ms: float


@dataclass(frozen=True)
class PipelineResult:
    original: list[RawEntity]
    filtered: list[NormalizedEntity]
    deduplicated: list[NormalizedEntity]
    normalized: list[NormalizedEntity]
    static_enriched: list[EnrichedEntity]
    enriched: list[EnrichedEntity]
    stats: PipelineStats
