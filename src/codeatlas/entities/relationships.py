from __future__ import annotations

import re
from typing import Iterable

from .models import NormalizedEntity, Relationship, clamp01
from .packages import package_name


EXPLICIT_CONFIDENCE = 1.0
USAGE_BASE_CONFIDENCE = 0.7
USAGE_STEP = 0.05
USAGE_MAX_CONFIDENCE = 0.95
SAME_MODULE_EXPORT_CONFIDENCE = 0.8
IMPORT_SPECIFIER_CONFIDENCE = 0.9
EXTERNAL_PACKAGE_CONFIDENCE = 0.85
CALL_SITE_CONFIDENCE = 0.8

# Relationship confidence refinement
KNOWN_TARGET_BOOST = 0.1
EVIDENCE_BOOST = 0.05
UNRESOLVED_EXTERNAL_PENALTY = 0.1


def _word_re(name: str) -> re.Pattern:
    # \b does not work around `$`, so bound on identifier characters instead.
    return re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])")


def count_usages(name: str, text: str) -> int:
    return len(_word_re(name).findall(text))


def is_call(name: str, text: str) -> bool:
    return re.search(rf"(?<![\w$]){re.escape(name)}\s*\(", text) is not None


def is_jsx_usage(name: str, text: str) -> bool:
    return re.search(rf"<{re.escape(name)}[\s/>]", text) is not None


def import_relationships(entity: NormalizedEntity) -> list[Relationship]:
    if entity.kind == "import" and entity.source:
        return [Relationship(entity.source, "imports", EXPLICIT_CONFIDENCE, ("explicit-import-statement",))]
    return []


def call_site_relationships(entity: NormalizedEntity) -> list[Relationship]:
    if entity.kind == "call":
        return [Relationship(entity.name, "calls", CALL_SITE_CONFIDENCE, ("call-site",))]
    return []


def _split_names(text: str) -> list[str]:
    out = []
    for part in text.split(","):
        part = part.strip()
        if not part or "=" in part:
            continue
        # Drop generic arguments: Base<T> -> Base
        part = re.split(r"[<\[\s]", part, 1)[0]
        if part and part != "object":
            out.append(part)
    return out


def inheritance_relationships(entity: NormalizedEntity, declaration: str | None) -> list[Relationship]:
    if not declaration or entity.kind not in ("class", "export", "typeRef"):
        return []
    name = re.escape(entity.name)
    rels: list[Relationship] = []

    m = re.search(rf"\bclass\s+{name}\s*(?:<[^>{{]*>)?\s+extends\s+([\w$.]+)", declaration)
    if m:
        rels.append(Relationship(m.group(1), "extends", EXPLICIT_CONFIDENCE, ("class-declaration",)))

    m = re.search(rf"\bclass\s+{name}\b[^{{]*?\bimplements\s+([\w$.,\s<>]+?)\s*\{{", declaration)
    if m:
        for iface in _split_names(m.group(1)):
            rels.append(Relationship(iface, "implements", EXPLICIT_CONFIDENCE, ("class-declaration",)))

    m = re.search(rf"\binterface\s+{name}\s*(?:<[^>{{]*>)?\s+extends\s+([\w$.,\s<>]+?)\s*\{{", declaration)
    if m:
        for base in _split_names(m.group(1)):
            rels.append(Relationship(base, "extends", EXPLICIT_CONFIDENCE, ("interface-declaration",)))

    m = re.search(rf"^\s*class\s+{name}\s*\(([^)]*)\)\s*:", declaration, re.MULTILINE)
    if m:
        for base in _split_names(m.group(1)):
            rels.append(Relationship(base, "extends", EXPLICIT_CONFIDENCE, ("class-declaration",)))

    return rels


def usage_relationships(
    entity: NormalizedEntity, known: Iterable[tuple[str, str]], declaration: str | None
) -> list[Relationship]:
    """Scan the entity's own declaration for whole-word mentions of other entities.

    `known` is (name, kind) for every entity of the file.
    """
    if not declaration:
        return []
    rels: list[Relationship] = []
    type_refs: set[str] = set()
    names: list[str] = []
    for n, kind in known:
        if kind == "typeRef":
            type_refs.add(n)
        if n not in names:
            names.append(n)

    for other in names:
        if other == entity.name:
            continue
        n = count_usages(other, declaration)
        if n == 0:
            continue
        if is_call(other, declaration):
            rel_type, evidence = "calls", "call-expression"
        elif is_jsx_usage(other, declaration):
            rel_type, evidence = "uses", "jsx-element"
        elif other in type_refs:
            rel_type, evidence = "uses", "type-reference"
        else:
            rel_type, evidence = "uses", "identifier-reference"
        confidence = min(USAGE_BASE_CONFIDENCE + n * USAGE_STEP, USAGE_MAX_CONFIDENCE)
        rels.append(Relationship(other, rel_type, confidence, (evidence,)))
    return rels


def package_relationships(entity: NormalizedEntity) -> list[Relationship]:
    if entity.package_info is None:
        return []
    return [Relationship(entity.package_info.name, "depends-on", EXPLICIT_CONFIDENCE, ("package-manifest",))]


def same_module_relationships(entity: NormalizedEntity, all_entities: list[NormalizedEntity]) -> list[Relationship]:
    if entity.kind != "import" or not entity.source:
        return []
    rels: list[Relationship] = []
    for other in all_entities:
        if other.kind == "export" and other.source == entity.source:
            rels.append(
                Relationship(other.name, "depends-on", SAME_MODULE_EXPORT_CONFIDENCE, ("import-from-same-module",))
            )
    known = {e.name for e in all_entities}
    for spec in entity.specifiers or []:
        if spec in known:
            rels.append(Relationship(spec, "depends-on", IMPORT_SPECIFIER_CONFIDENCE, ("import-specifier",)))
    return rels


def external_package_relationships(entity: NormalizedEntity) -> list[Relationship]:
    if entity.category != "external" or not entity.source:
        return []
    pkg = package_name(entity.source)
    if pkg == entity.name:
        return []
    return [Relationship(pkg, "depends-on", EXTERNAL_PACKAGE_CONFIDENCE, ("external-package",))]


def merge_relationships(rels: Iterable[Relationship]) -> list[Relationship]:
    """Collapse duplicates on (target, type): max confidence, evidence union."""
    merged: dict[tuple[str, str], Relationship] = {}
    for r in rels:
        key = (r.target, r.type)
        prev = merged.get(key)
        if prev is None:
            merged[key] = r
            continue
        evidence = prev.evidence + tuple(x for x in r.evidence if x not in prev.evidence)
        merged[key] = Relationship(r.target, r.type, max(prev.confidence, r.confidence), evidence)
    return list(merged.values())


def infer_relationships(
    entity: NormalizedEntity,
    all_entities: list[NormalizedEntity],
    declaration: str | None = None,
) -> list[Relationship]:
    known = [(e.name, e.kind) for e in all_entities]
    rels = [
        *import_relationships(entity),
        *call_site_relationships(entity),
        *usage_relationships(entity, known, declaration),
        *inheritance_relationships(entity, declaration),
        *package_relationships(entity),
        *same_module_relationships(entity, all_entities),
        *external_package_relationships(entity),
    ]
    return merge_relationships(rels)


def refine_relationship(
    rel: Relationship,
    source: NormalizedEntity,
    known_names: set[str],
) -> Relationship:
    confidence = rel.confidence
    if rel.target in known_names:
        confidence = min(confidence + KNOWN_TARGET_BOOST, 1.0)
    confidence = min(confidence + EVIDENCE_BOOST * len(rel.evidence), 1.0)
    if rel.type == "imports" and source.category == "external" and source.package_info is None:
        confidence -= UNRESOLVED_EXTERNAL_PENALTY
    return Relationship(rel.target, rel.type, clamp01(confidence), rel.evidence)
