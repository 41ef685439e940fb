"""Semantic role classification.

Rules are an ordered table of (priority, semantic type, predicate); the first
matching rule wins. Priority groups, highest first:

1. explicit doc tags (`@service`, `@hook`, ...)
2. UI framework conventions (components, hooks, contexts)
3. API layer naming (handlers, routes, middleware)
4. architectural role suffixes (service, repository, model, dto, entity)
5. utility patterns (util, helper, config, constant, enum)
6. test patterns
7. built-in runtime/platform API names
8. type-only declarations
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from .models import DocBlock, NormalizedEntity


Predicate = Callable[[NormalizedEntity, "DocBlock | None", "str | None"], bool]


@dataclass(frozen=True)
class Rule:
    priority: int
    semantic_type: str
    predicate: Predicate


# Doc tag -> semantic type, checked in this order.
DOC_TAG_TYPES: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({"component", "react"}), "react-component"),
    (frozenset({"hook"}), "react-hook"),
    (frozenset({"api", "endpoint"}), "api-handler"),
    (frozenset({"service"}), "service"),
    (frozenset({"repository", "repo"}), "repository"),
    (frozenset({"model", "entity"}), "entity"),
    (frozenset({"dto"}), "dto"),
    (frozenset({"util", "utility"}), "utility"),
    (frozenset({"helper"}), "helper"),
    (frozenset({"config", "configuration"}), "config"),
    (frozenset({"test", "spec"}), "test-suite"),
)

BROWSER_APIS = (
    "console", "document", "window", "navigator", "location", "localstorage", "sessionstorage",
    "fetch", "xmlhttprequest", "getelementbyid", "queryselector", "addeventlistener",
)
NODE_APIS = ("process", "buffer", "require", "module", "exports", "__dirname", "__filename")

_CONSTANT_RE = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_MARKUP_RETURN_RE = re.compile(r"(?:\breturn\s*\(?|=>\s*\(?)\s*<[A-Za-z>]")


def _tag_names(doc: DocBlock | None) -> set[str]:
    if doc is None:
        return set()
    return {t.tag.lower() for t in doc.tags}


def _doc_tag_rule(tags: frozenset[str]) -> Predicate:
    return lambda e, doc, decl: bool(_tag_names(doc) & tags)


def _low(e: NormalizedEntity) -> str:
    return e.name.lower()


def is_react_component(e: NormalizedEntity, doc: DocBlock | None, decl: str | None) -> bool:
    if not e.name[:1].isupper():
        return False
    if e.name.endswith(("Component", "Page", "View")):
        return True
    return e.kind == "function" and bool(decl) and _MARKUP_RETURN_RE.search(decl) is not None


def is_react_hook(e, doc, decl) -> bool:
    return re.match(r"^use[A-Z]", e.name) is not None


def is_react_context(e, doc, decl) -> bool:
    return "context" in _low(e) or _low(e).endswith("provider")


def is_api_handler(e, doc, decl) -> bool:
    n = _low(e)
    if "handler" in n or "controller" in n or n.startswith("handle"):
        return True
    return e.kind == "function" and re.match(r"^on[A-Z]", e.name) is not None


def is_api_route(e, doc, decl) -> bool:
    return "route" in _low(e) or "endpoint" in _low(e)


def is_middleware(e, doc, decl) -> bool:
    n = _low(e)
    return "middleware" in n or n.endswith("mw") or (n.startswith("auth") and e.kind == "function")


def is_service(e, doc, decl) -> bool:
    n = _low(e)
    return "service" in n or n.endswith("svc")


def is_repository(e, doc, decl) -> bool:
    n = _low(e)
    return "repository" in n or n.endswith("repo")


def is_model(e, doc, decl) -> bool:
    return "model" in _low(e)


def is_dto(e, doc, decl) -> bool:
    n = _low(e)
    return "dto" in n or n.endswith("request") or n.endswith("response")


def is_entity(e, doc, decl) -> bool:
    return _low(e).endswith("entity")


def is_utility(e, doc, decl) -> bool:
    n = _low(e)
    return n.endswith("util") or n.endswith("utils") or "utility" in n


def is_helper(e, doc, decl) -> bool:
    return "helper" in _low(e)


def is_config(e, doc, decl) -> bool:
    n = _low(e)
    return "config" in n or n in {"settings", "options"}


def is_constant(e, doc, decl) -> bool:
    return e.kind in ("variable", "export") and _CONSTANT_RE.match(e.name) is not None


def is_enum(e, doc, decl) -> bool:
    return _low(e).endswith("enum") or e.metadata.get("declarationKind") == "enum"


def is_test_suite(e, doc, decl) -> bool:
    n = _low(e)
    return n.endswith("test") or n.endswith("spec") or ".test" in n or ".spec" in n


def is_test_helper(e, doc, decl) -> bool:
    n = _low(e)
    return "mock" in n or "fixture" in n or "stub" in n or (n.startswith("create") and "test" in n)


def is_builtin_api(e, doc, decl) -> bool:
    n = _low(e)
    return n.startswith(BROWSER_APIS) or n.startswith(NODE_APIS)


def is_type_only(e, doc, decl) -> bool:
    if e.kind == "typeRef" or e.metadata.get("declarationKind") in ("interface", "type"):
        return True
    return bool(decl) and re.match(r"^\s*(?:export\s+)?(?:interface|type)\s", decl) is not None


RULES: tuple[Rule, ...] = (
    *(Rule(1, t, _doc_tag_rule(tags)) for tags, t in DOC_TAG_TYPES),
    Rule(2, "react-component", is_react_component),
    Rule(2, "react-hook", is_react_hook),
    Rule(2, "react-context", is_react_context),
    Rule(3, "api-handler", is_api_handler),
    Rule(3, "api-route", is_api_route),
    Rule(3, "api-middleware", is_middleware),
    Rule(4, "service", is_service),
    Rule(4, "repository", is_repository),
    Rule(4, "model", is_model),
    Rule(4, "dto", is_dto),
    Rule(4, "entity", is_entity),
    Rule(5, "utility", is_utility),
    Rule(5, "helper", is_helper),
    Rule(5, "config", is_config),
    Rule(5, "constant", is_constant),
    Rule(5, "enum", is_enum),
    Rule(6, "test-suite", is_test_suite),
    Rule(6, "test-helper", is_test_helper),
    Rule(7, "utility", is_builtin_api),
    Rule(8, "type-definition", is_type_only),
)


def classify(entity: NormalizedEntity, doc: DocBlock | None = None, declaration: str | None = None) -> str:
    # sorted() is stable, so table order breaks ties inside one priority group.
    for rule in sorted(RULES, key=lambda r: r.priority):
        if rule.predicate(entity, doc, declaration):
            return rule.semantic_type
    return "unknown"
