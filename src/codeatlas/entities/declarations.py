from __future__ import annotations

import re

from ..errors import EvidenceExtractionError
from .models import RawEntity


# Headers whose body is a `{ ... }` block.
_BLOCK_HEADERS = (
    r"\b(?:async\s+)?function\s*\*?\s*{name}\s*(?:<[^>]*>)?\s*\(",
    r"\b(?:abstract\s+)?class\s+{name}\b",
    r"\binterface\s+{name}\b",
)
_ARROW_HEADER = r"\b(?:const|let|var)\s+{name}\s*(?::[^=]+)?=\s*(?:async\s+)?(?:\([^)]*\)|[A-Za-z_$][\w$]*)\s*(?::[^=]+?)?=>"
# Headers whose body runs to the end of the statement.
_STATEMENT_HEADERS = (
    r"\btype\s+{name}\b[^=;]*=",
    r"\b(?:const|let|var)\s+{name}\b",
)
_PY_HEADER = r"^([ \t]*)(?:async\s+def|def|class)\s+{name}\b[^\n{{]*:[ \t]*(?:#[^\n]*)?$"

_OPEN = "([{"
_CLOSE = ")]}"


def _match_braces(text: str, open_at: int) -> int:
    """Index just past the `}` closing the `{` at `open_at`."""
    depth = 0
    for i in range(open_at, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    raise EvidenceExtractionError("Unterminated declaration body")


def _statement_end(text: str, start: int) -> int:
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch in _OPEN:
            depth += 1
        elif ch in _CLOSE:
            depth = max(0, depth - 1)
        elif depth == 0 and (ch == ";" or (ch == "\n" and text[start:i].strip())):
            return i + (1 if ch == ";" else 0)
    return len(text)


def _python_block(text: str, m: re.Match) -> str:
    indent = len(m.group(1).expandtabs())
    lines = text[m.start() :].split("\n")
    out = [lines[0]]
    for line in lines[1:]:
        if line.strip() and len(line) - len(line.lstrip()) <= indent:
            break
        out.append(line)
    return "\n".join(out).rstrip()


def declaration_text(entity: RawEntity, source: str | None) -> str | None:
    """The entity's own declaration, from metadata or the file's source text.

    Raises EvidenceExtractionError when a declaration header is found but its
    body cannot be delimited.
    """
    explicit = entity.metadata.get("declaration")
    if isinstance(explicit, str) and explicit.strip():
        return explicit
    if not source:
        return None

    name = re.escape(entity.name)

    m = re.search(_PY_HEADER.format(name=name), source, re.MULTILINE)
    if m is not None:
        return _python_block(source, m)

    for pat in _BLOCK_HEADERS:
        m = re.search(pat.format(name=name), source)
        if m is None:
            continue
        brace = source.find("{", m.end())
        if brace == -1:
            raise EvidenceExtractionError(f"Declaration of {entity.name} has no body")
        return source[m.start() : _match_braces(source, brace)]

    m = re.search(_ARROW_HEADER.format(name=name), source)
    if m is not None:
        i = m.end()
        while i < len(source) and source[i] in " \t\r\n":
            i += 1
        if i < len(source) and source[i] == "{":
            return source[m.start() : _match_braces(source, i)]
        return source[m.start() : _statement_end(source, i)]

    for pat in _STATEMENT_HEADERS:
        m = re.search(pat.format(name=name), source)
        if m is not None:
            return source[m.start() : _statement_end(source, m.end())]

    return None
