"""Doc-comment (`/** ... */`) extraction and parsing.

The parser understands the common JSDoc/PHPDoc tag shapes:

    @param {Type} [name=default] - description
    @returns {Type} description
    @throws {Type} description

Anything else becomes a generic tag. Malformed blocks raise
EvidenceExtractionError so the caller can drop the doc evidence for that one
entity and carry on.
"""

from __future__ import annotations

import re

from ..errors import EvidenceExtractionError
from .models import DocBlock, DocParam, DocReturn, DocTag


_TAG_RE = re.compile(r"^@([A-Za-z][\w-]*)\s*(.*)$", re.DOTALL)

_PARAM_TAGS = {"param", "arg", "argument"}
_RETURN_TAGS = {"returns", "return"}
_THROW_TAGS = {"throws", "throw", "exception"}


def find_doc_block(source: str, line: int) -> str | None:
    """Return the raw `/** */` block directly above 1-based `line`, if any."""
    lines = source.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    if line < 2 or line - 2 >= len(lines):
        return None
    end = line - 2
    while end >= 0 and not lines[end].strip():
        end -= 1
    if end < 0 or not lines[end].strip().endswith("*/"):
        return None

    start = end
    while start >= 0:
        s = lines[start].strip()
        if s.startswith("/**"):
            break
        if s.startswith("/*"):
            # Plain block comment, not documentation.
            return None
        start -= 1
    if start < 0:
        raise EvidenceExtractionError(f"Doc block ending at line {end + 1} has no opening '/**'")
    return "\n".join(lines[start : end + 1])


def _split_type(text: str, *, where: str) -> tuple[str | None, str]:
    text = text.lstrip()
    if not text.startswith("{"):
        return None, text
    depth = 0
    for i, ch in enumerate(text):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[1:i].strip(), text[i + 1 :].lstrip()
    raise EvidenceExtractionError(f"Unbalanced type braces in @{where}")


def _split_name(text: str) -> tuple[str, bool, str | None, str]:
    """Parse `name`, `[name]` or `[name=default]`; returns (name, optional, default, rest)."""
    text = text.lstrip()
    if text.startswith("["):
        close = text.find("]")
        if close == -1:
            raise EvidenceExtractionError("Unclosed optional parameter name")
        inner, rest = text[1:close], text[close + 1 :]
        name, _, default = inner.partition("=")
        return name.strip(), True, (default.strip() or None), rest
    parts = text.split(None, 1)
    if not parts:
        return "", False, None, ""
    return parts[0], False, None, parts[1] if len(parts) > 1 else ""


def _clean_description(text: str) -> str:
    t = text.strip()
    if t.startswith("- "):
        t = t[2:]
    return t.strip()


def _comment_lines(block: str) -> list[str]:
    body = block.strip()
    if not body.startswith("/**") or not body.endswith("*/"):
        raise EvidenceExtractionError("Doc block must start with '/**' and end with '*/'")
    body = body[3:-2]
    out: list[str] = []
    for raw in body.split("\n"):
        s = raw.strip()
        if s.startswith("*"):
            s = s[1:]
            if s.startswith(" "):
                s = s[1:]
        out.append(s.rstrip())
    return out


def parse_doc_block(block: str) -> DocBlock:
    desc_lines: list[str] = []
    tag_texts: list[str] = []
    for line in _comment_lines(block):
        if line.lstrip().startswith("@"):
            tag_texts.append(line.lstrip())
        elif tag_texts:
            tag_texts[-1] += "\n" + line
        else:
            desc_lines.append(line)

    params: list[DocParam] = []
    throws: list[DocReturn] = []
    tags: list[DocTag] = []
    examples: list[str] = []
    returns: DocReturn | None = None
    deprecated = since = author = None
    is_async = False

    for text in tag_texts:
        m = _TAG_RE.match(text)
        if m is None:
            continue
        tag, rest = m.group(1), m.group(2)
        low = tag.lower()

        if low in _PARAM_TAGS:
            type_, rest = _split_type(rest, where=tag)
            name, optional, default, rest = _split_name(rest)
            if not name:
                raise EvidenceExtractionError(f"@{tag} without a parameter name")
            params.append(
                DocParam(name=name, type=type_, description=_clean_description(rest), optional=optional, default=default)
            )
        elif low in _RETURN_TAGS:
            type_, rest = _split_type(rest, where=tag)
            returns = DocReturn(type=type_, description=_clean_description(rest))
        elif low in _THROW_TAGS:
            type_, rest = _split_type(rest, where=tag)
            throws.append(DocReturn(type=type_, description=_clean_description(rest)))
        elif low == "example":
            examples.append(rest.strip("\n"))
        elif low == "deprecated":
            deprecated = rest.strip() or "deprecated"
        elif low == "since":
            since = rest.strip() or None
        elif low == "author":
            author = rest.strip() or None
        elif low == "async":
            is_async = True
        else:
            type_, rest = _split_type(rest, where=tag)
            parts = rest.split(None, 1)
            tags.append(
                DocTag(
                    tag=tag,
                    name=parts[0] if parts else None,
                    type=type_,
                    description=_clean_description(parts[1]) if len(parts) > 1 else "",
                )
            )

    description = "\n".join(desc_lines).strip()
    return DocBlock(
        description=description,
        summary=description.split("\n", 1)[0] if description else "",
        params=tuple(params),
        returns=returns,
        throws=tuple(throws),
        tags=tuple(tags),
        examples=tuple(examples),
        deprecated=deprecated,
        since=since,
        author=author,
        is_async=is_async,
    )


def extract_doc_block(source: str, line: int) -> DocBlock | None:
    block = find_doc_block(source, line)
    if block is None:
        return None
    return parse_doc_block(block)
