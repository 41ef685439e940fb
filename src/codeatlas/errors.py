from __future__ import annotations


class CodeAtlasError(Exception):
    pass


class ValidationError(CodeAtlasError, ValueError):
    """Bad caller input: empty query, malformed config or options."""


class SourceUnavailable(CodeAtlasError):
    """A retrieval source (index file, graph store) could not be read."""


class EvidenceExtractionError(CodeAtlasError):
    """A doc block or declaration could not be parsed for one entity."""


class EmbeddingServiceError(CodeAtlasError):
    pass
