"""Workspace knowledge graph: entity enrichment pipeline and hybrid retrieval."""

__version__ = "0.1.0"
