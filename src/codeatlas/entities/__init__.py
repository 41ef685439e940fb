"""Entity enrichment pipeline: filter, merge, normalize, classify, relate, score."""

from .models import EnrichedEntity, NormalizedEntity, PipelineConfig, PipelineResult, RawEntity
from .pipeline import EntityPipeline

__all__ = [
    "EnrichedEntity",
    "EntityPipeline",
    "NormalizedEntity",
    "PipelineConfig",
    "PipelineResult",
    "RawEntity",
]
