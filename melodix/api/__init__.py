"""
Melodix API modules - External service integrations.
"""
from .enrichment import (
    EnrichmentService, NullEnrichmentService, LrclibEnrichmentService, enrich_song,
)

__all__ = ['EnrichmentService', 'NullEnrichmentService', 'LrclibEnrichmentService', 'enrich_song']
