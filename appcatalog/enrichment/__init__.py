"""
Enrichment Module

Purpose: Fill empty descriptive catalog fields from a generative completion
collaborator, one rate-limited call per app.

Version: catalog_enrichment_v1
"""

from .client import CompletionClient
from .enrich import build_enrichment_prompt, enrich_missing_fields
from .models import ENRICHABLE_FIELDS, RESPONSE_FIELD_MAP, EnrichedApp, EnrichmentReport

__all__ = [
    "CompletionClient",
    "build_enrichment_prompt",
    "enrich_missing_fields",
    "ENRICHABLE_FIELDS",
    "RESPONSE_FIELD_MAP",
    "EnrichedApp",
    "EnrichmentReport",
]

__version__ = "catalog_enrichment_v1"
