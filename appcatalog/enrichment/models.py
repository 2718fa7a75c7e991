"""
Enrichment Models

Version: catalog_enrichment_v1
"""

from typing import Dict, List

from pydantic import BaseModel, Field


# Completion JSON key -> canonical field
RESPONSE_FIELD_MAP: Dict[str, str] = {
    "description": "description",
    "category": "category",
    "website": "website",
    "audience": "audience",
    "gradeLevels": "grade_levels",
    "supportEmail": "support_email",
    "tutorialLink": "tutorial_link",
    "mobileApp": "mobile_app",
    "ssoEnabled": "sso_enabled",
    "logoUrl": "logo_url",
}

ENRICHABLE_FIELDS: List[str] = list(RESPONSE_FIELD_MAP.values())


class EnrichedApp(BaseModel):
    product_name: str
    row_ref: int
    fields_written: List[str] = Field(default_factory=list)


class EnrichmentReport(BaseModel):
    """Outcome of one enrichment run."""
    needing_enrichment: int = 0
    processed: int = 0
    enriched: int = 0
    failed: int = 0
    skipped: int = 0
    row_mismatches: int = 0
    remaining: int = 0
    fields_written: int = 0

    apps: List[EnrichedApp] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
