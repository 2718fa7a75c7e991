"""
Categorization Classifier

Classifies normalized catalog entries into an organization-wide bucket and
per-division buckets, each split into Org-Core, Open-Access and
Department-Specific tiers.

This module does NOT:
- Read or write the catalog store
- Validate entries

Version: catalog_classifier_v1
"""

from .models import ClassificationResult, ClassificationStats, DivisionMembership, Tier
from .classify import classify, is_org_wide, parse_divisions

__all__ = [
    "ClassificationResult",
    "ClassificationStats",
    "DivisionMembership",
    "Tier",
    "classify",
    "is_org_wide",
    "parse_divisions",
]

__version__ = "catalog_classifier_v1"
