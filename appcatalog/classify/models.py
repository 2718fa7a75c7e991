"""
Classification Models

Presentation structure produced by the categorization classifier.

Version: catalog_classifier_v1
"""

from typing import Dict, List
from pydantic import BaseModel, Field

from appcatalog.catalog.models import CatalogEntry


class DivisionMembership(BaseModel):
    """Division flags parsed from the division text."""
    elementary: bool = False
    middle: bool = False
    high: bool = False

    @property
    def all_three(self) -> bool:
        return self.elementary and self.middle and self.high


class Tier(BaseModel):
    """
    One bucket's three presentation tiers.

    core_apps is only populated for the organization-wide bucket.
    """
    core_apps: List[CatalogEntry] = Field(default_factory=list)
    open_access_apps: List[CatalogEntry] = Field(default_factory=list)
    by_department: Dict[str, List[CatalogEntry]] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return (
            len(self.core_apps)
            + len(self.open_access_apps)
            + sum(len(v) for v in self.by_department.values())
        )


class ClassificationStats(BaseModel):
    total_apps: int = 0
    org_wide_count: int = 0
    elementary_count: int = 0
    middle_count: int = 0
    high_count: int = 0


class ClassificationResult(BaseModel):
    """Output of classify()."""
    org_wide: Tier = Field(default_factory=Tier)
    elementary: Tier = Field(default_factory=Tier)
    middle: Tier = Field(default_factory=Tier)
    high: Tier = Field(default_factory=Tier)
    stats: ClassificationStats = Field(default_factory=ClassificationStats)
