"""
Analytics Models

Version: catalog_analytics_v1
"""

from typing import Dict, List

from pydantic import BaseModel, Field

from appcatalog.overlap.models import OverlapGroup


class CatalogStats(BaseModel):
    total_apps: int = 0
    inactive_apps: int = 0
    org_core_apps: int = 0
    new_apps: int = Field(0, description="Active apps added within the new-app threshold")


class DivisionBreakdown(BaseModel):
    """Org-wide apps count once under whole_school and nowhere else."""
    whole_school: int = 0
    elementary: int = 0
    middle_school: int = 0
    high_school: int = 0


class DataQuality(BaseModel):
    score: int = 100
    missing_fields: Dict[str, int] = Field(default_factory=dict)


class ActivityItem(BaseModel):
    type: str = Field(..., description="enriched | new | update")
    title: str
    time: str


class AnalyticsReport(BaseModel):
    stats: CatalogStats = Field(default_factory=CatalogStats)
    division_breakdown: DivisionBreakdown = Field(default_factory=DivisionBreakdown)
    license_types: Dict[str, int] = Field(default_factory=dict)
    data_quality: DataQuality = Field(default_factory=DataQuality)
    recent_activity: List[ActivityItem] = Field(default_factory=list)
    overlaps: List[OverlapGroup] = Field(default_factory=list)
    potential_savings: float = 0.0
