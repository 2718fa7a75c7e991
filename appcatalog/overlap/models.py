"""
Overlap Models

Version: catalog_overlap_v1
"""

from typing import List

from pydantic import BaseModel, Field


class DivisionLabel:
    """Division context derived from grade levels and division text."""
    ELEMENTARY = "elementary"
    MIDDLE = "middle"
    HIGH = "high"
    WHOLE_SCHOOL = "whole-school"
    MULTI_DIVISION = "multi-division"
    UNKNOWN = "unknown"


class OverlapMember(BaseModel):
    name: str
    cost: float = 0.0
    license_type: str = "Unknown"
    division: str = DivisionLabel.UNKNOWN
    grade_levels: str = "Not specified"
    audience: str = "Not specified"


class OverlapGroup(BaseModel):
    """A cluster of apps doing the same job for overlapping populations."""
    category: str
    apps: List[OverlapMember] = Field(default_factory=list)
    potential_savings: float = 0.0
    recommendation: str = ""
    division_context: str = ""


class OverlapCategory(BaseModel):
    name: str
    keywords: List[str] = Field(default_factory=list)
