"""
Overlap Detection Module

Purpose: Flag catalog apps that serve the same function for overlapping
grades and audiences, and estimate consolidation savings.

This module does NOT:
- Mutate the catalog
- Read configuration from the environment

Version: catalog_overlap_v1
"""

from .models import DivisionLabel, OverlapCategory, OverlapGroup, OverlapMember
from .detector import (
    OverlapTaxonomy,
    audiences_overlap,
    detect_overlaps,
    division_from_grades,
    estimate_savings,
    grades_overlap,
    load_taxonomy,
)

__all__ = [
    "DivisionLabel",
    "OverlapCategory",
    "OverlapGroup",
    "OverlapMember",
    "OverlapTaxonomy",
    "audiences_overlap",
    "detect_overlaps",
    "division_from_grades",
    "estimate_savings",
    "grades_overlap",
    "load_taxonomy",
]

__version__ = "catalog_overlap_v1"
