"""
Catalog Core Module

Purpose: Turn raw tabular rows into canonical catalog entries and report
what is missing or invalid in them.

This module ONLY:
- Resolves legacy column names through the versioned alias table
- Coerces cells (booleans, numbers, cost, dates, comma lists)
- Holds the grade and audience vocabularies
- Validates entries and scores data quality

Version: catalog_engine_v1
"""

from .models import CatalogEntry, CostStatus, Issue, IssueSeverity, ReasonCode
from .normalizer import ColumnAliasTable, ColumnMap, RowNormalizer, load_alias_table
from .validate import validate_catalog, find_missing_fields, data_quality
from .vocabulary import (
    VALID_GRADES,
    VALID_AUDIENCES,
    expand_grade_ranges,
    validate_grade_levels,
    validate_audience,
    infer_grade_levels,
)

__version__ = "catalog_engine_v1"

__all__ = [
    "CatalogEntry",
    "CostStatus",
    "Issue",
    "IssueSeverity",
    "ReasonCode",
    "ColumnAliasTable",
    "ColumnMap",
    "RowNormalizer",
    "load_alias_table",
    "validate_catalog",
    "find_missing_fields",
    "data_quality",
    "VALID_GRADES",
    "VALID_AUDIENCES",
    "expand_grade_ranges",
    "validate_grade_levels",
    "validate_audience",
    "infer_grade_levels",
    "__version__",
]
