"""
Analytics Module

Purpose: Read-only dashboard numbers, recent activity and CSV export.

Version: catalog_analytics_v1
"""

from .models import ActivityItem, AnalyticsReport, CatalogStats, DataQuality, DivisionBreakdown
from .report import activity_item, build_analytics_report, export_snapshot_csv, format_time_ago

__all__ = [
    "ActivityItem",
    "AnalyticsReport",
    "CatalogStats",
    "DataQuality",
    "DivisionBreakdown",
    "activity_item",
    "build_analytics_report",
    "export_snapshot_csv",
    "format_time_ago",
]

__version__ = "catalog_analytics_v1"
