"""
Catalog Analytics

Dashboard numbers computed from one snapshot plus the recent update log.
Read-only.

Version: catalog_analytics_v1
"""

import logging
from datetime import date, datetime, timezone
from io import StringIO
from typing import Iterable, List, Optional

import pandas as pd

from appcatalog.catalog.models import CatalogEntry
from appcatalog.catalog.validate import data_quality
from appcatalog.classify.classify import is_org_wide, parse_divisions
from appcatalog.overlap.detector import OverlapTaxonomy, detect_overlaps, estimate_savings
from appcatalog.shared.config import EngineConfig
from appcatalog.store.audit import AuditEntry
from appcatalog.store.base import CatalogSnapshot

from .models import (
    ActivityItem,
    AnalyticsReport,
    CatalogStats,
    DataQuality,
    DivisionBreakdown,
)

logger = logging.getLogger(__name__)


def format_time_ago(timestamp: Optional[datetime], now: Optional[datetime] = None) -> str:
    """'3 days ago', '1 hour ago', 'Just now', or 'Unknown' without a timestamp."""
    if timestamp is None:
        return "Unknown"
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    seconds = int((now - timestamp).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} day{'s' if days > 1 else ''} ago"
    if hours > 0:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if minutes > 0:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    return "Just now"


def activity_item(entry: AuditEntry, now: Optional[datetime] = None) -> ActivityItem:
    operation = entry.operation.lower()
    if "enrich" in operation:
        kind, title = "enriched", f"Enriched {entry.field} for {entry.product_name}"
    elif "add" in operation:
        kind, title = "new", f"Added new app: {entry.product_name}"
    else:
        kind, title = "update", f"Updated {entry.product_name}: {entry.field}"
    return ActivityItem(type=kind, title=title, time=format_time_ago(entry.timestamp, now))


def is_new_app(entry: CatalogEntry, threshold_days: int, today: date) -> bool:
    if entry.date_added is None:
        return False
    age = (today - entry.date_added).days
    return 0 <= age <= threshold_days


def build_analytics_report(
    entries: Iterable[CatalogEntry],
    recent_audit: Iterable[AuditEntry] = (),
    config: Optional[EngineConfig] = None,
    taxonomy: Optional[OverlapTaxonomy] = None,
    now: Optional[datetime] = None,
) -> AnalyticsReport:
    """
    Build the analytics report.

    Args:
        entries: All catalog entries, active and inactive
        recent_audit: Update-log entries, newest first
        config: Supplies new_app_threshold_days
        now: Reference time (defaults to current UTC time)

    Returns:
        AnalyticsReport
    """
    config = config or EngineConfig()
    now = now or datetime.now(timezone.utc)
    today = now.date()

    entries = list(entries)
    active = [e for e in entries if e.active]

    stats = CatalogStats(
        total_apps=len(active),
        inactive_apps=len(entries) - len(active),
        org_core_apps=sum(1 for e in active if e.is_org_core),
        new_apps=sum(1 for e in active if is_new_app(e, config.new_app_threshold_days, today)),
    )

    breakdown = DivisionBreakdown()
    license_types = {}
    for entry in active:
        if is_org_wide(entry):
            breakdown.whole_school += 1
        else:
            divisions = parse_divisions(entry.division)
            breakdown.elementary += int(divisions.elementary)
            breakdown.middle_school += int(divisions.middle)
            breakdown.high_school += int(divisions.high)

        license_type = entry.license_type or "Unknown"
        license_types[license_type] = license_types.get(license_type, 0) + 1

    quality = data_quality(active)
    overlaps = detect_overlaps(active, taxonomy)
    activity = [activity_item(a, now) for a in list(recent_audit)[:10]]

    return AnalyticsReport(
        stats=stats,
        division_breakdown=breakdown,
        license_types=license_types,
        data_quality=DataQuality(score=quality["score"], missing_fields=quality["missing_fields"]),
        recent_activity=activity,
        overlaps=overlaps,
        potential_savings=estimate_savings(overlaps),
    )


def export_snapshot_csv(snapshot: CatalogSnapshot) -> str:
    """Current catalog as CSV text, columns in store header order."""
    records: List[dict] = [row.cells for row in snapshot.rows]
    df = pd.DataFrame.from_records(records, columns=snapshot.headers)
    buffer = StringIO()
    df.to_csv(buffer, index=False)
    logger.info(f"Exported {len(df)} catalog rows")
    return buffer.getvalue()
