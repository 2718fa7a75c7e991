"""
Categorization Classifier

Assigns each active entry to division buckets and presentation tiers.

Steps:
1. Parse division text: "elementary"/"early learning", "middle", "high"
2. Organization-wide test (exclusive): license type, department label,
   division label, or membership in all three divisions
3. Partition each bucket into Org-Core (org-wide bucket only), Open-Access,
   and Department-Specific
4. Sort every list by product name, case-insensitively

classify() is pure and order-independent: the same snapshot always yields
identical buckets.

Version: catalog_classifier_v1
"""

from typing import Dict, Iterable, List

from appcatalog.catalog.models import CatalogEntry

from .models import ClassificationResult, ClassificationStats, DivisionMembership, Tier


OPEN_LICENSE_MARKERS = ("site", "school", "enterprise", "unlimited")
ORG_WIDE_DEPARTMENTS = ("school operations", "school-wide")
ORG_WIDE_DIVISION_MARKERS = ("school-wide", "whole school")
EMPTY_DEPARTMENTS = ("", "n/a")


def parse_divisions(division: str) -> DivisionMembership:
    """Parse division text into division flags."""
    text = (division or "").lower()
    return DivisionMembership(
        elementary="elementary" in text or "early learning" in text,
        middle="middle" in text,
        high="high" in text,
    )


def has_open_license(license_type: str) -> bool:
    text = (license_type or "").lower()
    return any(marker in text for marker in OPEN_LICENSE_MARKERS)


def is_org_wide(entry: CatalogEntry) -> bool:
    """True if the entry is available to every division."""
    if has_open_license(entry.license_type):
        return True
    if entry.department.strip().lower() in ORG_WIDE_DEPARTMENTS:
        return True
    division = entry.division.lower()
    if any(marker in division for marker in ORG_WIDE_DIVISION_MARKERS):
        return True
    return parse_divisions(entry.division).all_three


def is_open_access(entry: CatalogEntry) -> bool:
    return has_open_license(entry.license_type) or entry.department.strip().lower() == "school-wide"


def sort_key(entry: CatalogEntry):
    # casefold ordering with the raw name and stable id as tie-breakers
    return (entry.product_name.casefold(), entry.product_name, entry.stable_id or "")


def build_tier(entries: Iterable[CatalogEntry], org_wide_bucket: bool) -> Tier:
    """
    Partition one bucket into tiers.

    Args:
        entries: Entries already assigned to the bucket
        org_wide_bucket: True for the organization-wide pseudo-division

    Returns:
        Tier with sorted lists and departments in sorted key order
    """
    ordered = sorted(entries, key=sort_key)

    core: List[CatalogEntry] = []
    if org_wide_bucket:
        core = [e for e in ordered if e.is_org_core]
    core_ids = {id(e) for e in core}

    open_access = [
        e for e in ordered
        if id(e) not in core_ids
        and is_open_access(e)
        and (org_wide_bucket or not is_org_wide(e))
    ]
    open_ids = {id(e) for e in open_access}

    departments: Dict[str, List[CatalogEntry]] = {}
    for entry in ordered:
        if id(entry) in core_ids or id(entry) in open_ids:
            continue
        department = entry.department.strip()
        if department.lower() in EMPTY_DEPARTMENTS:
            continue
        departments.setdefault(department, []).append(entry)

    by_department = {
        name: departments[name]
        for name in sorted(departments, key=lambda d: (d.casefold(), d))
    }

    return Tier(core_apps=core, open_access_apps=open_access, by_department=by_department)


def classify(entries: Iterable[CatalogEntry]) -> ClassificationResult:
    """
    Classify active entries into the presentation structure.

    Inactive entries are ignored. An organization-wide entry appears only in
    the org_wide bucket.
    """
    active = [e for e in entries if e.active]

    org_wide: List[CatalogEntry] = []
    elementary: List[CatalogEntry] = []
    middle: List[CatalogEntry] = []
    high: List[CatalogEntry] = []

    for entry in active:
        if is_org_wide(entry):
            org_wide.append(entry)
            continue
        divisions = parse_divisions(entry.division)
        if divisions.elementary:
            elementary.append(entry)
        if divisions.middle:
            middle.append(entry)
        if divisions.high:
            high.append(entry)

    return ClassificationResult(
        org_wide=build_tier(org_wide, org_wide_bucket=True),
        elementary=build_tier(elementary, org_wide_bucket=False),
        middle=build_tier(middle, org_wide_bucket=False),
        high=build_tier(high, org_wide_bucket=False),
        stats=ClassificationStats(
            total_apps=len(active),
            org_wide_count=len(org_wide),
            elementary_count=len(elementary),
            middle_count=len(middle),
            high_count=len(high),
        ),
    )
