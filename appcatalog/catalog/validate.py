"""
Catalog Validation

Required-field and data-quality checks over active entries, consumed by admin
tooling. Errors mark gaps that must be fixed by hand; warnings are
data-quality findings that never block writes.

Version: catalog_engine_v1
"""

from typing import Dict, Iterable, List

from appcatalog.shared.errors import AudienceError, GradeLevelError

from .models import CatalogEntry, CostStatus, Issue, IssueSeverity, ReasonCode
from .vocabulary import validate_audience, validate_grade_levels


REQUIRED_FIELDS = ["product_name", "description", "division", "category", "website", "department"]

OPTIONAL_FIELDS = [
    "audience",
    "grade_levels",
    "support_email",
    "tutorial_link",
    "mobile_app",
    "sso_enabled",
    "logo_url",
]

# Fields counted by the data-quality score
QUALITY_FIELDS = [
    "description",
    "category",
    "website",
    "audience",
    "grade_levels",
    "logo_url",
    "tutorial_link",
    "support_email",
]


def field_is_missing(entry: CatalogEntry, field: str) -> bool:
    value = getattr(entry, field)
    if value is None:
        return True
    if isinstance(value, (str, list)):
        return len(value) == 0
    return False


def _issue(entry: CatalogEntry, field: str, code: str, severity: IssueSeverity, message: str) -> Issue:
    return Issue(
        product_name=entry.product_name or f"Row {entry.row_ref}",
        row_ref=entry.row_ref,
        field=field,
        code=code,
        severity=severity,
        message=message,
    )


def validate_entry(entry: CatalogEntry) -> List[Issue]:
    """Validate a single entry."""
    issues: List[Issue] = []

    for field in REQUIRED_FIELDS:
        if field_is_missing(entry, field):
            issues.append(_issue(
                entry, field, ReasonCode.MISSING_REQUIRED_FIELD, IssueSeverity.ERROR,
                f"Missing {field}",
            ))

    for field in OPTIONAL_FIELDS:
        if field_is_missing(entry, field):
            issues.append(_issue(
                entry, field, ReasonCode.MISSING_OPTIONAL_FIELD, IssueSeverity.WARNING,
                f"Missing {field}",
            ))

    if entry.grade_levels:
        try:
            validate_grade_levels(entry.grade_levels)
        except GradeLevelError as e:
            issues.append(_issue(
                entry, "grade_levels", ReasonCode.INVALID_GRADE_LEVEL, IssueSeverity.ERROR, e.message,
            ))

    if entry.audience:
        try:
            validate_audience(entry.audience)
        except AudienceError as e:
            issues.append(_issue(
                entry, "audience", ReasonCode.INVALID_AUDIENCE, IssueSeverity.ERROR, e.message,
            ))

    if entry.cost_status == CostStatus.UNPARSEABLE:
        issues.append(_issue(
            entry, "annual_cost", ReasonCode.UNPARSEABLE_COST, IssueSeverity.ERROR,
            "Annual cost is not a number",
        ))

    return issues


def validate_catalog(entries: Iterable[CatalogEntry]) -> List[Issue]:
    """
    Validate all active entries.

    Returns:
        Issues ordered by row reference, then field order of discovery
    """
    active = [e for e in entries if e.active]
    issues: List[Issue] = []

    first_seen: Dict[str, CatalogEntry] = {}
    for entry in active:
        issues.extend(validate_entry(entry))

        if not entry.product_name:
            continue
        keys = [f"name:{entry.name_key}"]
        if entry.stable_id:
            keys.append(f"id:{entry.stable_id}")
        for key in keys:
            if key in first_seen:
                other = first_seen[key]
                issues.append(_issue(
                    entry, "product_name" if key.startswith("name:") else "stable_id",
                    ReasonCode.DUPLICATE_IDENTITY, IssueSeverity.ERROR,
                    f"Duplicate of row {other.row_ref} ({other.product_name})",
                ))
            else:
                first_seen[key] = entry

    issues.sort(key=lambda i: (i.row_ref if i.row_ref is not None else -1))
    return issues


def find_missing_fields(entries: Iterable[CatalogEntry]) -> Dict[str, List[str]]:
    """Product names of active entries missing each enrichable field."""
    report: Dict[str, List[str]] = {f: [] for f in ["description", "category", "website"] + OPTIONAL_FIELDS}
    for entry in entries:
        if not entry.active:
            continue
        name = entry.product_name or f"Row {entry.row_ref}"
        for field in report:
            if field_is_missing(entry, field):
                report[field].append(name)
    return report


def data_quality(entries: Iterable[CatalogEntry]) -> Dict[str, object]:
    """
    Data quality score over QUALITY_FIELDS for active entries.

    Returns:
        {"score": 0-100, "missing_fields": {field: count}}
    """
    active = [e for e in entries if e.active]
    missing = {field: 0 for field in QUALITY_FIELDS}
    for entry in active:
        for field in QUALITY_FIELDS:
            if field_is_missing(entry, field):
                missing[field] += 1

    checked = len(active) * len(QUALITY_FIELDS)
    total_missing = sum(missing.values())
    score = round((checked - total_missing) / checked * 100) if checked else 100
    return {"score": score, "missing_fields": missing}
