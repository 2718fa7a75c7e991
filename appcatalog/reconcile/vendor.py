"""
Vendor Export Translation (EdTech Impact)

Detects the vendor's export signature and maps its columns to canonical
fields before identity matching runs.

Vendor columns: Product, Cancel by, Renews on, Price, Budget, Notes,
Licences, Length, Source, Schools, Decision, Status.

Budget is never mapped: it names the paying department, not the one using
the app, so department defaults to the school-wide placeholder instead.

Version: catalog_reconcile_v1
"""

import re
from typing import Any, Dict, Optional, Sequence

from appcatalog.catalog.normalizer import cell_text, is_empty, parse_boolean, parse_date, parse_int
from appcatalog.catalog.vocabulary import format_grade_levels, infer_grade_levels
from appcatalog.shared.config import EngineConfig


VENDOR_SIGNATURE = ("Product", "Schools", "Budget", "Licences", "Status")
VENDOR_SIGNATURE_THRESHOLD = 3

VENDOR_COLUMN_MAP = {
    "Product": "product_name",
    "Price": "annual_cost",
    "Licences": "license_count",
    "Schools": "division",
    "Renews on": "renewal_date",
    "Status": "active",
}

SITE_LICENSE_THRESHOLD = 100

_PRICE_PATTERN = re.compile(r"[\d,.]+")


def is_vendor_format(headers: Sequence[Any]) -> bool:
    """True if at least 3 vendor signature columns are present."""
    present = {cell_text(h) for h in headers}
    return sum(1 for col in VENDOR_SIGNATURE if col in present) >= VENDOR_SIGNATURE_THRESHOLD


def clean_vendor_schools(value: Any) -> str:
    """Rename Early Learning Center, drop Central, tidy commas."""
    text = cell_text(value)
    text = text.replace("SAS Early Learning Center", "SAS Elementary School")
    text = text.replace("SAS Central", "")
    parts = [p.strip() for p in text.split(",")]
    return ", ".join(p for p in parts if p)


def parse_vendor_price(value: Any) -> str:
    """Numeric part of the price cell; missing or non-numeric means free."""
    text = cell_text(value)
    if not text or text == "[object Object]":
        return "0"
    match = _PRICE_PATTERN.search(text)
    if not match:
        return "0"
    return match.group(0).replace(",", "")


def license_type_for_count(count: int) -> str:
    if count > SITE_LICENSE_THRESHOLD:
        return "Site License"
    if count > 0:
        return "Individual"
    return "Free"


def translate_vendor_row(headers: Sequence[Any], row: Sequence[Any], config: Optional[EngineConfig] = None) -> Dict[str, Any]:
    """
    Translate one vendor row into canonical fields.

    Args:
        headers: Vendor header row
        row: Vendor data row aligned with headers
        config: Supplies the placeholder defaults

    Returns:
        Canonical field dict (only fields the translation produces)
    """
    config = config or EngineConfig()
    clean_headers = [cell_text(h) for h in headers]
    raw = {h: (row[i] if i < len(row) else None) for i, h in enumerate(clean_headers)}

    mapped: Dict[str, Any] = {}
    if "Product" in raw:
        mapped["product_name"] = cell_text(raw["Product"])
    if "Schools" in raw:
        mapped["division"] = clean_vendor_schools(raw["Schools"])
    if "Status" in raw:
        mapped["active"] = "TRUE" if parse_boolean(raw["Status"]) else "FALSE"
    if "Price" in raw:
        mapped["annual_cost"] = parse_vendor_price(raw["Price"])
    if "Licences" in raw and not is_empty(raw["Licences"]):
        mapped["license_count"] = parse_int(raw["Licences"])
    if "Renews on" in raw:
        renewal = parse_date(raw["Renews on"])
        if renewal is not None:
            mapped["renewal_date"] = renewal.isoformat()

    # Defaults for fields the vendor feed does not carry
    mapped.setdefault("active", "TRUE")
    mapped["is_org_core"] = "FALSE"
    mapped["department"] = config.vendor_department_default
    mapped["license_type"] = license_type_for_count(parse_int(mapped.get("license_count")))
    mapped["audience"] = config.vendor_audience_default
    grades = infer_grade_levels(
        mapped.get("division", ""),
        mapped["audience"],
        staff_placeholder=config.staff_grade_placeholder,
    )
    if grades:
        mapped["grade_levels"] = format_grade_levels(grades)
    mapped["category"] = config.category_placeholder

    return mapped
