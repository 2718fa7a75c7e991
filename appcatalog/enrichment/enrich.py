"""
Missing-Field Enrichment

Fills empty descriptive fields of active apps from the generative
completion collaborator.

Rules:
- Rows are scanned from the top; only active rows with a product name and
  at least one empty enrichable field are targets
- At most max_batch_size targets are processed per run; the rest are
  counted as skipped and picked up by the next run
- Product name is re-read before each row; a mismatch skips the row
- Only empty fields are written; grade levels and audience are validated
  and rejected wholesale on any bad token
- Collaborator failures are recorded and never retried
- The run sleeps api_delay_ms after every collaborator call

Version: catalog_enrichment_v1
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from appcatalog.catalog.models import CatalogEntry
from appcatalog.catalog.normalizer import RowNormalizer, cell_text, is_empty, parse_boolean
from appcatalog.catalog.vocabulary import format_grade_levels, validate_audience, validate_grade_levels
from appcatalog.shared.config import EngineConfig
from appcatalog.shared.errors import (
    AudienceError,
    CatalogStoreError,
    ExternalServiceError,
    GradeLevelError,
    ValidationError,
)
from appcatalog.store.audit import AuditOperation, make_audit_entry
from appcatalog.store.base import CatalogStore, StoredRow

from .client import CompletionClient
from .models import ENRICHABLE_FIELDS, RESPONSE_FIELD_MAP, EnrichedApp, EnrichmentReport

logger = logging.getLogger(__name__)


MISSING_MARKER = "[MISSING]"

CATEGORY_CHOICES = (
    "AI Tools, Learning Management System, Assessment Platform, Adaptive Learning, "
    "Reading Platform, Practice & Drill, Interactive Content, Video Platform, Screen Recording, "
    "Presentation Tool, Design Tool, Digital Whiteboard, Collaboration Tool, Communication Platform, "
    "Student Portfolio, Writing Tool, Plagiarism Detection, Coding Platform, Simulation, "
    "Research Database, eTextbook, Library System, Student Information System, Scheduling Tool, "
    "Device Management, Content Filter, Safety Monitor, Visitor Management, Payment System, "
    "HR System, Facilities Management, Transportation, Office Suite, Cloud Storage, Note Taking, "
    "Project Management, Professional Development"
)


def build_enrichment_prompt(entry: CatalogEntry, current: Dict[str, str]) -> str:
    """Prompt asking for the app's missing fields as one JSON object."""

    def shown(field: str) -> str:
        return current.get(field) or MISSING_MARKER

    return f"""You are helping to enrich educational app data for a K-12 school. Analyze this app and fill in missing information:

App Name: {entry.product_name}
Subject: {entry.subjects}
Division: {entry.division}

Current Data:
- Description: {shown("description")}
- Category: {shown("category")}
- Website: {shown("website")}
- Audience: {shown("audience")}
- Grade Levels: {shown("grade_levels")}
- Support Email: {shown("support_email")}
- Tutorial Link: {shown("tutorial_link")}
- Mobile App: {shown("mobile_app")}
- SSO Enabled: {shown("sso_enabled")}
- Logo URL: {shown("logo_url")}

Please provide the missing data in JSON format. Use these guidelines:
- Description: 1-2 concise sentences about what the app does (factual, non-promotional)
- Category: Choose EXACTLY ONE tool/application type (NOT subjects or departments): {CATEGORY_CHOICES}
- Website: Official app website URL
- Audience: Comma-separated from: Teachers, Students, Staff, Parents
- Grade Levels: Format like "K-5", "6-8", "9-12", or "K-12" based on division
- Support Email: Vendor or school support contact email
- Tutorial Link: Official help/tutorial URL
- Mobile App: "Yes", "No", "iOS only", "Android only", or "iOS/Android"
- SSO Enabled: true or false (boolean)
- Logo URL: Leave empty

Return ONLY valid JSON in this exact format:
{{
  "description": "...",
  "category": "...",
  "website": "...",
  "audience": "...",
  "gradeLevels": "...",
  "supportEmail": "...",
  "tutorialLink": "...",
  "mobileApp": "...",
  "ssoEnabled": true or false,
  "logoUrl": ""
}}"""


def _value_for(field: str, raw: Any) -> Any:
    """
    Storage value for one collaborator answer, or None to skip the field.

    Raises:
        ValidationError: grade levels or audience outside the vocabulary
    """
    if field == "sso_enabled":
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        return parse_boolean(raw)
    if is_empty(raw):
        return None
    if field == "grade_levels":
        grades = validate_grade_levels(cell_text(raw))
        return format_grade_levels(grades) or None
    if field == "audience":
        audience = validate_audience(cell_text(raw))
        return ", ".join(audience) or None
    return cell_text(raw)


def enrich_missing_fields(
    store: CatalogStore,
    client: CompletionClient,
    config: Optional[EngineConfig] = None,
    normalizer: Optional[RowNormalizer] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> EnrichmentReport:
    """
    Run one enrichment pass over the catalog.

    Args:
        store: Catalog store to read and write
        client: Completion collaborator
        config: Supplies max_batch_size and api_delay_ms
        sleep: Delay function (injected by tests)

    Returns:
        EnrichmentReport; remaining = needing_enrichment - enriched

    Raises:
        ValidationError: the catalog has no product_name column
    """
    config = config or EngineConfig()
    normalizer = normalizer or RowNormalizer()
    report = EnrichmentReport()

    snapshot = store.snapshot()
    column_map = normalizer.column_map(snapshot.headers)
    name_header = column_map.header_for("product_name")
    if name_header is None:
        raise ValidationError("Catalog has no product_name column")

    headers = {f: column_map.header_for(f) for f in ENRICHABLE_FIELDS if column_map.has(f)}
    entries = snapshot.entries(normalizer)

    targets: List[tuple] = []
    for entry, stored in zip(entries, snapshot.rows):
        if not entry.active or not entry.product_name:
            continue
        missing = [f for f, h in headers.items() if is_empty(stored.cells.get(h))]
        if missing:
            targets.append((entry, stored, missing))

    report.needing_enrichment = len(targets)
    logger.info(f"{len(targets)} apps need enrichment; batch cap {config.max_batch_size}")

    for entry, stored, missing in targets:
        if report.processed >= config.max_batch_size:
            report.skipped += 1
            continue
        report.processed += 1

        try:
            current_name = store.read_cell(stored.row_ref, name_header)
        except CatalogStoreError as e:
            report.failed += 1
            report.errors.append(f"{entry.product_name}: {e.message}")
            continue
        if cell_text(current_name).lower() != entry.name_key:
            message = (
                f"Row mismatch at row {stored.row_ref}: expected '{entry.product_name}', "
                f"found '{cell_text(current_name)}'"
            )
            logger.warning(message)
            report.row_mismatches += 1
            report.warnings.append(message)
            continue

        current = {f: cell_text(stored.cells.get(h)) for f, h in headers.items()}
        try:
            answer = client.complete_fields(build_enrichment_prompt(entry, current))
        except ExternalServiceError as e:
            logger.error(f"Failed to enrich {entry.product_name} (row {stored.row_ref}): {e.message}")
            report.failed += 1
            report.errors.append(f"{entry.product_name}: {e.message}")
            sleep(config.api_delay_ms / 1000)
            continue

        written = _write_answer(store, entry, stored, missing, headers, answer, report)
        sleep(config.api_delay_ms / 1000)
        if written is None:
            report.failed += 1
            continue
        report.enriched += 1
        report.fields_written += len(written)
        report.apps.append(EnrichedApp(product_name=entry.product_name, row_ref=stored.row_ref, fields_written=written))

    report.remaining = report.needing_enrichment - report.enriched
    logger.info(
        f"Enrichment: enriched={report.enriched} failed={report.failed} "
        f"mismatches={report.row_mismatches} remaining={report.remaining}"
    )
    return report


def _write_answer(
    store: CatalogStore,
    entry: CatalogEntry,
    stored: StoredRow,
    missing: List[str],
    headers: Dict[str, str],
    answer: Dict[str, Any],
    report: EnrichmentReport,
) -> Optional[List[str]]:
    """Write answered values into empty fields. Returns the fields written, None if the write failed."""
    answered = {RESPONSE_FIELD_MAP[k]: v for k, v in answer.items() if k in RESPONSE_FIELD_MAP}

    cells: Dict[str, Any] = {}
    written: List[str] = []
    for field in missing:
        if field not in answered:
            continue
        try:
            value = _value_for(field, answered[field])
        except (GradeLevelError, AudienceError) as e:
            message = f"{entry.product_name} (row {stored.row_ref}): {e.message}; {field} not written"
            logger.warning(message)
            report.warnings.append(message)
            continue
        if value is None:
            continue
        cells[headers[field]] = value
        written.append(field)

    if not cells:
        return []

    try:
        store.update_row(stored.row_ref, cells)
    except CatalogStoreError as e:
        logger.error(f"Write failed for {entry.product_name}: {e.message}")
        report.errors.append(f"{entry.product_name}: {e.message}")
        return None

    audit = [
        make_audit_entry(
            AuditOperation.ENRICH_ALL_FIELDS,
            entry.product_name,
            stored.row_ref,
            field,
            stored.cells.get(headers[field]),
            cells[headers[field]],
        )
        for field in written
    ]
    try:
        store.append_audit(audit)
    except CatalogStoreError as e:
        message = f"Audit log write failed for {entry.product_name}: {e.message}"
        logger.error(message)
        report.warnings.append(message)

    return written
