"""
Upload Ingest

Reads an uploaded CSV or Excel file into a header row plus data rows for the
reconciliation engine. Cells stay raw; the RowNormalizer coerces them later.

Version: catalog_reconcile_v1
"""

import logging
from io import BytesIO
from typing import Any, List, Tuple

import pandas as pd

from appcatalog.shared.errors import ValidationError

logger = logging.getLogger(__name__)


EXCEL_EXTENSIONS = (".xlsx", ".xlsm", ".xls")


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def dataframe_to_rows(df: pd.DataFrame) -> Tuple[List[str], List[List[Any]]]:
    """Split a DataFrame into (headers, rows) with NaN rendered as ''."""
    headers = [str(c).strip() for c in df.columns]
    rows = [[_cell(v) for v in record] for record in df.itertuples(index=False, name=None)]
    return headers, rows


def read_tabular_upload(contents: bytes, filename: str) -> Tuple[List[str], List[List[Any]]]:
    """
    Parse uploaded bytes by file extension.

    Args:
        contents: Raw upload bytes
        filename: Original file name; .xlsx/.xlsm/.xls read as Excel, anything else as CSV

    Returns:
        (headers, rows)

    Raises:
        ValidationError: the file cannot be parsed or has no header row
    """
    name = (filename or "").lower()
    try:
        if name.endswith(EXCEL_EXTENSIONS):
            df = pd.read_excel(BytesIO(contents), sheet_name=0, dtype=object)
        else:
            df = pd.read_csv(BytesIO(contents), dtype=object, keep_default_na=False)
    except Exception as e:
        logger.warning(f"Could not parse upload {filename}: {e}")
        raise ValidationError(f"Could not parse {filename or 'upload'}: {e}")

    if len(df.columns) == 0:
        raise ValidationError(f"{filename or 'upload'} has no header row")

    headers, rows = dataframe_to_rows(df)
    logger.info(f"Read {len(rows)} rows with {len(headers)} columns from {filename}")
    return headers, rows
