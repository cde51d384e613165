"""Bulk import file parsing.

CSV files use their header row as field names; JSON files hold an array of
row objects. Unreadable files fail the request. Rows that cannot be coerced
are reported one by one and never stop the rest of the file.
"""

import csv
import io
import json
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from taxroll_archive.core.exceptions import ImportFileError
from taxroll_archive.schemas.entries import EntryPayload, RowError
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

INTEGER_FIELDS = frozenset(
    {
        "page_id",
        "county_id",
        "district_id",
        "taxpayer_id",
        "enslaved_person_id",
        "line_number",
        "sequence_on_page",
        "year",
        "age_years",
        "value_cents",
        "approx_birth_year",
    }
)
DECIMAL_FIELDS = frozenset({"transcription_confidence"})


class ImportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


class DuplicatePolicy(str, Enum):
    """Which columns identify a row that was already transcribed."""

    PAGE_SEQUENCE_ENSLAVED = "page_sequence_enslaved"
    PAGE_SEQUENCE_ENSLAVED_TAXPAYER = "page_sequence_enslaved_taxpayer"


class RowCoercionError(ValueError):
    """A single cell could not be converted to its column type."""

    def __init__(self, field: str, value: Any):
        super().__init__(f"{field} must be numeric, got {value!r}")
        self.field = field


def parse_format(value: Optional[str]) -> ImportFormat:
    try:
        return ImportFormat((value or ImportFormat.CSV.value).strip().lower())
    except ValueError as e:
        raise ImportFileError(f"Unsupported import format: {value}", code="unsupported_format") from e


def read_rows(content: Optional[bytes], fmt: ImportFormat, max_bytes: int) -> List[Any]:
    """Decode an uploaded buffer into raw rows.

    Args:
        content: Uploaded file bytes
        fmt: Declared file format
        max_bytes: Upload size limit

    Returns:
        Raw rows in file order (dicts for well-formed files)

    Raises:
        ImportFileError: If the file is missing, too large or unreadable
    """
    if not content:
        raise ImportFileError("An import file is required", code="file_required")
    if len(content) > max_bytes:
        raise ImportFileError(f"Import file exceeds {max_bytes} bytes", code="file_too_large")

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ImportFileError("Import file must be UTF-8 encoded", code="invalid_file") from e

    if fmt == ImportFormat.JSON:
        try:
            # Non-integral numbers stay Decimal so 1e400 and NaN never become float
            rows = json.loads(text, parse_float=Decimal, parse_constant=Decimal)
        except json.JSONDecodeError as e:
            raise ImportFileError(f"Invalid JSON: {e.msg}", code="invalid_file") from e
        if not isinstance(rows, list):
            raise ImportFileError("JSON import must be an array of rows", code="invalid_file")
        return rows

    try:
        reader = csv.DictReader(io.StringIO(text))
        return [row for row in reader if any((value or "").strip() for value in row.values() if isinstance(value, str))]
    except csv.Error as e:
        raise ImportFileError(f"Invalid CSV: {e}", code="invalid_file") from e


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _to_int(field: str, value: Any) -> int:
    if isinstance(value, bool):
        raise RowCoercionError(field, value)
    if isinstance(value, int):
        return value
    number = _to_decimal(field, value)
    if number != number.to_integral_value():
        raise RowCoercionError(field, value)
    return int(number)


def _to_decimal(field: str, value: Any) -> Decimal:
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, OverflowError) as e:
        raise RowCoercionError(field, value) from e
    # Infinity and NaN parse as decimals but fit no column
    if not number.is_finite():
        raise RowCoercionError(field, value)
    return number


def coerce_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Blank cells become None and numeric columns are parsed."""
    values: Dict[str, Any] = {}
    for key, value in row.items():
        if key is None:
            # Extra CSV cells without a header
            continue
        field = key.strip()
        if _blank(value):
            values[field] = None
        elif field in INTEGER_FIELDS:
            values[field] = _to_int(field, value)
        elif field in DECIMAL_FIELDS:
            values[field] = _to_decimal(field, value)
        elif isinstance(value, str):
            values[field] = value.strip()
        else:
            values[field] = value
    return values


def build_payload(index: int, row: Any) -> Tuple[Optional[EntryPayload], Optional[RowError]]:
    """Coerce one raw row into a payload, or describe why it cannot be."""
    if not isinstance(row, dict):
        return None, RowError(index=index, row={"value": row}, error="invalid_row", message="Row must be an object")

    try:
        return EntryPayload.model_validate(coerce_row(row)), None
    except RowCoercionError as e:
        LOGGER.warning(f"Import row {index} rejected: {e}")
        return None, RowError(index=index, row=row, error="invalid_value", message=str(e))
    except PydanticValidationError as e:
        LOGGER.warning(f"Import row {index} rejected: {e.error_count()} invalid fields")
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        return None, RowError(index=index, row=row, error="invalid_value", message=f"{field}: {first['msg']}")
