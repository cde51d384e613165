"""Transcription payloads and entry responses."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Column ranges: Integer, BigInteger and Numeric(5, 4)
Int4 = Annotated[int, Field(ge=-(2**31), le=2**31 - 1)]
Int8 = Annotated[int, Field(ge=-(2**63), le=2**63 - 1)]
Confidence = Annotated[Decimal, Field(ge=0, le=1)]

DETAIL_FIELDS = (
    "category_original",
    "age_original",
    "age_years",
    "value_original",
    "value_cents",
    "quantity_original",
    "remarks_original",
    "transcription_confidence",
    "status",
)


class EntryPayload(BaseModel):
    """Loosely-typed transcription payload.

    Every field is optional here; the resolver decides what is required so it
    can report all missing fields at once. ``model_fields_set`` tells partial
    updates which fields the caller actually sent.
    """

    model_config = ConfigDict(extra="ignore")

    page_id: Optional[Int8] = None
    county_id: Optional[Int8] = None
    district_id: Optional[Int8] = None

    taxpayer_id: Optional[Int8] = None
    taxpayer_name_original: Optional[str] = None
    taxpayer_name_normalized: Optional[str] = None

    enslaved_person_id: Optional[Int8] = None
    enslaved_name_original: Optional[str] = None
    enslaved_name_normalized: Optional[str] = None
    gender: Optional[str] = None
    approx_birth_year: Optional[Int4] = None
    enslaved_notes: Optional[str] = None

    line_number: Optional[Int4] = None
    sequence_on_page: Optional[Int4] = None
    year: Optional[Int4] = None

    category_original: Optional[str] = None
    age_original: Optional[str] = None
    age_years: Optional[Int4] = None
    value_original: Optional[str] = None
    value_cents: Optional[Int8] = None
    quantity_original: Optional[str] = None
    remarks_original: Optional[str] = None
    transcription_confidence: Optional[Confidence] = None
    status: Optional[str] = None

    def provided(self) -> Dict[str, Any]:
        """Fields explicitly present in the request body."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class ResolvedEntry(BaseModel):
    """Payload after resolution: scope and entity ids are filled in."""

    payload: EntryPayload
    page_id: int
    county_id: int
    district_id: Optional[int] = None
    taxpayer_id: int
    enslaved_person_id: int


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    page_id: int
    county_id: int
    district_id: Optional[int] = None
    taxpayer_id: int
    enslaved_person_id: int
    line_number: Optional[int] = None
    sequence_on_page: Optional[int] = None
    year: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DetailsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entry_id: int
    category_original: Optional[str] = None
    age_original: Optional[str] = None
    age_years: Optional[int] = None
    value_original: Optional[str] = None
    value_cents: Optional[int] = None
    quantity_original: Optional[str] = None
    remarks_original: Optional[str] = None
    transcription_confidence: Optional[Decimal] = None
    transcriber_user_id: Optional[int] = None
    reviewed_by_user_id: Optional[int] = None
    status: str
    updated_at: Optional[datetime] = None


class PageWorklistItem(BaseModel):
    id: int
    page_id: int
    sequence_on_page: Optional[int] = None
    line_number: Optional[int] = None
    year: int
    taxpayer_name_original: str
    enslaved_name_original: str
    status: str
    transcription_confidence: Optional[Decimal] = None


class DuplicateWarning(BaseModel):
    row: Dict[str, Any]
    existing_entry_id: int
    warning: str = "possible_duplicate"


class RowError(BaseModel):
    index: int
    row: Dict[str, Any]
    error: str
    message: str


class BulkImportResult(BaseModel):
    imported: int = 0
    rows: int = 0
    dedupe_warnings: List[DuplicateWarning] = Field(default_factory=list)
    row_errors: List[RowError] = Field(default_factory=list)


class EntryRecord(BaseModel):
    """An entry together with its details row."""

    entry: EntryResponse
    details: Optional[DetailsResponse] = None
