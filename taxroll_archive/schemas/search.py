"""Public search request and response models."""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MatchMode(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"


class CitationFields(BaseModel):
    """Denormalized citation chain carried on every result row."""

    model_config = ConfigDict(from_attributes=True)

    page_id: int
    page_number_label: Optional[str] = None
    image_url: Optional[str] = None
    image_thumbnail_url: Optional[str] = None
    source_item_id: int
    source_item_label: Optional[str] = None
    source_id: int
    source_title: Optional[str] = None
    citation_preferred: Optional[str] = None
    repository_id: int
    repository_name: Optional[str] = None
    repository_location: Optional[str] = None
    repository_url: Optional[str] = None


class SearchResultRow(CitationFields):
    id: int
    year: Optional[int] = None
    line_number: Optional[int] = None
    sequence_on_page: Optional[int] = None
    county_id: int
    county_name: Optional[str] = None
    district_id: Optional[int] = None
    district_name: Optional[str] = None
    enslaved_person_id: int
    enslaved_name_original: str
    enslaved_name_normalized: str
    taxpayer_id: int
    taxpayer_name_original: str
    taxpayer_name_normalized: str
    category_original: Optional[str] = None
    age_original: Optional[str] = None
    age_years: Optional[int] = None
    value_original: Optional[str] = None
    value_cents: Optional[int] = None
    quantity_original: Optional[str] = None
    remarks_original: Optional[str] = None
    transcription_confidence: Optional[Decimal] = None
    rank_score: float = 0.0


class EntryDetail(SearchResultRow):
    gender: Optional[str] = None
    approx_birth_year: Optional[int] = None
    enslaved_notes: Optional[str] = None
    taxpayer_notes: Optional[str] = None
    page_notes: Optional[str] = None
    source_item_date_range: Optional[str] = None
    call_number: Optional[str] = None
    microfilm_roll: Optional[str] = None
    format: Optional[str] = None
    rights: Optional[str] = None


class SearchResponse(BaseModel):
    count: int
    entries: List[SearchResultRow]


class FilterOption(BaseModel):
    id: int
    name: str
    county_id: Optional[int] = None


class FiltersResponse(BaseModel):
    counties: List[FilterOption]
    districts: List[FilterOption]


class RankRequest(BaseModel):
    query: str = Field(..., description="Name to score candidates against")
    candidates: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Candidates carrying name_normalized or name_original",
    )
