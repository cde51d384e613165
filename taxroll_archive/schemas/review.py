"""Review queue and decision models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ReviewDecisionRequest(BaseModel):
    decision: Optional[str] = Field(None, description="approved or rejected")
    notes: Optional[str] = Field(None, description="Appended to the entry remarks when non-empty")


class ReviewQueueItem(BaseModel):
    id: int
    year: Optional[int] = None
    line_number: Optional[int] = None
    sequence_on_page: Optional[int] = None
    county_name: Optional[str] = None
    district_name: Optional[str] = None
    enslaved_name_original: str
    enslaved_name_normalized: str
    taxpayer_name_original: str
    taxpayer_name_normalized: str
    status: str
    transcription_confidence: Optional[Decimal] = None
    remarks_original: Optional[str] = None
    page_number_label: Optional[str] = None
    image_thumbnail_url: Optional[str] = None
    updated_at: Optional[datetime] = None
