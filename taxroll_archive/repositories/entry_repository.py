"""Repository for tax assessment entries and their enslavement details."""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.database.models import (
    County,
    District,
    EnslavedPerson,
    EnslavementDetails,
    Page,
    TaxAssessmentEntry,
    Taxpayer,
)
from taxroll_archive.repositories.base_repository import BaseRepository
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

NULL_SEQUENCE = -1
REVIEW_QUEUE_STATUSES = ("pending_review", "rejected")


class EntryRepository(BaseRepository[TaxAssessmentEntry]):
    """Entry and details rows, created and updated together."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, TaxAssessmentEntry)
        self.details = BaseRepository(session, EnslavementDetails)

    async def create_entry(self, **values: Any) -> TaxAssessmentEntry:
        return await self.create(**values)

    async def create_details(self, entry_id: int, **values: Any) -> EnslavementDetails:
        return await self.details.create(entry_id=entry_id, **values)

    async def get_details_by_entry(self, entry_id: int) -> Optional[EnslavementDetails]:
        stmt = select(EnslavementDetails).where(EnslavementDetails.entry_id == entry_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_entry(self, entry: TaxAssessmentEntry, **values: Any) -> TaxAssessmentEntry:
        return await self.update(entry, **values)

    async def update_details(self, details: EnslavementDetails, **values: Any) -> EnslavementDetails:
        return await self.details.update(details, **values)

    async def list_by_page(self, page_id: int) -> List[Dict[str, Any]]:
        """Page worklist ordered by position on the page."""
        stmt = (
            select(
                TaxAssessmentEntry.id,
                TaxAssessmentEntry.page_id,
                TaxAssessmentEntry.sequence_on_page,
                TaxAssessmentEntry.line_number,
                TaxAssessmentEntry.year,
                Taxpayer.name_original.label("taxpayer_name_original"),
                EnslavedPerson.name_original.label("enslaved_name_original"),
                EnslavementDetails.status,
                EnslavementDetails.transcription_confidence,
            )
            .join(EnslavementDetails, EnslavementDetails.entry_id == TaxAssessmentEntry.id)
            .join(Taxpayer, Taxpayer.id == TaxAssessmentEntry.taxpayer_id)
            .join(EnslavedPerson, EnslavedPerson.id == TaxAssessmentEntry.enslaved_person_id)
            .where(TaxAssessmentEntry.page_id == page_id)
            .order_by(TaxAssessmentEntry.sequence_on_page.asc().nulls_last(), TaxAssessmentEntry.id.asc())
        )
        result = await self.session.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def find_duplicate(
        self,
        page_id: int,
        sequence_on_page: Optional[int],
        enslaved_name_normalized: str,
        taxpayer_name_normalized: Optional[str] = None,
    ) -> Optional[int]:
        """Id of an existing entry at the same page position for the same person.

        ``taxpayer_name_normalized`` narrows the match to one taxpayer when
        the import policy asks for it.
        """
        stmt = (
            select(TaxAssessmentEntry.id)
            .join(EnslavedPerson, EnslavedPerson.id == TaxAssessmentEntry.enslaved_person_id)
            .where(
                TaxAssessmentEntry.page_id == page_id,
                func.coalesce(TaxAssessmentEntry.sequence_on_page, NULL_SEQUENCE)
                == (sequence_on_page if sequence_on_page is not None else NULL_SEQUENCE),
                EnslavedPerson.name_normalized == enslaved_name_normalized,
            )
        )
        if taxpayer_name_normalized is not None:
            stmt = stmt.join(Taxpayer, Taxpayer.id == TaxAssessmentEntry.taxpayer_id).where(
                Taxpayer.name_normalized == taxpayer_name_normalized
            )
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def review_queue(self, limit: int = 200) -> List[Dict[str, Any]]:
        """Entries awaiting a decision or sent back, most recently updated first."""
        stmt = (
            select(
                TaxAssessmentEntry.id,
                TaxAssessmentEntry.year,
                TaxAssessmentEntry.line_number,
                TaxAssessmentEntry.sequence_on_page,
                County.name.label("county_name"),
                District.name.label("district_name"),
                EnslavedPerson.name_original.label("enslaved_name_original"),
                EnslavedPerson.name_normalized.label("enslaved_name_normalized"),
                Taxpayer.name_original.label("taxpayer_name_original"),
                Taxpayer.name_normalized.label("taxpayer_name_normalized"),
                EnslavementDetails.status,
                EnslavementDetails.transcription_confidence,
                EnslavementDetails.remarks_original,
                Page.page_number_label,
                Page.image_thumbnail_url,
                TaxAssessmentEntry.updated_at,
            )
            .join(EnslavementDetails, EnslavementDetails.entry_id == TaxAssessmentEntry.id)
            .join(EnslavedPerson, EnslavedPerson.id == TaxAssessmentEntry.enslaved_person_id)
            .join(Taxpayer, Taxpayer.id == TaxAssessmentEntry.taxpayer_id)
            .join(Page, Page.id == TaxAssessmentEntry.page_id)
            .join(County, County.id == TaxAssessmentEntry.county_id)
            .outerjoin(District, District.id == TaxAssessmentEntry.district_id)
            .where(EnslavementDetails.status.in_(REVIEW_QUEUE_STATUSES))
            .order_by(TaxAssessmentEntry.updated_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [dict(row) for row in result.mappings().all()]
