"""Ranked public search over approved entries.

Ranking is delegated to PostgreSQL: ``pg_trgm`` similarity on the
normalized name plus ``ts_rank_cd`` on the name tokens, with fixed boosts
for exact normalized (10) and exact original (8) matches.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import Select, case, cast, func, literal, or_, select
from sqlalchemy.dialects.postgresql import REGCONFIG
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.database.models import (
    ArchiveRepository,
    County,
    District,
    EnslavedPerson,
    EnslavementDetails,
    Page,
    Source,
    SourceItem,
    TaxAssessmentEntry,
    Taxpayer,
)
from taxroll_archive.schemas.search import MatchMode
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

APPROVED = "approved"
NORMALIZED_EXACT_BOOST = 10
ORIGINAL_EXACT_BOOST = 8


@dataclass(frozen=True)
class SearchCriteria:
    """Validated search inputs; optional filters are skipped when None."""

    normalized_name: str
    raw_name: str
    mode: MatchMode = MatchMode.FUZZY
    county_id: Optional[int] = None
    district_id: Optional[int] = None
    year: Optional[int] = None
    taxpayer_normalized: Optional[str] = None
    taxpayer_raw: Optional[str] = None
    limit: int = 50
    offset: int = 0
    similarity_threshold: float = 0.3
    text_config: str = "simple"


def _citation_columns() -> list:
    return [
        TaxAssessmentEntry.id,
        TaxAssessmentEntry.year,
        TaxAssessmentEntry.line_number,
        TaxAssessmentEntry.sequence_on_page,
        County.id.label("county_id"),
        County.name.label("county_name"),
        District.id.label("district_id"),
        District.name.label("district_name"),
        EnslavedPerson.id.label("enslaved_person_id"),
        EnslavedPerson.name_original.label("enslaved_name_original"),
        EnslavedPerson.name_normalized.label("enslaved_name_normalized"),
        Taxpayer.id.label("taxpayer_id"),
        Taxpayer.name_original.label("taxpayer_name_original"),
        Taxpayer.name_normalized.label("taxpayer_name_normalized"),
        EnslavementDetails.category_original,
        EnslavementDetails.age_original,
        EnslavementDetails.age_years,
        EnslavementDetails.value_original,
        EnslavementDetails.value_cents,
        EnslavementDetails.quantity_original,
        EnslavementDetails.remarks_original,
        EnslavementDetails.transcription_confidence,
        Page.id.label("page_id"),
        Page.page_number_label,
        Page.image_url,
        Page.image_thumbnail_url,
        SourceItem.id.label("source_item_id"),
        SourceItem.label.label("source_item_label"),
        Source.id.label("source_id"),
        Source.title.label("source_title"),
        Source.citation_preferred,
        ArchiveRepository.id.label("repository_id"),
        ArchiveRepository.name.label("repository_name"),
        ArchiveRepository.location.label("repository_location"),
        ArchiveRepository.url.label("repository_url"),
    ]


def _approved_entries(stmt: Select) -> Select:
    """Join the citation chain and keep only approved entries."""
    return (
        stmt.select_from(TaxAssessmentEntry)
        .join(EnslavementDetails, EnslavementDetails.entry_id == TaxAssessmentEntry.id)
        .join(EnslavedPerson, EnslavedPerson.id == TaxAssessmentEntry.enslaved_person_id)
        .join(Taxpayer, Taxpayer.id == TaxAssessmentEntry.taxpayer_id)
        .join(Page, Page.id == TaxAssessmentEntry.page_id)
        .join(SourceItem, SourceItem.id == Page.source_item_id)
        .join(Source, Source.id == SourceItem.source_id)
        .join(ArchiveRepository, ArchiveRepository.id == Source.repository_id)
        .join(County, County.id == TaxAssessmentEntry.county_id)
        .outerjoin(District, District.id == TaxAssessmentEntry.district_id)
        .where(EnslavementDetails.status == APPROVED)
    )


def match_predicate(criteria: SearchCriteria, tsquery):
    """Single OR clause selected by match mode."""
    name_normalized = EnslavedPerson.name_normalized
    name_original = EnslavedPerson.name_original

    if criteria.mode == MatchMode.EXACT:
        return or_(
            name_normalized == criteria.normalized_name,
            name_original == criteria.raw_name,
        )

    if criteria.mode == MatchMode.PARTIAL:
        return or_(
            name_normalized.icontains(criteria.normalized_name, autoescape=True),
            name_original.icontains(criteria.raw_name, autoescape=True),
        )

    return or_(
        EnslavedPerson.name_tokens.bool_op("@@")(tsquery),
        func.similarity(name_normalized, criteria.normalized_name) > criteria.similarity_threshold,
        name_original.icontains(criteria.raw_name, autoescape=True),
    )


def rank_expression(criteria: SearchCriteria, tsquery):
    return (
        case((EnslavedPerson.name_normalized == criteria.normalized_name, NORMALIZED_EXACT_BOOST), else_=0)
        + case((EnslavedPerson.name_original == criteria.raw_name, ORIGINAL_EXACT_BOOST), else_=0)
        + func.coalesce(func.ts_rank_cd(EnslavedPerson.name_tokens, tsquery), 0)
        + func.similarity(EnslavedPerson.name_normalized, criteria.normalized_name)
    )


def build_search_statement(criteria: SearchCriteria) -> Select:
    """Build the ranked search SELECT for the given criteria."""
    tsquery = func.websearch_to_tsquery(
        cast(literal(criteria.text_config), REGCONFIG), criteria.raw_name
    )
    rank_score = rank_expression(criteria, tsquery).label("rank_score")

    stmt = _approved_entries(select(*_citation_columns(), rank_score)).where(
        match_predicate(criteria, tsquery)
    )

    if criteria.county_id is not None:
        stmt = stmt.where(TaxAssessmentEntry.county_id == criteria.county_id)
    if criteria.district_id is not None:
        stmt = stmt.where(TaxAssessmentEntry.district_id == criteria.district_id)
    if criteria.year is not None:
        stmt = stmt.where(TaxAssessmentEntry.year == criteria.year)
    if criteria.taxpayer_normalized:
        stmt = stmt.where(
            or_(
                Taxpayer.name_normalized.icontains(criteria.taxpayer_normalized, autoescape=True),
                Taxpayer.name_original.icontains(criteria.taxpayer_raw or criteria.taxpayer_normalized, autoescape=True),
            )
        )

    return (
        stmt.order_by(
            rank_score.desc(),
            TaxAssessmentEntry.sequence_on_page.asc().nulls_last(),
            TaxAssessmentEntry.id.desc(),
        )
        .limit(criteria.limit)
        .offset(criteria.offset)
    )


def build_detail_statement(entry_id: int) -> Select:
    """Single approved entry with the full citation chain and person notes."""
    columns = _citation_columns() + [
        EnslavedPerson.gender,
        EnslavedPerson.approx_birth_year,
        EnslavedPerson.notes.label("enslaved_notes"),
        Taxpayer.notes.label("taxpayer_notes"),
        Page.notes.label("page_notes"),
        SourceItem.date_range.label("source_item_date_range"),
        Source.call_number,
        Source.microfilm_roll,
        Source.format,
        Source.rights,
    ]
    return _approved_entries(select(*columns)).where(TaxAssessmentEntry.id == entry_id).limit(1)


class SearchRepository:
    """Executes search statements against the store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def search(self, criteria: SearchCriteria) -> List[Dict[str, Any]]:
        result = await self.session.execute(build_search_statement(criteria))
        return [dict(row) for row in result.mappings().all()]

    async def get_detail(self, entry_id: int) -> Optional[Dict[str, Any]]:
        result = await self.session.execute(build_detail_statement(entry_id))
        row = result.mappings().first()
        return dict(row) if row else None
