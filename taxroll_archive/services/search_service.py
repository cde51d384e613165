"""Public search over approved entries."""

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.core.config import settings
from taxroll_archive.core.exceptions import EntryNotFoundError, NameRequiredError, ValidationError
from taxroll_archive.repositories.lookup_repository import LookupRepository
from taxroll_archive.repositories.search_repository import SearchCriteria, SearchRepository
from taxroll_archive.schemas.search import (
    EntryDetail,
    FilterOption,
    FiltersResponse,
    MatchMode,
    SearchResponse,
    SearchResultRow,
)
from taxroll_archive.services.base_service import BaseService
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.names import normalize_name
from taxroll_archive.utils.ranking import rank_candidates

LOGGER = get_logger(__name__)


def clamp_limit(limit: Optional[int], default: int, maximum: int) -> int:
    """Missing or zero limits fall back to the default; the result lies in [1, maximum]."""
    if not limit:
        limit = default
    return max(1, min(limit, maximum))


def parse_match_mode(value: Optional[str]) -> MatchMode:
    if not value:
        return MatchMode.FUZZY
    try:
        return MatchMode(value)
    except ValueError as e:
        raise ValidationError(f"Unknown match mode: {value}", code="invalid_match_mode") from e


class SearchService(BaseService):
    """Ranked name search, entry detail and filter lookups for the public portal."""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.repository = SearchRepository(session)
        self.lookups = LookupRepository(session)
        self.settings = settings.search

    async def search(
        self,
        name: Optional[str],
        county_id: Optional[int] = None,
        district_id: Optional[int] = None,
        year: Optional[int] = None,
        taxpayer: Optional[str] = None,
        mode: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> SearchResponse:
        """Search approved entries by enslaved person name.

        Args:
            name: Name to search for (required)
            county_id: Optional county filter
            district_id: Optional district filter
            year: Assessment year, defaults to the configured year
            taxpayer: Optional taxpayer name substring
            mode: exact, partial or fuzzy (default)
            limit: Page size, clamped to the configured maximum
            offset: Rows to skip

        Returns:
            SearchResponse with the ranked rows

        Raises:
            NameRequiredError: If the name is empty
        """
        raw_name = (name or "").strip()
        if not raw_name:
            raise NameRequiredError()

        raw_taxpayer = (taxpayer or "").strip() or None
        criteria = SearchCriteria(
            normalized_name=normalize_name(raw_name),
            raw_name=raw_name,
            mode=parse_match_mode(mode),
            county_id=county_id,
            district_id=district_id,
            year=year or self.settings.default_year,
            taxpayer_normalized=normalize_name(raw_taxpayer) or None,
            taxpayer_raw=raw_taxpayer,
            limit=clamp_limit(limit, self.settings.default_limit, self.settings.max_limit),
            offset=max(offset or 0, 0),
            similarity_threshold=self.settings.similarity_threshold,
            text_config=self.settings.text_config,
        )

        rows = await self.execute(self.repository.search, criteria)
        LOGGER.debug(
            "Search executed",
            extra={"mode": criteria.mode.value, "limit": criteria.limit, "results": len(rows)},
        )
        entries = [SearchResultRow(**row) for row in rows]
        return SearchResponse(count=len(entries), entries=entries)

    async def get_detail(self, entry_id: int) -> EntryDetail:
        """Approved entry with its citation chain.

        Raises:
            EntryNotFoundError: If the entry is missing or not approved
        """
        row = await self.execute(self.repository.get_detail, entry_id)
        if row is None:
            raise EntryNotFoundError(entry_id)
        return EntryDetail(**row)

    async def get_filters(self, county_id: Optional[int] = None) -> FiltersResponse:
        """Enabled counties, and enabled districts optionally limited to one county."""
        counties = await self.execute(self.lookups.list_counties, enabled_only=True)
        districts = await self.execute(self.lookups.list_districts, county_id=county_id, enabled_only=True)
        return FiltersResponse(
            counties=[FilterOption(id=county.id, name=county.name) for county in counties],
            districts=[
                FilterOption(id=district.id, name=district.name, county_id=district.county_id)
                for district in districts
            ],
        )

    def rank(self, query: str, candidates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Score candidates against a query without touching the store."""
        return rank_candidates(query, candidates)
