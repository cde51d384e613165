"""Repository for geographic lookups and pages."""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.database.models import County, District, Page
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)


class LookupRepository:
    """Read access to counties, districts and pages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_page(self, page_id: int) -> Optional[Page]:
        result = await self.session.execute(select(Page).where(Page.id == page_id))
        return result.scalar_one_or_none()

    async def list_counties(self, enabled_only: bool = False) -> List[County]:
        stmt = select(County).order_by(County.name.asc())
        if enabled_only:
            stmt = stmt.where(County.enabled.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_districts(
        self,
        county_id: Optional[int] = None,
        enabled_only: bool = False,
    ) -> List[District]:
        stmt = select(District).order_by(District.name.asc())
        if county_id is not None:
            stmt = stmt.where(District.county_id == county_id)
        if enabled_only:
            stmt = stmt.where(District.enabled.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
