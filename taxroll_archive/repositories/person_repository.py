"""Find-or-create access for taxpayers and enslaved people.

Both tables carry a unique key on their normalized identity. Inserts use
``ON CONFLICT DO NOTHING``; when a concurrent request won the race the
insert returns no row and the existing row is fetched instead.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.database.models import EnslavedPerson, Taxpayer
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

NULL_DISTRICT = -1


class TaxpayerRepository:
    """Taxpayers scoped by (county, district, normalized name)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_id(self, county_id: int, district_id: Optional[int], name_normalized: str) -> Optional[int]:
        stmt = (
            select(Taxpayer.id)
            .where(
                Taxpayer.county_id == county_id,
                func.coalesce(Taxpayer.district_id, NULL_DISTRICT)
                == (district_id if district_id is not None else NULL_DISTRICT),
                Taxpayer.name_normalized == name_normalized,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        county_id: int,
        district_id: Optional[int],
        name_original: str,
        name_normalized: str,
    ) -> int:
        """Return the id of the taxpayer with this scope and name, creating it if needed."""
        existing = await self.find_id(county_id, district_id, name_normalized)
        if existing is not None:
            return existing

        stmt = (
            insert(Taxpayer)
            .values(
                county_id=county_id,
                district_id=district_id,
                name_original=name_original,
                name_normalized=name_normalized,
            )
            .on_conflict_do_nothing()
            .returning(Taxpayer.id)
        )
        inserted = (await self.session.execute(stmt)).scalar_one_or_none()
        if inserted is not None:
            LOGGER.debug(
                "Created taxpayer",
                extra={"taxpayer_id": inserted, "county_id": county_id, "district_id": district_id},
            )
            return inserted

        # Lost a concurrent insert race
        return await self.find_id(county_id, district_id, name_normalized)


class EnslavedPersonRepository:
    """Enslaved people deduplicated globally by normalized name."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_id(self, name_normalized: str) -> Optional[int]:
        stmt = select(EnslavedPerson.id).where(EnslavedPerson.name_normalized == name_normalized).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        name_original: str,
        name_normalized: str,
        gender: Optional[str] = None,
        approx_birth_year: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Return the id of the person with this normalized name, creating it if needed."""
        existing = await self.find_id(name_normalized)
        if existing is not None:
            return existing

        stmt = (
            insert(EnslavedPerson)
            .values(
                name_original=name_original,
                name_normalized=name_normalized,
                gender=gender,
                approx_birth_year=approx_birth_year,
                notes=notes,
            )
            .on_conflict_do_nothing(index_elements=[EnslavedPerson.name_normalized])
            .returning(EnslavedPerson.id)
        )
        inserted = (await self.session.execute(stmt)).scalar_one_or_none()
        if inserted is not None:
            LOGGER.debug("Created enslaved person", extra={"enslaved_person_id": inserted})
            return inserted

        return await self.find_id(name_normalized)
