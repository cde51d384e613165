"""Entry resolution.

Turns a loosely-typed transcription payload into scope-checked, normalized
ids: the page fixes the county and district, the taxpayer is found or
created within that scope, and the enslaved person is found or created
globally by normalized name. The caller owns the transaction.
"""

from dataclasses import dataclass
from typing import List, Optional

from taxroll_archive.core.exceptions import (
    CountyMismatchError,
    DistrictMismatchError,
    MissingFieldsError,
    PageNotFoundError,
    PageRequiredError,
)
from taxroll_archive.repositories.lookup_repository import LookupRepository
from taxroll_archive.repositories.person_repository import EnslavedPersonRepository, TaxpayerRepository
from taxroll_archive.schemas.entries import EntryPayload, ResolvedEntry
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.names import normalize_name

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ResolutionDefaults:
    """Values an update inherits from the stored entry when the payload omits them."""

    page_id: Optional[int] = None
    district_id: Optional[int] = None
    taxpayer_id: Optional[int] = None
    enslaved_person_id: Optional[int] = None


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class EntryResolver:
    """Validates a payload against its page and links it to person records."""

    def __init__(
        self,
        lookups: LookupRepository,
        taxpayers: TaxpayerRepository,
        enslaved_people: EnslavedPersonRepository,
    ):
        self.lookups = lookups
        self.taxpayers = taxpayers
        self.enslaved_people = enslaved_people

    async def resolve(
        self,
        payload: EntryPayload,
        defaults: Optional[ResolutionDefaults] = None,
    ) -> ResolvedEntry:
        """Resolve scope and person ids for an entry payload.

        Args:
            payload: Transcription payload, user-entered or imported
            defaults: Stored values to fall back on during updates

        Returns:
            ResolvedEntry with county, district, taxpayer and enslaved person ids

        Raises:
            PageRequiredError: If no page id is given
            MissingFieldsError: Listing every missing name field
            PageNotFoundError: If the page does not exist
            CountyMismatchError: If the payload county differs from the page county
            DistrictMismatchError: If the payload district differs from a set page district
        """
        defaults = defaults or ResolutionDefaults()

        page_id = payload.page_id or defaults.page_id
        if not page_id:
            raise PageRequiredError()

        taxpayer_id = payload.taxpayer_id or defaults.taxpayer_id
        enslaved_person_id = payload.enslaved_person_id or defaults.enslaved_person_id

        missing: List[str] = []
        if not taxpayer_id and not _present(payload.taxpayer_name_original):
            missing.append("taxpayer_name_original")
        if not enslaved_person_id and not _present(payload.enslaved_name_original):
            missing.append("enslaved_name_original")
        if missing:
            raise MissingFieldsError(missing)

        page = await self.lookups.get_page(page_id)
        if page is None:
            raise PageNotFoundError(page_id)

        if payload.county_id is not None and payload.county_id != page.county_id:
            raise CountyMismatchError(page.county_id)
        county_id = page.county_id

        if (
            payload.district_id is not None
            and page.district_id is not None
            and payload.district_id != page.district_id
        ):
            raise DistrictMismatchError(page.district_id)
        # Payload, then page, then the stored district if the page is unchanged
        district_id = payload.district_id
        if district_id is None:
            district_id = page.district_id
        if district_id is None and page_id == defaults.page_id:
            district_id = defaults.district_id

        # A name in the payload re-links the entry even when an id is stored
        if not payload.taxpayer_id and _present(payload.taxpayer_name_original):
            name_original = payload.taxpayer_name_original.strip()
            taxpayer_id = await self.taxpayers.get_or_create(
                county_id=county_id,
                district_id=district_id,
                name_original=name_original,
                name_normalized=payload.taxpayer_name_normalized or normalize_name(name_original),
            )

        if not payload.enslaved_person_id and _present(payload.enslaved_name_original):
            name_original = payload.enslaved_name_original.strip()
            enslaved_person_id = await self.enslaved_people.get_or_create(
                name_original=name_original,
                name_normalized=payload.enslaved_name_normalized or normalize_name(name_original),
                gender=payload.gender,
                approx_birth_year=payload.approx_birth_year,
                notes=payload.enslaved_notes,
            )

        LOGGER.debug(
            "Resolved entry payload",
            extra={
                "page_id": page_id,
                "county_id": county_id,
                "district_id": district_id,
                "taxpayer_id": taxpayer_id,
                "enslaved_person_id": enslaved_person_id,
            },
        )

        return ResolvedEntry(
            payload=payload,
            page_id=page_id,
            county_id=county_id,
            district_id=district_id,
            taxpayer_id=taxpayer_id,
            enslaved_person_id=enslaved_person_id,
        )
