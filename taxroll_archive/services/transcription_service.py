"""Transcription workflow: create, update, submit and bulk import entries."""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.core.config import settings
from taxroll_archive.core.database import unit_of_work
from taxroll_archive.core.exceptions import (
    ConflictError,
    EntryNotFoundError,
    NotFoundError,
    ValidationError,
)
from taxroll_archive.repositories.base_repository import snapshot
from taxroll_archive.repositories.entry_repository import EntryRepository
from taxroll_archive.repositories.lookup_repository import LookupRepository
from taxroll_archive.repositories.person_repository import EnslavedPersonRepository, TaxpayerRepository
from taxroll_archive.schemas.entries import (
    DETAIL_FIELDS,
    BulkImportResult,
    DetailsResponse,
    DuplicateWarning,
    EntryPayload,
    EntryRecord,
    EntryResponse,
    PageWorklistItem,
    ResolvedEntry,
    RowError,
)
from taxroll_archive.services.audit_service import Actor, AuditLogWriter
from taxroll_archive.services.base_service import BaseService
from taxroll_archive.services.bulk_import import DuplicatePolicy, ImportFormat, build_payload, read_rows
from taxroll_archive.services.entry_resolver import EntryResolver, ResolutionDefaults
from taxroll_archive.services.entry_status import EntryStatus, SubmitPolicy, ensure_transition
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.names import normalize_name

LOGGER = get_logger(__name__)

ENTRIES_TABLE = "tax_assessment_entries"
DETAILS_TABLE = "enslavement_details"

POSITION_FIELDS = ("line_number", "sequence_on_page", "year")
DETAIL_VALUE_FIELDS = tuple(field for field in DETAIL_FIELDS if field != "status")


def requested_status(value: Optional[str]) -> Optional[EntryStatus]:
    if value is None:
        return None
    try:
        return EntryStatus(value)
    except ValueError as e:
        raise ValidationError(f"Unknown status: {value}", code="invalid_status") from e


def _record(entry: Any, details: Any) -> EntryRecord:
    return EntryRecord(
        entry=EntryResponse.model_validate(entry),
        details=DetailsResponse.model_validate(details) if details is not None else None,
    )


class TranscriptionService(BaseService):
    """Entry create/update/submit and bulk import on top of the resolver.

    Every operation runs in one unit of work together with its audit row.
    """

    def __init__(
        self,
        session: AsyncSession,
        duplicate_policy: str = settings.imports.duplicate_policy,
        submit_policy: str = settings.workflow.submit_policy,
        max_import_bytes: int = settings.imports.max_bytes,
        default_year: int = settings.search.default_year,
    ):
        super().__init__(session)
        self.entries = EntryRepository(session)
        self.resolver = EntryResolver(
            LookupRepository(session),
            TaxpayerRepository(session),
            EnslavedPersonRepository(session),
        )
        self.audit = AuditLogWriter(session)
        self.duplicate_policy = DuplicatePolicy(duplicate_policy)
        self.submit_policy = SubmitPolicy(submit_policy)
        self.max_import_bytes = max_import_bytes
        self.default_year = default_year

    async def create_entry(self, payload: EntryPayload, actor: Actor) -> EntryRecord:
        """Resolve a payload and insert the entry with its details row.

        Args:
            payload: Transcription payload
            actor: Acting user, recorded as transcriber

        Returns:
            The created entry and details
        """
        return await self.execute(self._create_entry, payload, actor)

    async def update_entry(self, entry_id: int, payload: EntryPayload, actor: Actor) -> EntryRecord:
        """Apply the fields present in the payload to an existing entry.

        Raises:
            EntryNotFoundError: If the entry does not exist
        """
        return await self.execute(self._update_entry, entry_id, payload, actor)

    async def submit_entry(self, entry_id: int, actor: Actor) -> DetailsResponse:
        """Move an entry to pending_review."""
        return await self.execute(self._submit_entry, entry_id, actor)

    async def list_by_page(self, page_id: int) -> List[PageWorklistItem]:
        return await self.execute(self._list_by_page, page_id)

    async def bulk_import(self, content: Optional[bytes], fmt: ImportFormat, actor: Actor) -> BulkImportResult:
        """Import rows from an uploaded CSV or JSON file.

        Each row runs in its own savepoint: a row that fails validation or a
        store constraint is rolled back and reported, the rest continue. One
        audit row summarizes the batch.

        Args:
            content: Uploaded file bytes
            fmt: Declared file format
            actor: Acting user

        Returns:
            BulkImportResult with counts, duplicate warnings and row errors
        """
        rows = read_rows(content, fmt, self.max_import_bytes)
        return await self.execute(self._bulk_import, rows, fmt, actor)

    async def _create_entry(self, payload: EntryPayload, actor: Actor) -> EntryRecord:
        async with unit_of_work(self.session):
            entry, details = await self._insert_entry(payload, actor)
            await self.audit.record(actor, "create", ENTRIES_TABLE, entry.id, None, entry)

        LOGGER.info(
            "Created entry",
            extra={"entry_id": entry.id, "actor_user_id": actor.user_id, "action": "create"},
        )
        return _record(entry, details)

    async def _insert_entry(self, payload: EntryPayload, actor: Actor):
        status = requested_status(payload.status) or EntryStatus.DRAFT
        resolved = await self.resolver.resolve(payload)

        entry = await self.entries.create_entry(**self._entry_values(resolved))
        details = await self.entries.create_details(
            entry.id,
            **{field: getattr(payload, field) for field in DETAIL_VALUE_FIELDS},
            transcriber_user_id=actor.user_id,
            status=status.value,
        )
        return entry, details

    def _entry_values(self, resolved: ResolvedEntry) -> Dict[str, Any]:
        payload = resolved.payload
        return {
            "page_id": resolved.page_id,
            "county_id": resolved.county_id,
            "district_id": resolved.district_id,
            "taxpayer_id": resolved.taxpayer_id,
            "enslaved_person_id": resolved.enslaved_person_id,
            "line_number": payload.line_number,
            "sequence_on_page": payload.sequence_on_page,
            "year": payload.year or self.default_year,
        }

    async def _update_entry(self, entry_id: int, payload: EntryPayload, actor: Actor) -> EntryRecord:
        async with unit_of_work(self.session):
            entry = await self.entries.get_by_id(entry_id)
            if entry is None:
                raise EntryNotFoundError(entry_id)
            details = await self.entries.get_details_by_entry(entry_id)

            before = {"entry": snapshot(entry), "details": snapshot(details)}
            provided = payload.provided()
            status = requested_status(provided.get("status"))

            resolved = await self.resolver.resolve(
                payload,
                ResolutionDefaults(
                    page_id=entry.page_id,
                    district_id=entry.district_id,
                    taxpayer_id=entry.taxpayer_id,
                    enslaved_person_id=entry.enslaved_person_id,
                ),
            )

            entry_changes = {
                "page_id": resolved.page_id,
                "county_id": resolved.county_id,
                "district_id": resolved.district_id,
                "taxpayer_id": resolved.taxpayer_id,
                "enslaved_person_id": resolved.enslaved_person_id,
            }
            for field in POSITION_FIELDS:
                if field in provided:
                    entry_changes[field] = provided[field]
            if entry_changes.get("year") is None:
                entry_changes.pop("year", None)

            entry = await self.entries.update_entry(entry, **entry_changes)

            if details is not None:
                detail_changes = {field: provided[field] for field in DETAIL_VALUE_FIELDS if field in provided}
                if status is not None:
                    detail_changes["status"] = status.value
                if detail_changes:
                    details = await self.entries.update_details(details, **detail_changes)

            after = {"entry": snapshot(entry), "details": snapshot(details)}
            await self.audit.record(actor, "update", ENTRIES_TABLE, entry_id, before, after)

        LOGGER.info(
            "Updated entry",
            extra={"entry_id": entry_id, "actor_user_id": actor.user_id, "fields": sorted(provided)},
        )
        return _record(entry, details)

    async def _submit_entry(self, entry_id: int, actor: Actor) -> DetailsResponse:
        async with unit_of_work(self.session):
            details = await self.entries.get_details_by_entry(entry_id)
            if details is None:
                raise EntryNotFoundError(entry_id)

            ensure_transition(details.status, EntryStatus.PENDING_REVIEW, self.submit_policy)
            before = snapshot(details)
            details = await self.entries.update_details(details, status=EntryStatus.PENDING_REVIEW.value)
            await self.audit.record(actor, "submit_for_review", DETAILS_TABLE, entry_id, before, details)

        LOGGER.info("Submitted entry for review", extra={"entry_id": entry_id, "actor_user_id": actor.user_id})
        return DetailsResponse.model_validate(details)

    async def _list_by_page(self, page_id: int) -> List[PageWorklistItem]:
        rows = await self.entries.list_by_page(page_id)
        return [PageWorklistItem(**row) for row in rows]

    async def _bulk_import(self, rows: List[Any], fmt: ImportFormat, actor: Actor) -> BulkImportResult:
        result = BulkImportResult(rows=len(rows))

        async with unit_of_work(self.session):
            for index, raw in enumerate(rows):
                payload, error = build_payload(index, raw)
                if error is not None:
                    result.row_errors.append(error)
                    continue

                existing_id = await self._find_duplicate(payload)
                if existing_id is not None:
                    result.dedupe_warnings.append(DuplicateWarning(row=raw, existing_entry_id=existing_id))
                    continue

                try:
                    async with self.session.begin_nested():
                        await self._insert_entry(payload, actor)
                    result.imported += 1
                except (ValidationError, ConflictError, NotFoundError) as e:
                    LOGGER.warning(f"Import row {index} skipped: {e.message}")
                    result.row_errors.append(RowError(index=index, row=raw, error=e.code, message=e.message))
                except IntegrityError as e:
                    LOGGER.warning(f"Import row {index} violated a constraint: {e.orig}")
                    result.row_errors.append(
                        RowError(index=index, row=raw, error="constraint_violation", message=str(e.orig))
                    )
                except DataError as e:
                    LOGGER.warning(f"Import row {index} has a value the store rejects: {e.orig}")
                    result.row_errors.append(RowError(index=index, row=raw, error="invalid_value", message=str(e.orig)))

            await self.audit.record(
                actor,
                "bulk_import",
                ENTRIES_TABLE,
                None,
                None,
                {
                    "format": fmt.value,
                    "rows": result.rows,
                    "imported": result.imported,
                    "dedupe_warnings": len(result.dedupe_warnings),
                    "row_errors": len(result.row_errors),
                },
            )

        LOGGER.info(
            "Bulk import finished",
            extra={
                "actor_user_id": actor.user_id,
                "rows": result.rows,
                "imported": result.imported,
                "duplicates": len(result.dedupe_warnings),
            },
        )
        return result

    async def _find_duplicate(self, payload: EntryPayload) -> Optional[int]:
        if not payload.page_id or not payload.enslaved_name_original:
            return None

        enslaved_normalized = payload.enslaved_name_normalized or normalize_name(payload.enslaved_name_original)
        taxpayer_normalized = None
        if self.duplicate_policy == DuplicatePolicy.PAGE_SEQUENCE_ENSLAVED_TAXPAYER:
            taxpayer_normalized = payload.taxpayer_name_normalized or normalize_name(
                payload.taxpayer_name_original
            )

        return await self.entries.find_duplicate(
            payload.page_id,
            payload.sequence_on_page,
            enslaved_normalized,
            taxpayer_normalized,
        )
