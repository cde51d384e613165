import json
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import DataError, IntegrityError, OperationalError

from taxroll_archive.core.exceptions import (
    CountyMismatchError,
    EntryNotFoundError,
    InternalError,
    InvalidTransitionError,
    MissingFieldsError,
    ValidationError,
)
from taxroll_archive.database.models import EnslavementDetails, Page, TaxAssessmentEntry
from taxroll_archive.schemas.entries import EntryPayload, ResolvedEntry
from taxroll_archive.services.bulk_import import ImportFormat
from taxroll_archive.services.entry_resolver import EntryResolver
from taxroll_archive.services.transcription_service import TranscriptionService


def _entry(**overrides) -> TaxAssessmentEntry:
    values = dict(id=100, page_id=11, county_id=5, district_id=None, taxpayer_id=21, enslaved_person_id=31, year=1863)
    values.update(overrides)
    return TaxAssessmentEntry(**values)


def _details(**overrides) -> EnslavementDetails:
    values = dict(id=200, entry_id=100, status="draft", transcriber_user_id=7, remarks_original=None)
    values.update(overrides)
    return EnslavementDetails(**values)


def _resolved(payload: EntryPayload) -> ResolvedEntry:
    return ResolvedEntry(
        payload=payload, page_id=11, county_id=5, district_id=None, taxpayer_id=21, enslaved_person_id=31
    )


def _service(session, **kwargs) -> TranscriptionService:
    service = TranscriptionService(session, **kwargs)
    service.entries = AsyncMock()
    service.resolver = AsyncMock()
    service.audit = AsyncMock()
    return service


PAYLOAD = EntryPayload(page_id=11, taxpayer_name_original="John Doe", enslaved_name_original="Mary")


class TestCreateEntry:

    @pytest.mark.asyncio
    async def test_creates_entry_details_and_audit_in_one_transaction(self, mock_session, actor):
        service = _service(mock_session)
        entry, details = _entry(), _details()
        service.resolver.resolve.return_value = _resolved(PAYLOAD)
        service.entries.create_entry.return_value = entry
        service.entries.create_details.return_value = details

        record = await service.create_entry(PAYLOAD, actor)

        assert record.entry.id == 100
        assert record.details.status == "draft"
        assert service.entries.create_entry.await_args.kwargs["year"] == 1863
        assert service.entries.create_entry.await_args.kwargs["county_id"] == 5
        details_kwargs = service.entries.create_details.await_args.kwargs
        assert details_kwargs["status"] == "draft"
        assert details_kwargs["transcriber_user_id"] == 7
        service.audit.record.assert_awaited_once_with(actor, "create", "tax_assessment_entries", 100, None, entry)
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_explicit_status_is_kept(self, mock_session, actor):
        service = _service(mock_session)
        payload = PAYLOAD.model_copy(update={"status": "pending_review"})
        service.resolver.resolve.return_value = _resolved(payload)
        service.entries.create_entry.return_value = _entry()
        service.entries.create_details.return_value = _details(status="pending_review")

        await service.create_entry(payload, actor)

        assert service.entries.create_details.await_args.kwargs["status"] == "pending_review"

    @pytest.mark.asyncio
    async def test_unknown_status_is_rejected(self, mock_session, actor):
        service = _service(mock_session)

        with pytest.raises(ValidationError) as exc_info:
            await service.create_entry(PAYLOAD.model_copy(update={"status": "published"}), actor)

        assert exc_info.value.code == "invalid_status"
        service.entries.create_entry.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolver_failure_rolls_back_without_audit(self, mock_session, actor):
        service = _service(mock_session)
        service.resolver.resolve.side_effect = CountyMismatchError(5)

        with pytest.raises(CountyMismatchError):
            await service.create_entry(PAYLOAD, actor)

        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_called()
        service.audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_becomes_internal_error(self, mock_session, actor):
        service = _service(mock_session)
        service.resolver.resolve.return_value = _resolved(PAYLOAD)
        service.entries.create_entry.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))

        with pytest.raises(InternalError):
            await service.create_entry(PAYLOAD, actor)

        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_audit_failure_aborts_the_mutation(self, mock_session, actor):
        service = _service(mock_session)
        service.resolver.resolve.return_value = _resolved(PAYLOAD)
        service.entries.create_entry.return_value = _entry()
        service.entries.create_details.return_value = _details()
        service.audit.record.side_effect = OperationalError("INSERT", {}, Exception("audit_log unavailable"))

        with pytest.raises(InternalError):
            await service.create_entry(PAYLOAD, actor)

        mock_session.commit.assert_not_called()
        mock_session.rollback.assert_awaited_once()


class TestUpdateEntry:

    @pytest.mark.asyncio
    async def test_applies_only_provided_fields(self, mock_session, actor):
        service = _service(mock_session)
        entry, details = _entry(line_number=2), _details(age_original="12")
        service.entries.get_by_id.return_value = entry
        service.entries.get_details_by_entry.return_value = details
        service.entries.update_entry.return_value = entry
        payload = EntryPayload(line_number=4)
        service.resolver.resolve.return_value = _resolved(payload)

        await service.update_entry(100, payload, actor)

        changes = service.entries.update_entry.await_args.kwargs
        assert changes["line_number"] == 4
        assert "year" not in changes
        assert "sequence_on_page" not in changes
        service.entries.update_details.assert_not_called()

        defaults = service.resolver.resolve.await_args.args[1]
        assert (defaults.page_id, defaults.taxpayer_id, defaults.enslaved_person_id) == (11, 21, 31)

    @pytest.mark.asyncio
    async def test_audits_before_and_after(self, mock_session, actor):
        service = _service(mock_session)
        entry, details = _entry(), _details()
        service.entries.get_by_id.return_value = entry
        service.entries.get_details_by_entry.return_value = details
        service.entries.update_entry.return_value = entry
        service.entries.update_details.return_value = details
        payload = EntryPayload(remarks_original="illegible")
        service.resolver.resolve.return_value = _resolved(payload)

        await service.update_entry(100, payload, actor)

        assert service.entries.update_details.await_args.kwargs == {"remarks_original": "illegible"}
        args = service.audit.record.await_args.args
        assert args[1:4] == ("update", "tax_assessment_entries", 100)
        assert args[4]["entry"]["id"] == 100
        assert set(args[5]) == {"entry", "details"}

    @pytest.mark.asyncio
    async def test_missing_entry(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.get_by_id.return_value = None

        with pytest.raises(EntryNotFoundError) as exc_info:
            await service.update_entry(404, EntryPayload(line_number=1), actor)

        assert exc_info.value.status_code == 404
        service.audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_partial_update_keeps_stored_district(self, mock_session, actor):
        service = _service(mock_session)
        lookups = AsyncMock()
        lookups.get_page.return_value = Page(id=11, source_item_id=1, county_id=5, district_id=None)
        service.resolver = EntryResolver(lookups, AsyncMock(), AsyncMock())
        entry = _entry(district_id=7)
        service.entries.get_by_id.return_value = entry
        service.entries.get_details_by_entry.return_value = _details()
        service.entries.update_entry.return_value = entry

        await service.update_entry(100, EntryPayload(line_number=4), actor)

        changes = service.entries.update_entry.await_args.kwargs
        assert changes["district_id"] == 7
        assert changes["county_id"] == 5
        assert changes["line_number"] == 4


class TestSubmitEntry:

    @pytest.mark.asyncio
    async def test_moves_to_pending_review(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.get_details_by_entry.return_value = _details(status="rejected")
        service.entries.update_details.return_value = _details(status="pending_review")

        result = await service.submit_entry(100, actor)

        assert result.status == "pending_review"
        assert service.entries.update_details.await_args.kwargs == {"status": "pending_review"}
        args = service.audit.record.await_args.args
        assert args[1:4] == ("submit_for_review", "enslavement_details", 100)
        assert args[4]["status"] == "rejected"

    @pytest.mark.asyncio
    async def test_resubmitting_approved_allowed_by_default(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.get_details_by_entry.return_value = _details(status="approved")
        service.entries.update_details.return_value = _details(status="pending_review")

        result = await service.submit_entry(100, actor)

        assert result.status == "pending_review"

    @pytest.mark.asyncio
    async def test_strict_policy_blocks_resubmitting_approved(self, mock_session, actor):
        service = _service(mock_session, submit_policy="strict")
        service.entries.get_details_by_entry.return_value = _details(status="approved")

        with pytest.raises(InvalidTransitionError):
            await service.submit_entry(100, actor)

        service.entries.update_details.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_entry(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.get_details_by_entry.return_value = None

        with pytest.raises(EntryNotFoundError):
            await service.submit_entry(404, actor)


class TestListByPage:

    @pytest.mark.asyncio
    async def test_wraps_rows(self, mock_session):
        service = _service(mock_session)
        service.entries.list_by_page.return_value = [
            {
                "id": 100,
                "page_id": 11,
                "sequence_on_page": 1,
                "line_number": 3,
                "year": 1863,
                "taxpayer_name_original": "John Doe",
                "enslaved_name_original": "Mary",
                "status": "draft",
                "transcription_confidence": None,
            }
        ]

        items = await service.list_by_page(11)

        assert [item.id for item in items] == [100]


def _json(rows) -> bytes:
    return json.dumps(rows).encode("utf-8")


ROW = {"page_id": 11, "sequence_on_page": 1, "taxpayer_name_original": "John Doe", "enslaved_name_original": "Mary"}


class TestBulkImport:

    @pytest.mark.asyncio
    async def test_reports_duplicates_and_bad_rows_and_continues(self, mock_session, actor):
        service = _service(mock_session)
        rows = [
            ROW,
            {**ROW, "enslaved_name_original": "Phillis"},
            {**ROW, "page_id": "eleven"},
            {"page_id": 11, "enslaved_name_original": "Lucy"},
        ]
        service.entries.find_duplicate.side_effect = [None, 55, None]
        service.resolver.resolve.side_effect = [
            _resolved(EntryPayload(**ROW)),
            MissingFieldsError(["taxpayer_name_original"]),
        ]
        service.entries.create_entry.return_value = _entry()
        service.entries.create_details.return_value = _details()

        result = await service.bulk_import(_json(rows), ImportFormat.JSON, actor)

        assert (result.rows, result.imported) == (4, 1)
        assert [w.existing_entry_id for w in result.dedupe_warnings] == [55]
        assert result.dedupe_warnings[0].warning == "possible_duplicate"
        assert [(e.index, e.error) for e in result.row_errors] == [
            (2, "invalid_value"),
            (3, "missing_required_fields"),
        ]
        assert mock_session.begin_nested.call_count == 2
        service.audit.record.assert_awaited_once()
        args = service.audit.record.await_args.args
        assert args[1:4] == ("bulk_import", "tax_assessment_entries", None)
        assert args[5] == {"format": "json", "rows": 4, "imported": 1, "dedupe_warnings": 1, "row_errors": 2}
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_default_duplicate_key_ignores_taxpayer(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.find_duplicate.return_value = 55

        await service.bulk_import(_json([ROW]), ImportFormat.JSON, actor)

        service.entries.find_duplicate.assert_awaited_once_with(11, 1, "mary", None)

    @pytest.mark.asyncio
    async def test_taxpayer_duplicate_policy(self, mock_session, actor):
        service = _service(mock_session, duplicate_policy="page_sequence_enslaved_taxpayer")
        service.entries.find_duplicate.return_value = 55

        await service.bulk_import(_json([ROW]), ImportFormat.JSON, actor)

        service.entries.find_duplicate.assert_awaited_once_with(11, 1, "mary", "john doe")

    @pytest.mark.asyncio
    async def test_constraint_violation_skips_row(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.find_duplicate.return_value = None
        service.resolver.resolve.side_effect = lambda payload: _resolved(payload)
        service.entries.create_entry.side_effect = [
            IntegrityError("INSERT", {}, Exception("violates foreign key constraint")),
            _entry(id=101),
        ]
        service.entries.create_details.return_value = _details(entry_id=101)

        result = await service.bulk_import(
            _json([ROW, {**ROW, "sequence_on_page": 2}]), ImportFormat.JSON, actor
        )

        assert result.imported == 1
        assert result.row_errors[0].error == "constraint_violation"

    @pytest.mark.asyncio
    async def test_rejected_value_skips_row(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.find_duplicate.return_value = None
        service.resolver.resolve.side_effect = lambda payload: _resolved(payload)
        service.entries.create_entry.side_effect = [
            DataError("INSERT", {}, Exception("numeric field overflow")),
            _entry(id=101),
        ]
        service.entries.create_details.return_value = _details(entry_id=101)

        result = await service.bulk_import(
            _json([ROW, {**ROW, "sequence_on_page": 2}]), ImportFormat.JSON, actor
        )

        assert result.imported == 1
        assert [(e.index, e.error) for e in result.row_errors] == [(0, "invalid_value")]
        assert "numeric field overflow" in result.row_errors[0].message
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_overflowing_json_number_is_reported(self, mock_session, actor):
        service = _service(mock_session)
        content = b'[{"page_id": 1e400, "enslaved_name_original": "Mary"}, {"page_id": 11, "year": NaN}]'

        result = await service.bulk_import(content, ImportFormat.JSON, actor)

        assert result.imported == 0
        assert [(e.index, e.error) for e in result.row_errors] == [(0, "invalid_value"), (1, "invalid_value")]
        service.entries.create_entry.assert_not_called()
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_failure_aborts_batch(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.find_duplicate.side_effect = OperationalError("SELECT", {}, Exception("server closed"))

        with pytest.raises(InternalError):
            await service.bulk_import(_json([ROW, ROW]), ImportFormat.JSON, actor)

        mock_session.rollback.assert_awaited_once()
        service.audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_csv_upload(self, mock_session, actor):
        service = _service(mock_session)
        service.entries.find_duplicate.return_value = 55
        content = b"page_id,sequence_on_page,taxpayer_name_original,enslaved_name_original\n11,,John Doe,Mary\n"

        result = await service.bulk_import(content, ImportFormat.CSV, actor)

        assert result.rows == 1
        service.entries.find_duplicate.assert_awaited_once_with(11, None, "mary", None)
