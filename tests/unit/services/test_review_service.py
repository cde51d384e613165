from unittest.mock import AsyncMock

import pytest

from taxroll_archive.core.exceptions import EntryNotFoundError, InvalidDecisionError
from taxroll_archive.database.models import EnslavementDetails
from taxroll_archive.services.audit_service import Actor
from taxroll_archive.services.review_service import ReviewService, append_review_note


@pytest.fixture
def reviewer() -> Actor:
    return Actor(user_id=9, role="reviewer")


@pytest.fixture
def service(mock_session) -> ReviewService:
    service = ReviewService(mock_session)
    service.entries = AsyncMock()
    service.audit = AsyncMock()
    return service


def _details(**overrides) -> EnslavementDetails:
    values = dict(id=200, entry_id=100, status="pending_review", remarks_original="Blind in one eye")
    values.update(overrides)
    return EnslavementDetails(**values)


def test_append_review_note():
    assert append_review_note("Blind", "Checked image") == "Blind\n[Review Note] Checked image"
    assert append_review_note(None, "Checked image") == "\n[Review Note] Checked image"
    assert append_review_note("Blind", "") == "Blind"
    assert append_review_note("Blind", None) == "Blind"


class TestDecide:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", ["maybe", "", None, "pending_review"])
    async def test_rejects_unknown_decisions_before_touching_store(self, service, mock_session, reviewer, decision):
        with pytest.raises(InvalidDecisionError) as exc_info:
            await service.decide(100, decision, None, reviewer)

        assert exc_info.value.code == "decision_must_be_approved_or_rejected"
        service.entries.get_details_by_entry.assert_not_called()
        mock_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_entry(self, service, reviewer):
        service.entries.get_details_by_entry.return_value = None

        with pytest.raises(EntryNotFoundError):
            await service.decide(404, "approved", None, reviewer)

        service.audit.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_approve_records_reviewer_and_note(self, service, mock_session, reviewer):
        service.entries.get_details_by_entry.return_value = _details()
        service.entries.update_details.return_value = _details(
            status="approved",
            reviewed_by_user_id=9,
            remarks_original="Blind in one eye\n[Review Note] Matches image",
        )

        result = await service.decide(100, "approved", "Matches image", reviewer)

        assert result.status == "approved"
        assert result.reviewed_by_user_id == 9
        changes = service.entries.update_details.await_args.kwargs
        assert changes == {
            "status": "approved",
            "reviewed_by_user_id": 9,
            "remarks_original": "Blind in one eye\n[Review Note] Matches image",
        }
        args = service.audit.record.await_args.args
        assert args[1:4] == ("review_approved", "enslavement_details", 100)
        assert args[4]["status"] == "pending_review"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reject_without_notes_keeps_remarks(self, service, reviewer):
        service.entries.get_details_by_entry.return_value = _details()
        service.entries.update_details.return_value = _details(status="rejected", reviewed_by_user_id=9)

        await service.decide(100, "rejected", None, reviewer)

        changes = service.entries.update_details.await_args.kwargs
        assert changes["remarks_original"] == "Blind in one eye"
        assert service.audit.record.await_args.args[1] == "review_rejected"


class TestQueue:

    @pytest.mark.asyncio
    async def test_queue_items(self, service):
        service.entries.review_queue.return_value = [
            {
                "id": 100,
                "year": 1863,
                "county_name": "Chatham",
                "enslaved_name_original": "Mary",
                "enslaved_name_normalized": "mary",
                "taxpayer_name_original": "John Doe",
                "taxpayer_name_normalized": "john doe",
                "status": "pending_review",
            }
        ]

        items = await service.get_queue()

        assert items[0].status == "pending_review"
        service.entries.review_queue.assert_awaited_once_with(200)
