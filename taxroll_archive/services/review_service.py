"""Review workflow: the reviewer queue and approve/reject decisions."""

from typing import List, Optional

from taxroll_archive.core.database import unit_of_work
from taxroll_archive.core.exceptions import EntryNotFoundError, InvalidDecisionError
from taxroll_archive.repositories.base_repository import snapshot
from taxroll_archive.repositories.entry_repository import EntryRepository
from taxroll_archive.schemas.entries import DetailsResponse
from taxroll_archive.schemas.review import ReviewQueueItem
from taxroll_archive.services.audit_service import Actor, AuditLogWriter
from taxroll_archive.services.base_service import BaseService
from taxroll_archive.services.entry_status import EntryStatus, ensure_transition
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

DECISIONS = {EntryStatus.APPROVED.value: EntryStatus.APPROVED, EntryStatus.REJECTED.value: EntryStatus.REJECTED}
REVIEW_NOTE_PREFIX = "[Review Note] "
QUEUE_LIMIT = 200


def append_review_note(remarks: Optional[str], notes: Optional[str]) -> Optional[str]:
    """Add a reviewer note on its own line, keeping existing remarks."""
    if not notes:
        return remarks
    return f"{remarks or ''}\n{REVIEW_NOTE_PREFIX}{notes}"


class ReviewService(BaseService):
    def __init__(self, session):
        super().__init__(session)
        self.entries = EntryRepository(session)
        self.audit = AuditLogWriter(session)

    async def get_queue(self, limit: int = QUEUE_LIMIT) -> List[ReviewQueueItem]:
        """Entries waiting for review or sent back, most recently updated first."""
        rows = await self.execute(self.entries.review_queue, limit)
        return [ReviewQueueItem(**row) for row in rows]

    async def decide(
        self,
        entry_id: int,
        decision: Optional[str],
        notes: Optional[str],
        actor: Actor,
    ) -> DetailsResponse:
        """Apply a reviewer decision to an entry.

        Args:
            entry_id: Entry whose details are reviewed
            decision: "approved" or "rejected"
            notes: Optional note appended to the remarks
            actor: Reviewing user

        Returns:
            The updated details row

        Raises:
            InvalidDecisionError: If the decision is not approved or rejected
            EntryNotFoundError: If the entry has no details row
        """
        target = DECISIONS.get(decision) if isinstance(decision, str) else None
        if target is None:
            raise InvalidDecisionError(decision)
        return await self.execute(self._decide, entry_id, target, notes, actor)

    async def _decide(self, entry_id: int, target: EntryStatus, notes: Optional[str], actor: Actor) -> DetailsResponse:
        async with unit_of_work(self.session):
            details = await self.entries.get_details_by_entry(entry_id)
            if details is None:
                raise EntryNotFoundError(entry_id)

            ensure_transition(details.status, target)
            before = snapshot(details)
            details = await self.entries.update_details(
                details,
                status=target.value,
                reviewed_by_user_id=actor.user_id,
                remarks_original=append_review_note(details.remarks_original, notes),
            )
            await self.audit.record(actor, f"review_{target.value}", "enslavement_details", entry_id, before, details)

        LOGGER.info(
            "Review decision recorded",
            extra={"entry_id": entry_id, "decision": target.value, "actor_user_id": actor.user_id},
        )
        return DetailsResponse.model_validate(details)
