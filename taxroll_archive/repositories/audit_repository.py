"""Append-only access to the audit log."""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.database.models import AuditLogEntry
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)


class AuditRepository:
    """Inserts audit rows. There is no update or delete."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        actor_user_id: Optional[int],
        action: str,
        table_name: str,
        record_id: Optional[int],
        old_data: Optional[Dict[str, Any]],
        new_data: Optional[Dict[str, Any]],
        request_meta: Optional[Dict[str, Any]],
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            actor_user_id=actor_user_id,
            action=action,
            table_name=table_name,
            record_id=record_id,
            old_data=old_data,
            new_data=new_data,
            request_meta=request_meta,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry
