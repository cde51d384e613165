"""Audit log writer.

Every mutating admin, transcription and review action records one row.
The writer shares the caller's session, so the audit row commits or rolls
back with the mutation it describes. Write failures propagate.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.repositories.audit_repository import AuditRepository
from taxroll_archive.repositories.base_repository import snapshot
from taxroll_archive.schemas.auth import CurrentUser
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who performed an action and from where."""

    user_id: Optional[int] = None
    role: str = "public"
    request_meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_request(cls, request: Request, user: CurrentUser) -> "Actor":
        meta = {
            "ip": request.client.host if request.client else None,
            "user_agent": request.headers.get("user-agent"),
            "correlation_id": getattr(request.state, "correlation_id", None),
        }
        return cls(user_id=user.id, role=user.role.value, request_meta=meta)


def serialize_state(state: Any) -> Optional[Dict[str, Any]]:
    """Convert a model instance, pydantic model or mapping to a JSON-ready dict."""
    if state is None:
        return None
    if isinstance(state, BaseModel):
        return state.model_dump(mode="json")
    if isinstance(state, dict):
        return {key: _json_value(value) for key, value in state.items()}
    return snapshot(state)


def _json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {key: _json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(item) for item in value]
    return value


class AuditLogWriter:
    """Appends immutable audit rows inside the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.repository = AuditRepository(session)

    async def record(
        self,
        actor: Actor,
        action: str,
        table: str,
        record_id: Optional[int] = None,
        old_state: Any = None,
        new_state: Any = None,
    ) -> None:
        """Append one audit row.

        Args:
            actor: Acting user and request metadata
            action: e.g. create, update, delete, submit_for_review, review_approved
            table: Table the action targeted
            record_id: Affected row, None for batch actions
            old_state: State before the action (None for creates)
            new_state: State after the action (None for deletes)
        """
        await self.repository.append(
            actor_user_id=actor.user_id,
            action=action,
            table_name=table,
            record_id=record_id,
            old_data=serialize_state(old_state),
            new_data=serialize_state(new_state),
            request_meta=actor.request_meta or None,
        )
        LOGGER.info(
            f"Audit {action} on {table}",
            extra={"actor_user_id": actor.user_id, "record_id": record_id},
        )
