"""FastAPI dependency factories for services and the acting user."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from taxroll_archive.core.auth import get_current_user
from taxroll_archive.core.database import get_async_session
from taxroll_archive.schemas.auth import CurrentUser
from taxroll_archive.services.admin_service import AdminService
from taxroll_archive.services.audit_service import Actor
from taxroll_archive.services.review_service import ReviewService
from taxroll_archive.services.search_service import SearchService
from taxroll_archive.services.transcription_service import TranscriptionService


async def get_actor(
    request: Request,
    user: Annotated[CurrentUser, Depends(get_current_user)],
) -> Actor:
    return Actor.from_request(request, user)


async def get_search_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> SearchService:
    return SearchService(db_session)


async def get_transcription_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> TranscriptionService:
    return TranscriptionService(db_session)


async def get_review_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> ReviewService:
    return ReviewService(db_session)


async def get_admin_service(
    db_session: Annotated[AsyncSession, Depends(get_async_session)]
) -> AdminService:
    return AdminService(db_session)
