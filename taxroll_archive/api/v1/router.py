from fastapi import APIRouter, Depends

from taxroll_archive.api.v1.endpoints import admin, public, review, transcriptions, users
from taxroll_archive.core.auth import require_admin, require_reviewer, require_transcriber

# Create API router
api_router = APIRouter()

# Role gates run as router dependencies, before any handler or service
api_router.include_router(public.router, prefix="/public", tags=["Public"])
api_router.include_router(users.router, prefix="/users", tags=["User"])
api_router.include_router(
    transcriptions.router,
    prefix="/transcriptions",
    tags=["Transcriptions"],
    dependencies=[Depends(require_transcriber)],
)
api_router.include_router(
    review.router,
    prefix="/review",
    tags=["Review"],
    dependencies=[Depends(require_reviewer)],
)
api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

__all__ = ["api_router"]
