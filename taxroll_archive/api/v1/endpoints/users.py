from typing import Annotated

from fastapi import APIRouter, Depends

from taxroll_archive.core.auth import get_current_user
from taxroll_archive.schemas.auth import CurrentUser
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "/me",
    response_model=CurrentUser,
    summary="Get current identity",
    description="The identity and role the server resolved for this request",
    operation_id="get_current_identity",
)
async def get_me(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    LOGGER.debug(f"Identity requested by user: {current_user.id}")
    return current_user
