"""Review endpoints for admins and reviewers."""

from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends, Request

from taxroll_archive.core.dependencies import get_actor, get_review_service
from taxroll_archive.core.exceptions import AppError
from taxroll_archive.schemas.review import ReviewDecisionRequest
from taxroll_archive.services.audit_service import Actor
from taxroll_archive.services.review_service import ReviewService
from taxroll_archive.utils.responses import create_api_response, raise_http_error

router = APIRouter()


@router.get(
    "/queue",
    response_model=Dict[str, Any],
    summary="Review queue",
    description="Entries pending review or rejected, most recently updated first",
    operation_id="get_review_queue",
)
async def get_queue(
    request: Request,
    review_service: Annotated[ReviewService, Depends(get_review_service)],
) -> Dict[str, Any]:
    try:
        items = await review_service.get_queue()
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=items, request=request)


@router.post(
    "/entries/{entry_id}/decision",
    response_model=Dict[str, Any],
    summary="Approve or reject an entry",
    operation_id="decide_entry",
)
async def decide(
    request: Request,
    entry_id: int,
    body: ReviewDecisionRequest,
    actor: Annotated[Actor, Depends(get_actor)],
    review_service: Annotated[ReviewService, Depends(get_review_service)],
) -> Dict[str, Any]:
    try:
        details = await review_service.decide(entry_id, body.decision, body.notes, actor)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=details, message=f"Entry {details.status}", request=request)
