"""Transcription endpoints for admins and transcribers."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from taxroll_archive.core.dependencies import get_actor, get_transcription_service
from taxroll_archive.core.exceptions import AppError
from taxroll_archive.schemas.entries import EntryPayload
from taxroll_archive.services.audit_service import Actor
from taxroll_archive.services.bulk_import import parse_format
from taxroll_archive.services.transcription_service import TranscriptionService
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.responses import create_api_response, raise_http_error

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/entries",
    response_model=Dict[str, Any],
    status_code=status.HTTP_201_CREATED,
    summary="Create an entry",
    operation_id="create_entry",
)
async def create_entry(
    request: Request,
    payload: EntryPayload,
    actor: Annotated[Actor, Depends(get_actor)],
    transcription_service: Annotated[TranscriptionService, Depends(get_transcription_service)],
) -> Dict[str, Any]:
    """Create an entry and its details from a transcription payload."""
    try:
        record = await transcription_service.create_entry(payload, actor)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=record, message="Entry created", request=request)


@router.put(
    "/entries/{entry_id}",
    response_model=Dict[str, Any],
    summary="Update an entry",
    operation_id="update_entry",
)
async def update_entry(
    request: Request,
    entry_id: int,
    payload: EntryPayload,
    actor: Annotated[Actor, Depends(get_actor)],
    transcription_service: Annotated[TranscriptionService, Depends(get_transcription_service)],
) -> Dict[str, Any]:
    """Update the fields present in the payload; absent fields are unchanged."""
    try:
        record = await transcription_service.update_entry(entry_id, payload, actor)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=record, message="Entry updated", request=request)


@router.post(
    "/entries/{entry_id}/submit",
    response_model=Dict[str, Any],
    summary="Submit an entry for review",
    operation_id="submit_entry",
)
async def submit_entry(
    request: Request,
    entry_id: int,
    actor: Annotated[Actor, Depends(get_actor)],
    transcription_service: Annotated[TranscriptionService, Depends(get_transcription_service)],
) -> Dict[str, Any]:
    try:
        details = await transcription_service.submit_entry(entry_id, actor)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=details, message="Entry submitted for review", request=request)


@router.get(
    "/entries/by-page/{page_id}",
    response_model=Dict[str, Any],
    summary="Page worklist",
    operation_id="list_entries_by_page",
)
async def list_entries_by_page(
    request: Request,
    page_id: int,
    transcription_service: Annotated[TranscriptionService, Depends(get_transcription_service)],
) -> Dict[str, Any]:
    try:
        items = await transcription_service.list_by_page(page_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=items, request=request)


@router.post(
    "/bulk-import",
    response_model=Dict[str, Any],
    summary="Bulk import entries",
    description="Import a CSV (header row) or JSON (array of objects) file",
    operation_id="bulk_import_entries",
)
async def bulk_import(
    request: Request,
    actor: Annotated[Actor, Depends(get_actor)],
    transcription_service: Annotated[TranscriptionService, Depends(get_transcription_service)],
    file: Optional[UploadFile] = File(None),
    format: Optional[str] = Form("csv"),
) -> Dict[str, Any]:
    """Import rows; duplicates and bad rows are reported, not fatal."""
    try:
        fmt = parse_format(format)
        content = await file.read() if file is not None else None
        result = await transcription_service.bulk_import(content, fmt, actor)
    except AppError as e:
        raise_http_error(e, request)

    LOGGER.info(f"Bulk import by user {actor.user_id}: {result.imported}/{result.rows} rows imported")
    return create_api_response(data=result, message="Import finished", request=request)
