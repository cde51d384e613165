"""Admin table maintenance endpoints."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status

from taxroll_archive.core.dependencies import get_actor, get_admin_service
from taxroll_archive.core.exceptions import AppError
from taxroll_archive.services.admin_service import AdminService
from taxroll_archive.services.audit_service import Actor
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.responses import create_api_response, raise_http_error

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get("/lookup/counties", response_model=Dict[str, Any], operation_id="admin_lookup_counties")
async def lookup_counties(
    request: Request,
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    try:
        counties = await admin_service.list_counties()
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=counties, request=request)


@router.get("/lookup/districts", response_model=Dict[str, Any], operation_id="admin_lookup_districts")
async def lookup_districts(
    request: Request,
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
    county_id: Optional[int] = Query(None),
) -> Dict[str, Any]:
    try:
        districts = await admin_service.list_districts(county_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=districts, request=request)


@router.get(
    "/{table}",
    response_model=Dict[str, Any],
    summary="List table rows",
    description="The 200 newest rows of an admin table",
    operation_id="admin_list_records",
)
async def list_records(
    request: Request,
    table: str,
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Dict[str, Any]:
    try:
        records = await admin_service.list_records(table)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=records, request=request)


@router.post(
    "/{table}",
    response_model=Dict[str, Any],
    status_code=status.HTTP_201_CREATED,
    summary="Create a table row",
    operation_id="admin_create_record",
)
async def create_record(
    request: Request,
    table: str,
    actor: Annotated[Actor, Depends(get_actor)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
    payload: Optional[Dict[str, Any]] = Body(None),
) -> Dict[str, Any]:
    try:
        record = await admin_service.create_record(table, payload or {}, actor)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=record, message=f"{table} row created", request=request)


@router.put(
    "/{table}/{record_id}",
    response_model=Dict[str, Any],
    summary="Update a table row",
    operation_id="admin_update_record",
)
async def update_record(
    request: Request,
    table: str,
    record_id: int,
    actor: Annotated[Actor, Depends(get_actor)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
    payload: Optional[Dict[str, Any]] = Body(None),
) -> Dict[str, Any]:
    try:
        record = await admin_service.update_record(table, record_id, payload or {}, actor)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=record, message=f"{table} row updated", request=request)


@router.delete(
    "/{table}/{record_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a table row",
    operation_id="admin_delete_record",
)
async def delete_record(
    request: Request,
    table: str,
    record_id: int,
    actor: Annotated[Actor, Depends(get_actor)],
    admin_service: Annotated[AdminService, Depends(get_admin_service)],
) -> Response:
    try:
        await admin_service.delete_record(table, record_id, actor)
    except AppError as e:
        raise_http_error(e, request)

    return Response(status_code=status.HTTP_204_NO_CONTENT)
