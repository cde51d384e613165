"""Public search portal endpoints. No role is required."""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from taxroll_archive.core.dependencies import get_search_service
from taxroll_archive.core.exceptions import AppError
from taxroll_archive.schemas.search import RankRequest
from taxroll_archive.services.search_service import SearchService
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.responses import create_api_response, raise_http_error

LOGGER = get_logger(__name__)

router = APIRouter()


@router.get(
    "/filters",
    response_model=Dict[str, Any],
    summary="Search filters",
    description="Enabled counties and districts, optionally limited to one county",
    operation_id="get_public_filters",
)
async def get_filters(
    request: Request,
    search_service: Annotated[SearchService, Depends(get_search_service)],
    county_id: Optional[int] = Query(None),
) -> Dict[str, Any]:
    try:
        filters = await search_service.get_filters(county_id=county_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=filters, message="Filters retrieved", request=request)


@router.get(
    "/search",
    response_model=Dict[str, Any],
    summary="Search approved entries",
    description="Ranked name search over approved tax assessment entries",
    operation_id="search_public_entries",
)
async def search_entries(
    request: Request,
    search_service: Annotated[SearchService, Depends(get_search_service)],
    name: Optional[str] = Query(None, description="Enslaved person name"),
    county_id: Optional[int] = Query(None),
    district_id: Optional[int] = Query(None),
    year: Optional[int] = Query(None, description="Assessment year, 1863 when omitted"),
    taxpayer_name: Optional[str] = Query(None, description="Taxpayer name substring"),
    match_mode: Optional[str] = Query(None, description="exact, partial or fuzzy"),
    limit: Optional[int] = Query(None, description="At most 100"),
    offset: Optional[int] = Query(None),
) -> Dict[str, Any]:
    """Search approved entries by name, most relevant first."""
    try:
        result = await search_service.search(
            name=name,
            county_id=county_id,
            district_id=district_id,
            year=year,
            taxpayer=taxpayer_name,
            mode=match_mode,
            limit=limit,
            offset=offset,
        )
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data=result, message=f"Found {result.count} entries", request=request)


@router.get(
    "/entries/{entry_id}",
    response_model=Dict[str, Any],
    summary="Entry detail",
    description="A single approved entry with its full citation",
    operation_id="get_public_entry",
)
async def get_entry(
    request: Request,
    entry_id: int,
    search_service: Annotated[SearchService, Depends(get_search_service)],
) -> Dict[str, Any]:
    try:
        detail = await search_service.get_detail(entry_id)
    except AppError as e:
        raise_http_error(e, request)

    return create_api_response(data={"entry": detail.model_dump(mode="json")}, request=request)


@router.post(
    "/rank",
    response_model=Dict[str, Any],
    summary="Rank candidate names",
    description="Score candidates against a name without querying the archive",
    operation_id="rank_candidates",
)
async def rank(
    request: Request,
    body: RankRequest,
    search_service: Annotated[SearchService, Depends(get_search_service)],
) -> Dict[str, Any]:
    ranked = search_service.rank(body.query, body.candidates)
    return create_api_response(data={"items": ranked}, request=request)
