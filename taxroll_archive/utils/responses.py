from datetime import datetime, timezone
from typing import Any, Dict, NoReturn, Optional
from uuid import uuid4

from fastapi import HTTPException, Request

from taxroll_archive.core.exceptions import AppError
from taxroll_archive.schemas.common import ApiResponse, ErrorDetail, ResponseMeta


def _request_id(request: Optional[Request]) -> str:
    if request is not None and getattr(request.state, "correlation_id", None):
        return request.state.correlation_id
    return str(uuid4())


def create_api_response(
    data: Any,
    message: str = "Operation successful",
    status: bool = True,
    request: Optional[Request] = None,
    api_version: str = "v1",
) -> Dict[str, Any]:
    """Create a standardized API response as a dictionary.

    Returns a dict to be compatible with FastAPI's response_model=dict.
    """
    meta = ResponseMeta(
        timestamp=datetime.now(timezone.utc),
        request_id=_request_id(request),
        api_version=api_version,
    )

    data_dict: Dict[str, Any] = {}
    if isinstance(data, dict):
        data_dict = data
    elif hasattr(data, "model_dump"):
        data_dict = data.model_dump(mode="json")
    elif isinstance(data, list):
        data_dict = {"items": [item.model_dump(mode="json") if hasattr(item, "model_dump") else item for item in data]}
    elif data is not None:
        data_dict = {"value": data}

    response = ApiResponse(status=status, message=message, data=data_dict, meta=meta)
    return response.model_dump(mode="json")


def create_error_detail(
    title: str,
    status: int,
    detail: str,
    code: str,
    request: Optional[Request] = None,
    instance: Optional[str] = None,
    **extra: Any,
) -> ErrorDetail:
    """Create a standardized error detail (RFC 7807)."""
    return ErrorDetail(
        title=title,
        status=status,
        detail=detail,
        code=code,
        instance=instance or (request.url.path if request else None),
        request_id=_request_id(request),
        timestamp=datetime.now(timezone.utc),
        **extra,
    )


def error_detail_from(error: AppError, request: Optional[Request] = None) -> ErrorDetail:
    return create_error_detail(
        title=error.title,
        status=error.status_code,
        detail=error.message,
        code=error.code,
        request=request,
        **error.extra(),
    )


def raise_http_error(error: AppError, request: Optional[Request] = None) -> NoReturn:
    """Convert an application error into an HTTPException with an ErrorDetail body."""
    detail = error_detail_from(error, request)
    raise HTTPException(status_code=error.status_code, detail=detail.model_dump(mode="json")) from error
