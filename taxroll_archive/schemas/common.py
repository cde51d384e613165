"""Response envelope shared by every endpoint."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResponseMeta(BaseModel):
    timestamp: datetime = Field(..., description="Server time of the response")
    request_id: str = Field(..., description="Correlation ID of the request")
    api_version: str = Field(default="v1", description="API version")


class ApiResponse(BaseModel):
    """Standard success envelope."""

    status: bool = Field(default=True)
    message: str = Field(default="Operation successful")
    data: Dict[str, Any] = Field(default_factory=dict)
    meta: ResponseMeta


class ErrorDetail(BaseModel):
    """RFC 7807 problem detail with machine-readable extras."""

    title: str
    status: int
    detail: str
    code: str
    instance: Optional[str] = None
    request_id: str
    timestamp: datetime
    missing_fields: Optional[List[str]] = None
    expected: Optional[Any] = None
    required_roles: Optional[List[str]] = None
    current_status: Optional[str] = None
    target_status: Optional[str] = None
