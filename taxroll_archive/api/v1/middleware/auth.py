"""JWT identity middleware.

Reads an optional bearer token from the Authorization header and attaches the
caller's identity to ``request.state.user``. Requests without a valid token
continue as the public role; route dependencies decide what that role may do.
"""

from typing import Optional

import jwt
from fastapi import Request
from pydantic import ValidationError as PydanticValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from taxroll_archive.core.config import settings
from taxroll_archive.core.jwt import jwt_verifier
from taxroll_archive.schemas.auth import ANONYMOUS_USER, CurrentUser, Role
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        LOGGER.warning(f"Invalid Authorization header format for {request.url.path}")
        return None
    return token.strip()


def _user_from_headers(request: Request) -> CurrentUser:
    """Identity forwarded by a trusted upstream proxy."""
    try:
        return CurrentUser(
            id=request.headers.get("X-User-Id") or None,
            role=Role.parse(request.headers.get("X-User-Role")),
            email=request.headers.get("X-User-Email"),
        )
    except PydanticValidationError:
        LOGGER.warning(f"Ignoring malformed identity headers for {request.url.path}")
        return ANONYMOUS_USER


class JWTIdentityMiddleware(BaseHTTPMiddleware):
    """Populates request.state.user from the bearer token."""

    def __init__(self, app, trust_identity_headers: Optional[bool] = None):
        super().__init__(app)
        self.trust_identity_headers = (
            settings.auth.trust_identity_headers if trust_identity_headers is None else trust_identity_headers
        )

    async def dispatch(self, request: Request, call_next):
        request.state.user = self._resolve_user(request)
        return await call_next(request)

    def _resolve_user(self, request: Request) -> CurrentUser:
        token = _bearer_token(request)

        if token is None:
            if self.trust_identity_headers and request.headers.get("X-User-Role"):
                return _user_from_headers(request)
            return ANONYMOUS_USER

        try:
            claims = jwt_verifier.verify_token(token)
            user = CurrentUser(id=claims.sub, role=Role.parse(claims.role), email=claims.email)
            LOGGER.debug(f"Authenticated user {claims.sub} via middleware")
            return user
        except (jwt.InvalidTokenError, PydanticValidationError) as e:
            LOGGER.warning(f"Invalid token for {request.url.path}, continuing as public: {e}")
            return ANONYMOUS_USER
