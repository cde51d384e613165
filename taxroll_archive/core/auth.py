"""Authentication dependencies for FastAPI routes.

The identity middleware attaches a ``CurrentUser`` to every request, falling
back to the public role. These dependencies read it and enforce per-route
role allow-lists before the handler runs.
"""

from fastapi import Depends, Request

from taxroll_archive.core.exceptions import ForbiddenError
from taxroll_archive.schemas.auth import ANONYMOUS_USER, CurrentUser, Role
from taxroll_archive.utils.logging import get_logger
from taxroll_archive.utils.responses import raise_http_error

LOGGER = get_logger(__name__)


async def get_current_user(request: Request) -> CurrentUser:
    """Get the identity attached to the request.

    Args:
        request: Incoming request (automatically injected)

    Returns:
        CurrentUser: The caller, or an anonymous public user
    """
    user = getattr(request.state, "user", None)
    return user if isinstance(user, CurrentUser) else ANONYMOUS_USER


def require_any_role(*required_roles: Role):
    """Create a dependency that requires any of the specified roles.

    Args:
        required_roles: Roles that are allowed access

    Returns:
        Dependency function that checks if user has any required role

    Example:
        review_gate = require_any_role(Role.ADMIN, Role.REVIEWER)

        @router.get("/queue", dependencies=[Depends(review_gate)])
        async def queue(): ...
    """
    allowed = tuple(Role(role) for role in required_roles)

    async def role_checker(request: Request, user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            LOGGER.warning(
                f"Access denied for user {user.id}: role '{user.role.value}' not in allowed roles "
                f"{[role.value for role in allowed]}",
                extra={"path": request.url.path},
            )
            raise_http_error(ForbiddenError([role.value for role in allowed]), request)
        return user

    return role_checker


# Pre-defined role dependencies for the route groups
require_admin = require_any_role(Role.ADMIN)
require_transcriber = require_any_role(Role.ADMIN, Role.TRANSCRIBER)
require_reviewer = require_any_role(Role.ADMIN, Role.REVIEWER)
