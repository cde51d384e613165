"""Authentication schemas.

The service does not issue credentials. It only reads an identity
(subject id, role, email) from a verified bearer token and enforces
role allow-lists per route.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Roles understood by the access control gate."""

    ADMIN = "admin"
    TRANSCRIBER = "transcriber"
    REVIEWER = "reviewer"
    PUBLIC = "public"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Role":
        """Map an untrusted role string to a Role, defaulting to public."""
        try:
            return cls(value) if value else cls.PUBLIC
        except ValueError:
            return cls.PUBLIC


class CurrentUser(BaseModel):
    """Identity attached to the inbound request."""

    id: Optional[int] = Field(None, description="App user ID (None for anonymous callers)")
    role: Role = Field(default=Role.PUBLIC, description="User role")
    email: Optional[str] = Field(None, description="User email")


ANONYMOUS_USER = CurrentUser()
