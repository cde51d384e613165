"""JWT verification for bearer tokens issued by the login service.

Tokens are signed with a shared secret (HS256 by default) and carry the
subject id, role and email of an app user.
"""

from typing import Optional

import jwt
from pydantic import BaseModel

from taxroll_archive.core.config import settings
from taxroll_archive.utils.logging import get_logger

LOGGER = get_logger(__name__)


class JWTClaims(BaseModel):
    """Decoded JWT claims."""

    sub: str  # App user ID
    role: Optional[str] = None
    email: Optional[str] = None
    exp: Optional[int] = None
    iat: Optional[int] = None


class JWTVerifier:
    """Verifies signature and expiry of shared-secret access tokens."""

    def __init__(self, jwt_secret: str, algorithm: str = "HS256"):
        """Initialize JWT verifier.

        Args:
            jwt_secret: Shared signing secret
            algorithm: Expected signing algorithm
        """
        self.jwt_secret = jwt_secret
        self.algorithm = algorithm

        LOGGER.info(f"JWT verifier initialized for algorithm: {self.algorithm}")

    def verify_token(self, token: str) -> JWTClaims:
        """Verify and decode an access token.

        Args:
            token: JWT access token from the Authorization header

        Returns:
            Decoded and validated JWT claims

        Raises:
            jwt.InvalidTokenError: If the token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": True,
                    "require": ["sub"],
                },
            )
            claims = JWTClaims(**{**payload, "sub": str(payload["sub"])})

            LOGGER.debug(f"Successfully verified token for user: {claims.sub}")
            return claims

        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise jwt.InvalidTokenError("Token has expired") from e
        except jwt.InvalidSignatureError as e:
            LOGGER.warning(f"Invalid signature: {e}")
            raise jwt.InvalidTokenError("Invalid token signature") from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid token: {e}")
            raise
        except ValueError as e:
            LOGGER.warning(f"Malformed token claims: {e}")
            raise jwt.InvalidTokenError("Token claims are malformed") from e


# Global JWT verifier instance
jwt_verifier = JWTVerifier(
    jwt_secret=settings.auth.jwt_secret,
    algorithm=settings.auth.jwt_algorithm,
)
