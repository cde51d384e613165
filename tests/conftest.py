"""Pytest configuration and shared fixtures."""

import time
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock, Mock

import jwt
import pytest
from fastapi.testclient import TestClient

from taxroll_archive.core.config import settings
from taxroll_archive.main import app
from taxroll_archive.services.audit_service import Actor


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    The client is not entered as a context manager, so the lifespan hook
    (database initialization) does not run.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def mock_session() -> MagicMock:
    """Async session double supporting unit_of_work and savepoints.

    Returns:
        MagicMock: Session with awaitable commit/rollback/flush/execute
    """
    session = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.execute = AsyncMock()
    session.close = AsyncMock()

    nested = MagicMock()
    nested.__aenter__ = AsyncMock(return_value=nested)
    nested.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = Mock(return_value=nested)
    return session


@pytest.fixture
def actor() -> Actor:
    return Actor(user_id=7, role="transcriber", request_meta={"ip": "127.0.0.1"})


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory signing access tokens with the configured secret."""

    def _make(user_id: int = 1, role: str = "public", email: Optional[str] = None, ttl: int = 3600) -> str:
        now = int(time.time())
        payload = {
            "sub": str(user_id),
            "role": role,
            "email": email or f"user{user_id}@example.org",
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, settings.auth.jwt_secret, algorithm=settings.auth.jwt_algorithm)

    return _make


@pytest.fixture
def auth_header(make_token) -> Callable[[str], dict]:
    """Authorization header for a given role."""

    def _header(role: str, user_id: int = 1) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id=user_id, role=role)}"}

    return _header
