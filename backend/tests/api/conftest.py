"""API-specific test fixtures.

Routes run in-process through httpx.ASGITransport on the test's own event
loop, so the SQLite engine and fakeredis client from the root conftest are
shared with the handlers through dependency overrides.
"""

import httpx
import pytest

from sitegen.api.routes.generation import get_generation_backend, get_session_factory_dep, get_version_service
from sitegen.core.auth import ClerkUser, require_auth
from sitegen.main import create_app


def override_auth(user_id: str):
    """Create auth override for a specific user."""

    async def _override():
        return ClerkUser(user_id=user_id, claims={"sub": user_id})

    return _override


@pytest.fixture
def app(session_factory, version_service, fake_backend):
    app = create_app()
    app.dependency_overrides[get_session_factory_dep] = lambda: session_factory
    app.dependency_overrides[get_version_service] = lambda: version_service
    app.dependency_overrides[get_generation_backend] = lambda: fake_backend
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def login(app):
    """Authenticate every request as ``user_id``."""

    def _login(user_id: str) -> None:
        app.dependency_overrides[require_auth] = override_auth(user_id)

    return _login


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as client:
        yield client
