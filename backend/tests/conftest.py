"""Shared test fixtures for all test groups."""

import uuid

import pytest
from fakeredis import FakeAsyncRedis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from sitegen.core.locking import VersionLock
from sitegen.db.base import Base
from sitegen.db.models import Project, UserSettings
from sitegen.generation.backend import FakeGenerationBackend
from sitegen.schemas.generation import GenerationConfig
from sitegen.services.version_service import VersionService

OWNER_ID = "user_test_owner"
OTHER_USER_ID = "user_test_other"


@pytest.fixture
async def engine() -> AsyncEngine:
    """In-memory SQLite engine shared by every session in one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    import sitegen.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def fake_redis():
    """Provide fakeredis async client."""
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def version_service(session_factory, fake_redis) -> VersionService:
    return VersionService(session_factory, VersionLock(fake_redis, ttl=30, wait_timeout=1))


@pytest.fixture
def make_user(session_factory):
    """Factory: insert a UserSettings row."""

    async def _make(clerk_user_id: str = OWNER_ID, plan: str = "pro", credits: int = 3) -> UserSettings:
        user_settings = UserSettings(clerk_user_id=clerk_user_id, plan=plan, generation_credits=credits)
        async with session_factory() as session:
            session.add(user_settings)
            await session.commit()
        return user_settings

    return _make


@pytest.fixture
def make_project(session_factory):
    """Factory: insert a Project row."""

    async def _make(clerk_user_id: str = OWNER_ID, status: str = "draft") -> Project:
        project = Project(id=uuid.uuid4(), clerk_user_id=clerk_user_id, name="Acme Landing", status=status)
        async with session_factory() as session:
            session.add(project)
            await session.commit()
        return project

    return _make


@pytest.fixture
async def project(make_user, make_project) -> Project:
    """A draft project owned by OWNER_ID, who is on a paid plan with 3 credits."""
    await make_user()
    return await make_project()


@pytest.fixture
def site_config() -> GenerationConfig:
    return GenerationConfig.model_validate(
        {
            "siteType": "business",
            "business": {
                "name": "  Acme Analytics ",
                "description": "Dashboards for small teams",
                "industry": "software",
                "targetAudience": "founders",
            },
            "branding": {"primaryColor": "#2563eb", "fontHeading": "Inter", "fontBody": "Inter"},
            "sections": [
                {"id": "s2", "type": "features", "order": 5},
                {"id": "s1", "type": "hero", "order": 1},
            ],
            "aiPrompt": "  Keep it minimal  ",
        }
    )


@pytest.fixture
def fake_backend():
    """FakeGenerationBackend with happy_path scenario (default)."""
    return FakeGenerationBackend(scenario="happy_path")
