"""Generation API routes: stream a new site version, read generation status."""

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitegen.core.auth import ClerkUser, require_auth
from sitegen.core.config import get_settings
from sitegen.core.logging import bind_generation_context
from sitegen.core.locking import VersionLock
from sitegen.db.base import get_session_factory
from sitegen.db.models.project import Project
from sitegen.db.redis import get_redis
from sitegen.generation.backend import AnthropicGenerationBackend, FakeGenerationBackend, GenerationBackend
from sitegen.generation.pipeline import run_generation_pipeline
from sitegen.schemas.generation import GenerateStreamRequest, GenerationStatusResponse, LatestVersionSummary
from sitegen.services.account_service import FREE_PLAN, can_generate, get_or_create_user_settings
from sitegen.services.persistence_service import GenerationPersistence
from sitegen.services.version_service import VersionService
from sitegen.streaming.codec import SSE_HEADERS, SSE_MEDIA_TYPE, sse_stream

logger = structlog.get_logger(__name__)

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# Dependencies (override in tests via app.dependency_overrides)
# ──────────────────────────────────────────────────────────────────────────────


def get_session_factory_dep() -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


def get_version_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dep),
    redis=Depends(get_redis),
) -> VersionService:
    return VersionService(session_factory, VersionLock(redis))


def get_generation_backend() -> GenerationBackend:
    """Dependency that provides the generation backend.

    Returns AnthropicGenerationBackend when ANTHROPIC_API_KEY is set.
    Falls back to FakeGenerationBackend for local dev without an API key.
    """
    settings = get_settings()
    if settings.anthropic_api_key:
        return AnthropicGenerationBackend(settings=settings)
    return FakeGenerationBackend()


async def _load_owned_project(
    session_factory: async_sessionmaker[AsyncSession], project_id: uuid.UUID, user: ClerkUser
) -> Project:
    async with session_factory() as session:
        project = await session.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.clerk_user_id != user.user_id:
        raise HTTPException(status_code=403, detail="Not authorized for this project")
    return project


# ──────────────────────────────────────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────────────────────────────────────


@router.post("/stream")
async def generate_stream(
    request: GenerateStreamRequest,
    user: ClerkUser = Depends(require_auth),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dep),
    version_service: VersionService = Depends(get_version_service),
    backend: GenerationBackend = Depends(get_generation_backend),
):
    """Run the generation pipeline and stream its events over SSE.

    Returns:
        StreamingResponse with text/event-stream, ending in ``data: [DONE]``

    Raises:
        HTTPException(404): Project not found
        HTTPException(403): Project owned by someone else
        HTTPException(402): Free plan, or no generation credits left
    """
    project = await _load_owned_project(session_factory, request.project_id, user)

    async with session_factory() as session:
        user_settings = await get_or_create_user_settings(session, user.user_id)
    if not can_generate(user_settings):
        detail = (
            "Upgrade your plan to generate sites"
            if user_settings.plan == FREE_PLAN
            else "No generation credits remaining"
        )
        raise HTTPException(status_code=402, detail=detail)

    persistence = await GenerationPersistence.begin(
        session_factory,
        version_service,
        project,
        user.user_id,
        request.config.to_wire(),
        backend.model_name,
    )
    # Every log line of this run, including those from the SSE body, carries both ids
    bind_generation_context(project_id=project.id, version_id=persistence.version_id)
    logger.info(
        "generation_stream_started",
        version_number=persistence.version_number,
        site_type=request.config.site_type,
    )

    events = persistence.wrap(run_generation_pipeline(request.config, backend))
    return StreamingResponse(
        sse_stream(events, keepalive_interval=get_settings().sse_keepalive_seconds),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )


@router.get("/status", response_model=GenerationStatusResponse)
async def get_generation_status(
    project_id: uuid.UUID = Query(..., alias="projectId"),
    user: ClerkUser = Depends(require_auth),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dep),
):
    """Project status, latest version summary, and its file count.

    Raises:
        HTTPException(404): Project not found
        HTTPException(403): Project owned by someone else
    """
    project = await _load_owned_project(session_factory, project_id, user)

    async with session_factory() as session:
        latest = await VersionService.latest_version(session, project_id)
        file_count = await VersionService.count_files(session, latest.id) if latest else 0

    return GenerationStatusResponse(
        project_status=project.status,
        last_generated_at=project.last_generated_at,
        latest_version=(
            LatestVersionSummary(
                id=latest.id,
                version_number=latest.version_number,
                status=latest.status,
                trigger_type=latest.trigger_type,
                generation_time_ms=latest.generation_time_ms,
                error_message=latest.error_message,
                created_at=latest.created_at,
                completed_at=latest.completed_at,
            )
            if latest
            else None
        ),
        file_count=file_count,
    )
