"""VersionService: allocate and query generation versions.

Version numbers are per project, start at 1, and are assigned as
max(existing) + 1 under the per-project Redis lock. The unique constraint
on (project_id, version_number) backs the lock up if it ever expires early.
"""

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitegen.core.locking import VersionLock
from sitegen.db.models.generated_file import GeneratedFile
from sitegen.db.models.generation_version import GenerationVersion

logger = structlog.get_logger(__name__)


class VersionStatus:
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


class TriggerType:
    INITIAL = "initial"
    FULL_REGENERATE = "full-regenerate"
    SECTION_EDIT = "section-edit"


class VersionService:
    """Creates version rows and reads version/file state.

    Args:
        session_factory: async_sessionmaker bound to the application database
        version_lock: VersionLock serialising number allocation per project
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], version_lock: VersionLock) -> None:
        self.session_factory = session_factory
        self.version_lock = version_lock

    async def create_version(
        self,
        project_id: uuid.UUID,
        trigger_type: str,
        model_used: str | None,
    ) -> GenerationVersion:
        """Insert a new ``generating`` version with the next number for the project."""
        async with self.version_lock.lock(str(project_id)):
            async with self.session_factory() as session:
                current_max = await session.scalar(
                    select(func.max(GenerationVersion.version_number)).where(
                        GenerationVersion.project_id == project_id
                    )
                )
                version = GenerationVersion(
                    project_id=project_id,
                    version_number=(current_max or 0) + 1,
                    status=VersionStatus.GENERATING,
                    trigger_type=trigger_type,
                    model_used=model_used,
                    created_at=datetime.now(timezone.utc),
                )
                session.add(version)
                await session.commit()

        logger.info(
            "version_created",
            project_id=str(project_id),
            version_id=str(version.id),
            version_number=version.version_number,
            trigger_type=trigger_type,
        )
        return version

    async def delete_version(self, version_id: uuid.UUID) -> None:
        """Remove a version and any files written under it."""
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(delete(GeneratedFile).where(GeneratedFile.version_id == version_id))
                await session.execute(delete(GenerationVersion).where(GenerationVersion.id == version_id))
        logger.info("version_deleted", version_id=str(version_id))

    @staticmethod
    async def latest_version(session: AsyncSession, project_id: uuid.UUID) -> GenerationVersion | None:
        result = await session.execute(
            select(GenerationVersion)
            .where(GenerationVersion.project_id == project_id)
            .order_by(GenerationVersion.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def latest_completed_version(session: AsyncSession, project_id: uuid.UUID) -> GenerationVersion | None:
        result = await session.execute(
            select(GenerationVersion)
            .where(GenerationVersion.project_id == project_id)
            .where(GenerationVersion.status == VersionStatus.COMPLETE)
            .order_by(GenerationVersion.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_files(session: AsyncSession, version_id: uuid.UUID) -> list[GeneratedFile]:
        result = await session.execute(
            select(GeneratedFile).where(GeneratedFile.version_id == version_id).order_by(GeneratedFile.created_at, GeneratedFile.file_path)
        )
        return list(result.scalars().all())

    @staticmethod
    async def count_files(session: AsyncSession, version_id: uuid.UUID) -> int:
        return await session.scalar(
            select(func.count()).select_from(GeneratedFile).where(GeneratedFile.version_id == version_id)
        ) or 0
