"""VisualEditService: save visual-editor edits as a new version.

Loads the latest completed version's files, merges the pending edits, and
writes the full merged file set under a new ``section-edit`` version. The
pipeline is not involved. If the file insert fails the new version row is
deleted, so a retry starts clean.
"""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitegen.core.exceptions import MergeError, MergePersistenceError, NoCompletedVersionError, ProjectNotFoundError
from sitegen.db.models.generated_file import GeneratedFile
from sitegen.db.models.generation_version import GenerationVersion
from sitegen.db.models.project import Project
from sitegen.domain.edit_merger import FileRecord, coalesce_pending_changes, merge_visual_edits
from sitegen.schemas.generation import PendingChange
from sitegen.services.version_service import TriggerType, VersionService, VersionStatus

logger = structlog.get_logger(__name__)

VISUAL_EDITOR_MODEL = "visual-editor"


@dataclass(frozen=True)
class VisualEditResult:
    version_id: uuid.UUID
    version_number: int
    changes_applied: int


class VisualEditService:
    """Merges visual edits into a new version.

    Args:
        session_factory: async_sessionmaker bound to the application database
        version_service: VersionService used to allocate and roll back versions
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], version_service: VersionService) -> None:
        self.session_factory = session_factory
        self.version_service = version_service

    async def _load_base_files(self, clerk_user_id: str, project_id: uuid.UUID) -> list[FileRecord]:
        async with self.session_factory() as session:
            project = await session.get(Project, project_id)
            if project is None or project.clerk_user_id != clerk_user_id:
                raise ProjectNotFoundError(str(project_id))

            latest = await VersionService.latest_completed_version(session, project_id)
            if latest is None:
                raise NoCompletedVersionError(str(project_id))

            rows = await VersionService.list_files(session, latest.id)
            if not rows:
                raise MergeError(f"No files found in version {latest.version_number}")

            return [
                FileRecord(
                    file_path=row.file_path,
                    content=row.content,
                    file_type=row.file_type,
                    section_type=row.section_type,
                )
                for row in rows
            ]

    async def save(self, clerk_user_id: str, project_id: uuid.UUID, changes: list[PendingChange]) -> VisualEditResult:
        """Apply ``changes`` to the latest completed version and store the result.

        Raises:
            ProjectNotFoundError: Unknown project, or not owned by the caller
            NoCompletedVersionError: Nothing to merge into
            MergeError: The latest completed version has no files
            MergePersistenceError: Writing the new version failed (it was rolled back)
        """
        started = time.monotonic()
        log = logger.bind(project_id=str(project_id), clerk_user_id=clerk_user_id)

        base_files = await self._load_base_files(clerk_user_id, project_id)
        merge = merge_visual_edits(base_files, coalesce_pending_changes(changes))
        log.info(
            "visual_edits_merged",
            changes=len(changes),
            text_applied=merge.text_applied,
            style_rules=merge.style_rules,
        )

        version = await self.version_service.create_version(project_id, TriggerType.SECTION_EDIT, VISUAL_EDITOR_MODEL)
        now = datetime.now(timezone.utc)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add_all(
                        [
                            GeneratedFile(
                                project_id=project_id,
                                version_id=version.id,
                                file_path=f.file_path,
                                content=f.content,
                                file_type=f.file_type or "component",
                                section_type=f.section_type,
                                created_at=now,
                            )
                            for f in merge.files
                        ]
                    )
                    row = await session.get(GenerationVersion, version.id)
                    row.status = VersionStatus.COMPLETE
                    row.generation_time_ms = int((time.monotonic() - started) * 1000)
                    row.completed_at = now
        except SQLAlchemyError as exc:
            log.error("visual_edit_save_failed", version_id=str(version.id), error=str(exc), error_type=type(exc).__name__)
            await self.version_service.delete_version(version.id)
            raise MergePersistenceError(f"Failed to save files: {exc}") from exc

        log.info("visual_edit_version_saved", version_id=str(version.id), version_number=version.version_number)
        return VisualEditResult(
            version_id=version.id,
            version_number=version.version_number,
            changes_applied=len(changes),
        )
