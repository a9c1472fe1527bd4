"""GenerationPersistence: commit a pipeline run as a version.

Wraps the pipeline's event stream. Files from ``component-complete`` events
are collected in memory as they pass through; nothing is written until the
run ends:

- success: files, version ``complete``, project ``generated``, and one credit
  taken, all in a single transaction. Only then is ``generation-complete``
  passed on, so a client that sees it knows the version is durable.
- failure: version and project ``error``, no files, credits untouched.
- cancelled (client went away): same as failure with message ``cancelled``.

Commits re-read the version row first, so running one twice is a no-op.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sitegen.core.exceptions import PersistenceError
from sitegen.db.models.generated_file import GeneratedFile
from sitegen.db.models.generation_version import GenerationVersion
from sitegen.db.models.project import Project
from sitegen.domain.file_types import infer_file_type, infer_section_type
from sitegen.domain.stages import Stage
from sitegen.schemas.events import ErrorEvent, FilePayload, GenerationEvent, is_terminal
from sitegen.services.account_service import consume_generation_credit
from sitegen.services.version_service import TriggerType, VersionService, VersionStatus

logger = structlog.get_logger(__name__)

CANCELLED_MESSAGE = "cancelled"
UNTERMINATED_MESSAGE = "Generation stream ended without a result"


class ProjectStatus:
    DRAFT = "draft"
    GENERATING = "generating"
    GENERATED = "generated"
    ERROR = "error"


@dataclass(frozen=True)
class CollectedFile:
    path: str
    content: str
    file_type: str
    section_type: str | None


class GenerationPersistence:
    """Persists one generation run. Create with ``begin()``, then iterate ``wrap(events)``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        version: GenerationVersion,
        clerk_user_id: str,
        config: dict,
    ) -> None:
        self.session_factory = session_factory
        self.version_id: uuid.UUID = version.id
        self.version_number: int = version.version_number
        self.project_id: uuid.UUID = version.project_id
        self.clerk_user_id = clerk_user_id
        self.config = config
        self.files: dict[str, CollectedFile] = {}
        self.finalized = False
        self._started = time.monotonic()
        self._log = logger.bind(project_id=str(self.project_id), version_id=str(self.version_id))

    @classmethod
    async def begin(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        version_service: VersionService,
        project: Project,
        clerk_user_id: str,
        config: dict,
        model_used: str,
    ) -> "GenerationPersistence":
        """Allocate a ``generating`` version and flip the project to ``generating``."""
        trigger_type = TriggerType.INITIAL if project.status == ProjectStatus.DRAFT else TriggerType.FULL_REGENERATE
        version = await version_service.create_version(project.id, trigger_type, model_used)

        async with session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(Project).where(Project.id == project.id).values(status=ProjectStatus.GENERATING)
                )

        return cls(session_factory, version, clerk_user_id, config)

    # ------------------------------------------------------------------
    # Stream wrapper
    # ------------------------------------------------------------------

    def collect(self, file: FilePayload) -> None:
        if file.path in self.files:
            return
        self.files[file.path] = CollectedFile(
            path=file.path,
            content=file.content,
            file_type=infer_file_type(file.path),
            section_type=infer_section_type(file.path),
        )

    async def wrap(self, events: AsyncIterator[GenerationEvent]) -> AsyncIterator[GenerationEvent]:
        """Pass events through, committing before the terminal event is released.

        Raises:
            PersistenceError: If the commit fails. No terminal event is yielded.
            Exception: Whatever the source raised, after the run is marked ``error``.
        """
        terminal: GenerationEvent | None = None
        last_stage = Stage.CONFIG_ASSEMBLY
        try:
            async with aclosing(events) as source:
                async for event in source:
                    if event.type == "stage-start":
                        last_stage = event.stage
                    elif event.type == "component-complete":
                        self.collect(event.file)

                    if is_terminal(event):
                        terminal = event
                        break
                    yield event
        except (asyncio.CancelledError, GeneratorExit):
            if not self.finalized:
                self._log.info("generation_cancelled", files_collected=len(self.files))
                await self.commit_failure(CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            # sse_stream turns the re-raised exception into the client's error event
            self._log.error(
                "generation_source_failed",
                stage=last_stage,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            if not self.finalized:
                await self.commit_failure(str(exc) or type(exc).__name__)
            raise

        if terminal is None:
            terminal = ErrorEvent(stage=last_stage, error=UNTERMINATED_MESSAGE)

        if terminal.type == "error":
            await self.commit_failure(terminal.error)
        else:
            await self.commit_success()
        yield terminal

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    async def commit_success(self) -> None:
        """Write files, complete the version, update the project, and take one credit, atomically.

        Raises:
            PersistenceError: If the transaction fails (it is rolled back as a whole)
        """
        now = datetime.now(timezone.utc)
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    version = await session.get(GenerationVersion, self.version_id, with_for_update=True)
                    if version is None:
                        raise PersistenceError(str(self.version_id), "version row is missing")
                    if version.status == VersionStatus.COMPLETE:
                        self._log.info("generation_commit_skipped", reason="already_complete")
                        self.finalized = True
                        return

                    if await VersionService.count_files(session, self.version_id) == 0:
                        session.add_all(
                            [
                                GeneratedFile(
                                    project_id=self.project_id,
                                    version_id=self.version_id,
                                    file_path=f.path,
                                    content=f.content,
                                    file_type=f.file_type,
                                    section_type=f.section_type,
                                    created_at=now,
                                )
                                for f in self.files.values()
                            ]
                        )

                    version.status = VersionStatus.COMPLETE
                    version.generation_time_ms = self._elapsed_ms()
                    version.completed_at = now

                    await session.execute(
                        update(Project)
                        .where(Project.id == self.project_id)
                        .values(
                            status=ProjectStatus.GENERATED,
                            generation_config=self.config,
                            last_generated_at=now,
                            updated_at=now,
                        )
                    )

                    charged = await consume_generation_credit(session, self.clerk_user_id)
                    if not charged:
                        self._log.warning("generation_credit_unavailable", clerk_user_id=self.clerk_user_id)
        except SQLAlchemyError as exc:
            self._log.error("generation_commit_failed", error=str(exc), error_type=type(exc).__name__)
            await self._mark_failed_after_commit_error(str(exc))
            raise PersistenceError(str(self.version_id), str(exc)) from exc

        self.finalized = True
        self._log.info(
            "generation_committed",
            version_number=self.version_number,
            files=len(self.files),
            generation_time_ms=self._elapsed_ms(),
        )

    async def commit_failure(self, message: str) -> None:
        """Mark version and project ``error``. Files and credits are left alone.

        A version that already completed is never downgraded.
        """
        async with self.session_factory() as session:
            async with session.begin():
                version = await session.get(GenerationVersion, self.version_id, with_for_update=True)
                if version is None or version.status == VersionStatus.COMPLETE:
                    self.finalized = True
                    return
                version.status = VersionStatus.ERROR
                version.error_message = message
                version.generation_time_ms = self._elapsed_ms()
                await session.execute(
                    update(Project)
                    .where(Project.id == self.project_id)
                    .values(status=ProjectStatus.ERROR, updated_at=datetime.now(timezone.utc))
                )
        self.finalized = True
        self._log.info("generation_marked_failed", error=message)

    async def _mark_failed_after_commit_error(self, message: str) -> None:
        try:
            await self.commit_failure(f"Failed to save generation: {message}")
        except SQLAlchemyError as exc:
            # Version stays ``generating``; the next commit attempt re-reads it
            self._log.error("generation_mark_failed_failed", error=str(exc), error_type=type(exc).__name__)
