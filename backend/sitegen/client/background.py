"""BackgroundGenerationManager: generations that outlive any one view.

One manager instance is shared by the whole client. It owns at most one
in-flight stream per project, keeps a bounded log of that stream's events,
and fans every update out to per-project and global listeners. State stays
in the registry after the run ends so a view that attaches later can still
read the outcome.

All bookkeeping happens on one event loop. ``start`` checks for an active
run and registers the new one before its first ``await``, so two
back-to-back ``start`` calls for the same project open one connection.
"""

import asyncio
import uuid
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum

import httpx
import structlog

from sitegen.client.stream import open_generation_stream
from sitegen.core.exceptions import GenerationRequestError
from sitegen.core.logging import generation_log_context
from sitegen.domain.event_log import EventLog
from sitegen.schemas.base import CamelModel
from sitegen.schemas.events import GenerationEvent, is_terminal

logger = structlog.get_logger(__name__)


class GenerationStatus(StrEnum):
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BGState:
    """Registry entry for one project. Mutated in place as events arrive."""

    project_id: str
    status: GenerationStatus = GenerationStatus.GENERATING
    events: EventLog[GenerationEvent] = field(default_factory=EventLog)
    error: str | None = None
    started_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None


Listener = Callable[[BGState], None]
EventCallback = Callable[[GenerationEvent], None]


class BackgroundGenerationManager:
    """Registry of background generations keyed by project id.

    Args:
        http_client: httpx.AsyncClient used for every stream
        base_url: Backend origin, e.g. ``https://api.example.com``
        headers: Extra request headers (typically ``Authorization``)
    """

    def __init__(self, http_client: httpx.AsyncClient, base_url: str, headers: dict[str, str] | None = None):
        self.http_client = http_client
        self.base_url = base_url
        self.headers = headers or {}
        self._states: dict[str, BGState] = {}
        self._tasks: dict[str, asyncio.Task[BGState]] = {}
        self._listeners: dict[str, list[Listener]] = defaultdict(list)
        self._global_listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def start(
        self,
        project_id: str | uuid.UUID,
        config: CamelModel | dict,
        on_event: EventCallback | None = None,
        edit: dict | None = None,
    ) -> BGState:
        """Start a generation for ``project_id``, or join the one already running.

        Returns the final state once the stream ends. If a run is already
        active the existing state is returned immediately.

        Raises:
            GenerationRequestError: If the endpoint rejected the request
        """
        key = str(project_id)
        existing = self._states.get(key)
        if existing is not None and existing.status == GenerationStatus.GENERATING:
            logger.info("background_generation_already_running", project_id=key)
            return existing

        state = BGState(project_id=key)
        self._states[key] = state
        task = asyncio.create_task(self._run(state, config, on_event, edit))
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._on_task_done(key, t))
        self._notify(state)
        logger.info("background_generation_started", project_id=key, edit=edit is not None)

        # The run keeps going if the caller stops waiting for it
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return state
            raise

    async def _run(
        self,
        state: BGState,
        config: CamelModel | dict,
        on_event: EventCallback | None,
        edit: dict | None,
    ) -> BGState:
        with generation_log_context(project_id=state.project_id):
            return await self._stream_into(state, config, on_event, edit)

    async def _stream_into(
        self,
        state: BGState,
        config: CamelModel | dict,
        on_event: EventCallback | None,
        edit: dict | None,
    ) -> BGState:
        try:
            async with open_generation_stream(
                self.http_client, self.base_url, state.project_id, config, edit=edit, headers=self.headers
            ) as events:
                async for event in events:
                    self._handle_event(state, event, on_event)
                    if is_terminal(event):
                        break
        except GenerationRequestError as exc:
            logger.warning(
                "background_generation_rejected",
                status_code=exc.status_code,
                error=exc.message,
            )
            self._finish(state, GenerationStatus.ERROR, exc.message)
            raise
        except httpx.HTTPError as exc:
            logger.warning("background_generation_transport_failed", error=str(exc))
            self._finish(state, GenerationStatus.ERROR, str(exc) or type(exc).__name__)
            return state
        except asyncio.CancelledError:
            logger.info("background_generation_cancelled")
            self._finish(state, GenerationStatus.IDLE, None)
            raise
        except Exception as exc:
            logger.exception("background_generation_failed", error_type=type(exc).__name__)
            self._finish(state, GenerationStatus.ERROR, str(exc) or type(exc).__name__)
            raise

        # A stream that closed without a terminal event counts as finished
        if state.status == GenerationStatus.GENERATING:
            self._finish(state, GenerationStatus.COMPLETE, None)
        return state

    def _handle_event(self, state: BGState, event: GenerationEvent, on_event: EventCallback | None) -> None:
        state.events.append(event)
        if on_event is not None:
            try:
                on_event(event)
            except Exception:
                logger.exception("background_event_callback_failed", project_id=state.project_id)

        if event.type == "generation-complete":
            state.status = GenerationStatus.COMPLETE
            state.completed_at = _now()
        elif event.type == "error":
            state.status = GenerationStatus.ERROR
            state.error = event.error
            state.completed_at = _now()
        self._notify(state)

    def _finish(self, state: BGState, status: GenerationStatus, error: str | None) -> None:
        state.status = status
        state.error = error
        state.completed_at = _now()
        self._notify(state)

    def _on_task_done(self, key: str, task: asyncio.Task) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        # Mark the exception retrieved; start() re-raises it to whoever awaited
        if not task.cancelled():
            task.exception()

    async def cancel(self, project_id: str | uuid.UUID) -> bool:
        """Stop the active run for ``project_id``. Its state drops back to ``idle``."""
        task = self._tasks.get(str(project_id))
        if task is None or task.done():
            return False
        task.cancel()
        await asyncio.wait([task])
        return True

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, project_id: str | uuid.UUID, listener: Listener) -> Callable[[], None]:
        """Listen to one project. Called at once with the current state, if any."""
        key = str(project_id)
        self._listeners[key].append(listener)
        state = self._states.get(key)
        if state is not None:
            self._call(listener, state)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(key, None)

        return unsubscribe

    def subscribe_global(self, listener: Listener) -> Callable[[], None]:
        """Listen to every project."""
        self._global_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._global_listeners:
                self._global_listeners.remove(listener)

        return unsubscribe

    def _notify(self, state: BGState) -> None:
        for listener in [*self._listeners.get(state.project_id, []), *self._global_listeners]:
            self._call(listener, state)

    @staticmethod
    def _call(listener: Listener, state: BGState) -> None:
        try:
            listener(state)
        except Exception:
            logger.exception("background_listener_failed", project_id=state.project_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_state(self, project_id: str | uuid.UUID) -> BGState | None:
        return self._states.get(str(project_id))

    def active_generations(self) -> list[BGState]:
        return [s for s in self._states.values() if s.status == GenerationStatus.GENERATING]

    def is_generating(self, project_id: str | uuid.UUID | None = None) -> bool:
        """True if ``project_id`` (or, with no argument, any project) is generating."""
        if project_id is None:
            return bool(self.active_generations())
        state = self._states.get(str(project_id))
        return state is not None and state.status == GenerationStatus.GENERATING

    def clear(self, project_id: str | uuid.UUID) -> bool:
        """Drop a finished project's state and its listeners. Active runs are left alone."""
        key = str(project_id)
        state = self._states.get(key)
        if state is None or state.status == GenerationStatus.GENERATING:
            return False
        del self._states[key]
        self._listeners.pop(key, None)
        return True
