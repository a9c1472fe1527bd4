"""GenerationSession: one view's generation, folded through the progress reducer."""

import asyncio
import uuid
from collections.abc import Callable

import httpx
import structlog

from sitegen.client.stream import open_generation_stream
from sitegen.core.exceptions import GenerationRequestError
from sitegen.domain.generation_state import (
    INITIAL_STATE,
    UNKNOWN_ERROR,
    GenerationProgressState,
    fail_generation,
    reduce_generation_state,
    start_generation,
)
from sitegen.domain.stages import Stage
from sitegen.schemas.base import CamelModel
from sitegen.schemas.events import is_terminal

logger = structlog.get_logger(__name__)


class GenerationSession:
    """Streams one generation and keeps the reduced progress state.

    ``on_complete`` receives the final state of a successful run,
    ``on_error`` the error message of a failed one. ``abort()`` stops the
    read and resets the state without recording an error.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        headers: dict[str, str] | None = None,
        on_complete: Callable[[GenerationProgressState], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ):
        self.http_client = http_client
        self.base_url = base_url
        self.headers = headers or {}
        self.on_complete = on_complete
        self.on_error = on_error
        self.state: GenerationProgressState = INITIAL_STATE
        self._task: asyncio.Task | None = None
        self._aborted = False

    async def start(self, project_id: str | uuid.UUID, config: CamelModel | dict) -> GenerationProgressState:
        """Run one generation to the end and return the final state."""
        if self._task is not None and not self._task.done():
            raise RuntimeError("A generation is already running in this session")

        self._aborted = False
        self.state = start_generation(str(project_id))
        self._task = asyncio.create_task(self._consume(project_id, config))
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._aborted:
                raise
            return self.state

        if self.state.error is not None:
            if self.on_error is not None:
                self.on_error(self.state.error)
        elif self.on_complete is not None:
            self.on_complete(self.state)
        return self.state

    async def _consume(self, project_id: str | uuid.UUID, config: CamelModel | dict) -> None:
        try:
            async with open_generation_stream(
                self.http_client, self.base_url, project_id, config, headers=self.headers
            ) as events:
                async for event in events:
                    self.state = reduce_generation_state(self.state, event)
                    if is_terminal(event):
                        break
        except GenerationRequestError as exc:
            self.state = fail_generation(self.state, exc.message)
            return
        except httpx.HTTPError as exc:
            self.state = fail_generation(self.state, str(exc) or UNKNOWN_ERROR)
            return

        if self.state.is_generating:
            # Stream closed without a terminal event
            logger.warning("generation_stream_unterminated", project_id=str(project_id))
            self.state = fail_generation(self.state, "Stream ended unexpectedly")

    def abort(self) -> None:
        """Cancel the read in progress and reset to the initial state."""
        self._aborted = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self.state = INITIAL_STATE

    @property
    def is_generating(self) -> bool:
        return self.state.is_generating

    @property
    def current_stage(self) -> Stage | None:
        return self.state.current_stage
