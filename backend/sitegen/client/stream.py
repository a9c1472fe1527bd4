"""Client transport for the generation endpoint.

Opens the SSE response with httpx and hands back decoded events. A non-2xx
answer is raised as GenerationRequestError carrying the server's ``detail``.
"""

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from sitegen.core.exceptions import GenerationRequestError
from sitegen.schemas.base import CamelModel
from sitegen.schemas.events import GenerationEvent
from sitegen.streaming.codec import SSE_MEDIA_TYPE, decode_stream

GENERATE_STREAM_PATH = "/api/generate/stream"
GENERATE_EDIT_PATH = "/api/generate/edit"


def build_request_body(project_id: str | uuid.UUID, config: CamelModel | dict, edit: dict | None = None) -> dict:
    body: dict[str, Any] = {
        "projectId": str(project_id),
        "config": config.to_wire() if isinstance(config, CamelModel) else config,
    }
    if edit is not None:
        body["edit"] = edit
    return body


def error_message(response: httpx.Response) -> str:
    """Best message for a failed response: JSON ``detail``, then body text, then reason."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("detail"):
        detail = payload["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return response.text.strip() or response.reason_phrase or f"HTTP {response.status_code}"


@asynccontextmanager
async def open_generation_stream(
    client: httpx.AsyncClient,
    base_url: str,
    project_id: str | uuid.UUID,
    config: CamelModel | dict,
    edit: dict | None = None,
    headers: dict[str, str] | None = None,
) -> AsyncIterator[AsyncIterator[GenerationEvent]]:
    """Open one generation stream. The connection closes when the block exits.

    Raises:
        GenerationRequestError: If the endpoint answers with a non-2xx status
    """
    path = GENERATE_EDIT_PATH if edit is not None else GENERATE_STREAM_PATH
    request_headers = {"Accept": SSE_MEDIA_TYPE, **(headers or {})}

    async with client.stream(
        "POST",
        f"{base_url.rstrip('/')}{path}",
        json=build_request_body(project_id, config, edit),
        headers=request_headers,
        timeout=httpx.Timeout(10.0, read=None),
    ) as response:
        if not response.is_success:
            await response.aread()
            raise GenerationRequestError(response.status_code, error_message(response))
        yield decode_stream(response.aiter_bytes())
