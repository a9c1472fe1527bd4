"""Client test fixtures: an in-memory generation endpoint behind httpx.MockTransport."""

import asyncio
import json

import httpx
import pytest

from sitegen.domain.stages import Stage
from sitegen.schemas.events import (
    ComponentCompleteEvent,
    ComponentStartEvent,
    FilePayload,
    GenerationCompleteEvent,
    StageCompleteEvent,
    StageStartEvent,
)
from sitegen.streaming.codec import encode_done, encode_event

BASE_URL = "http://backend.test"


class FakeGenerationServer:
    """Records requests and answers with whatever was configured last."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._respond = lambda request: httpx.Response(200, content=b"")

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def serve_events(self, events, done: bool = True) -> None:
        payload = "".join(encode_event(e) for e in events) + (encode_done() if done else "")
        self._respond = lambda request: httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=payload.encode()
        )

    def serve_error(self, status_code: int, detail: str) -> None:
        self._respond = lambda request: httpx.Response(status_code, json={"detail": detail})

    def serve_until(self, release: asyncio.Event, first_events) -> None:
        """Send ``first_events``, then hold the connection open until ``release`` is set."""

        async def body():
            for event in first_events:
                yield encode_event(event).encode()
            await release.wait()
            yield encode_done().encode()

        self._respond = lambda request: httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=body()
        )

    def serve_broken(self, first_events, error: Exception) -> None:
        """Send ``first_events``, then fail mid-body with ``error``."""

        async def body():
            for event in first_events:
                yield encode_event(event).encode()
            raise error

        self._respond = lambda request: httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=body()
        )

    def fail_transport(self) -> None:
        def _raise(request):
            raise httpx.ConnectError("connection refused", request=request)

        self._respond = _raise


@pytest.fixture
def server():
    return FakeGenerationServer()


@pytest.fixture
async def http_client(server):
    async with httpx.AsyncClient(transport=httpx.MockTransport(server.handler)) as client:
        yield client


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def happy_events():
    hero = FilePayload(path="src/components/Hero.tsx", content="export default function Hero() {}")
    return [
        StageStartEvent(stage=Stage.CONFIG_ASSEMBLY),
        StageCompleteEvent(stage=Stage.CONFIG_ASSEMBLY),
        StageStartEvent(stage=Stage.COMPONENTS, total_files=1),
        ComponentStartEvent(component_name="Hero", stage=Stage.COMPONENTS),
        ComponentCompleteEvent(
            component_name="Hero", file=hero, completed_files=1, total_files=1, stage=Stage.COMPONENTS
        ),
        StageCompleteEvent(stage=Stage.COMPONENTS),
        GenerationCompleteEvent(total_files=1),
    ]


@pytest.fixture
def config_dict():
    return {"siteType": "business", "business": {"name": "Acme"}}
