"""Tests for the Anthropic generation backend, with a stubbed SDK client."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from anthropic._exceptions import OverloadedError
from tenacity import wait_none

from sitegen.core.config import Settings
from sitegen.core.exceptions import DesignSystemParseError, GenerationBackendError
from sitegen.generation.backend import (
    FAKE_BLUEPRINT,
    FAKE_DESIGN_SYSTEM,
    AnthropicGenerationBackend,
    FakeGenerationBackend,
    GenerationBackend,
    _invoke_with_retry,
)
from sitegen.schemas.generation import DesignSystem, GenerationConfig, PageBlueprint

pytestmark = pytest.mark.unit


def text_response(text: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def overloaded() -> OverloadedError:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return OverloadedError("Overloaded", response=httpx.Response(529, request=request), body=None)


def make_client(*responses):
    client = MagicMock()
    client.messages.create = AsyncMock(side_effect=list(responses))
    return client


class FakeMessageStream:
    """Stands in for the SDK's MessageStream context manager."""

    def __init__(self, pieces):
        self.pieces = pieces

    async def __aenter__(self):
        self.text_stream = self._texts()
        return self

    async def __aexit__(self, *exc):
        return False

    async def _texts(self):
        for piece in self.pieces:
            yield piece


@pytest.fixture
def settings():
    return Settings(anthropic_api_key="test-key", generation_model="claude-test")


@pytest.fixture
def config():
    return GenerationConfig.model_validate({"business": {"name": "Acme"}})


@pytest.fixture
def design_system():
    return DesignSystem.model_validate(FAKE_DESIGN_SYSTEM)


@pytest.fixture
def no_wait(monkeypatch):
    monkeypatch.setattr(_invoke_with_retry.retry, "wait", wait_none())


def test_backends_satisfy_protocol(settings):
    assert isinstance(FakeGenerationBackend(), GenerationBackend)
    assert isinstance(AnthropicGenerationBackend(client=MagicMock(), settings=settings), GenerationBackend)


async def test_design_system_request(settings, config):
    client = make_client(text_response("```json\n" + json.dumps(FAKE_DESIGN_SYSTEM) + "\n```"))
    backend = AnthropicGenerationBackend(client=client, settings=settings)

    design = await backend.generate_design_system(config)

    assert design.typography.body_font == "Inter"
    kwargs = client.messages.create.await_args.kwargs
    assert kwargs["model"] == "claude-test"
    assert kwargs["max_tokens"] == settings.design_system_max_tokens
    assert "Acme" in kwargs["messages"][0]["content"]


async def test_blueprint_request(settings, config, design_system):
    client = make_client(text_response(json.dumps(FAKE_BLUEPRINT)))
    backend = AnthropicGenerationBackend(client=client, settings=settings)

    blueprint = await backend.generate_blueprint(config, design_system)

    assert blueprint.expected_file_count() == 5
    assert client.messages.create.await_args.kwargs["max_tokens"] == settings.blueprint_max_tokens


async def test_unparseable_design_system_raises(settings, config):
    backend = AnthropicGenerationBackend(client=make_client(text_response("I cannot do that")), settings=settings)
    with pytest.raises(DesignSystemParseError):
        await backend.generate_design_system(config)


async def test_response_without_text_raises():
    client = make_client(SimpleNamespace(content=[SimpleNamespace(type="tool_use")]))
    with pytest.raises(GenerationBackendError, match="No text content"):
        await _invoke_with_retry(client, "m", "system", "prompt", 10)


async def test_overload_is_retried(no_wait):
    client = make_client(overloaded(), text_response("ok"))

    assert await _invoke_with_retry(client, "m", "system", "prompt", 10) == "ok"
    assert client.messages.create.await_count == 2


async def test_overload_gives_up_after_four_attempts(no_wait):
    client = make_client(*(overloaded() for _ in range(4)))
    with pytest.raises(OverloadedError):
        await _invoke_with_retry(client, "m", "system", "prompt", 10)
    assert client.messages.create.await_count == 4


async def test_other_errors_are_not_retried():
    client = make_client(RuntimeError("bad request"))
    with pytest.raises(RuntimeError):
        await _invoke_with_retry(client, "m", "system", "prompt", 10)
    assert client.messages.create.await_count == 1


async def test_stream_components_yields_text_deltas(settings, config, design_system):
    client = MagicMock()
    client.messages.stream = MagicMock(return_value=FakeMessageStream(["```tsx:src/A.tsx\n", "A\n```"]))
    backend = AnthropicGenerationBackend(client=client, settings=settings)
    blueprint = PageBlueprint.model_validate(FAKE_BLUEPRINT)

    pieces = [p async for p in backend.stream_components(config, design_system, blueprint)]

    assert "".join(pieces) == "```tsx:src/A.tsx\nA\n```"
    kwargs = client.messages.stream.call_args.kwargs
    assert kwargs["max_tokens"] == settings.component_max_tokens
    assert "Inter" in kwargs["system"]
