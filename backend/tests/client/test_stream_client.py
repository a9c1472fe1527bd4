"""Tests for the generation stream transport."""

import httpx
import pytest

from sitegen.client.stream import build_request_body, error_message, open_generation_stream
from sitegen.core.exceptions import GenerationRequestError
from sitegen.schemas.generation import GenerationConfig

pytestmark = pytest.mark.unit


def test_request_body_from_model():
    config = GenerationConfig.model_validate({"business": {"name": "Acme"}, "aiPrompt": "calm"})
    body = build_request_body("p1", config)
    assert body["projectId"] == "p1"
    assert body["config"]["business"]["name"] == "Acme"
    assert body["config"]["aiPrompt"] == "calm"
    assert "edit" not in body


def test_request_body_with_edit(config_dict):
    body = build_request_body("p1", config_dict, edit={"sectionId": "hero"})
    assert body == {"projectId": "p1", "config": config_dict, "edit": {"sectionId": "hero"}}


def test_error_message_prefers_detail():
    assert error_message(httpx.Response(402, json={"detail": "No generation credits remaining"})) == (
        "No generation credits remaining"
    )


def test_error_message_falls_back_to_text_then_reason():
    assert error_message(httpx.Response(502, text="Bad gateway from proxy")) == "Bad gateway from proxy"
    assert error_message(httpx.Response(503)) == "Service Unavailable"


async def test_stream_yields_events_until_done(server, http_client, base_url, happy_events, config_dict):
    server.serve_events(happy_events)

    async with open_generation_stream(http_client, base_url, "p1", config_dict) as events:
        received = [e async for e in events]

    assert [e.model_dump() for e in received] == [e.model_dump() for e in happy_events]
    request = server.requests[0]
    assert request.url.path == "/api/generate/stream"
    assert request.headers["accept"] == "text/event-stream"
    assert server.bodies() == [{"projectId": "p1", "config": config_dict}]


async def test_edit_mode_uses_edit_endpoint(server, http_client, base_url, happy_events, config_dict):
    server.serve_events(happy_events)

    async with open_generation_stream(http_client, base_url + "/", "p1", config_dict, edit={"sectionId": "s1"}) as events:
        [e async for e in events]

    assert server.requests[0].url.path == "/api/generate/edit"
    assert server.bodies()[0]["edit"] == {"sectionId": "s1"}


async def test_extra_headers_are_sent(server, http_client, base_url, happy_events, config_dict):
    server.serve_events(happy_events)

    async with open_generation_stream(
        http_client, base_url, "p1", config_dict, headers={"Authorization": "Bearer token-123"}
    ) as events:
        [e async for e in events]

    assert server.requests[0].headers["authorization"] == "Bearer token-123"


async def test_non_success_status_raises(server, http_client, base_url, config_dict):
    server.serve_error(403, "Not authorized for this project")

    with pytest.raises(GenerationRequestError) as exc_info:
        async with open_generation_stream(http_client, base_url, "p1", config_dict):
            pass

    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Not authorized for this project"
