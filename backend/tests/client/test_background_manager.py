"""Tests for BackgroundGenerationManager."""

import asyncio

import pytest

from sitegen.client.background import BackgroundGenerationManager, GenerationStatus
from sitegen.core.exceptions import GenerationRequestError
from sitegen.domain.stages import Stage
from sitegen.schemas.events import ErrorEvent, StageStartEvent

pytestmark = pytest.mark.unit


@pytest.fixture
def manager(http_client, base_url):
    return BackgroundGenerationManager(http_client, base_url, headers={"Authorization": "Bearer t"})


async def test_start_runs_to_completion(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    seen = []

    state = await manager.start("p1", config_dict, on_event=seen.append)

    assert state.status == GenerationStatus.COMPLETE
    assert state.completed_at is not None
    assert state.error is None
    assert len(state.events) == len(happy_events)
    assert [e.type for e in seen] == [e.type for e in happy_events]
    assert server.requests[0].headers["authorization"] == "Bearer t"
    assert not manager.is_generating()


async def test_concurrent_starts_share_one_connection(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)

    first, second = await asyncio.gather(manager.start("p1", config_dict), manager.start("p1", config_dict))

    assert first is second
    assert len(server.requests) == 1
    assert first.status == GenerationStatus.COMPLETE


async def test_error_event_sets_error_state(manager, server, config_dict):
    server.serve_events(
        [StageStartEvent(stage=Stage.DESIGN_SYSTEM), ErrorEvent(stage=Stage.DESIGN_SYSTEM, error="model overloaded")]
    )

    state = await manager.start("p1", config_dict)

    assert state.status == GenerationStatus.ERROR
    assert state.error == "model overloaded"


async def test_stream_without_terminal_event_counts_as_complete(manager, server, happy_events, config_dict):
    server.serve_events(happy_events[:3], done=False)

    state = await manager.start("p1", config_dict)

    assert state.status == GenerationStatus.COMPLETE
    assert len(state.events) == 3


async def test_rejected_request_records_error_and_raises(manager, server, config_dict):
    server.serve_error(402, "No generation credits remaining")

    with pytest.raises(GenerationRequestError, match="No generation credits remaining"):
        await manager.start("p1", config_dict)

    state = manager.get_state("p1")
    assert state.status == GenerationStatus.ERROR
    assert state.error == "No generation credits remaining"


async def test_transport_failure_records_error(manager, server, config_dict):
    server.fail_transport()

    state = await manager.start("p1", config_dict)

    assert state.status == GenerationStatus.ERROR
    assert "connection refused" in state.error


async def test_unexpected_stream_failure_records_error_and_raises(manager, server, happy_events, config_dict):
    server.serve_broken(happy_events[:1], RuntimeError("body exploded"))

    with pytest.raises(RuntimeError, match="body exploded"):
        await manager.start("p1", config_dict)

    state = manager.get_state("p1")
    assert state.status == GenerationStatus.ERROR
    assert state.error == "body exploded"
    assert state.completed_at is not None
    assert not manager.is_generating("p1")


async def test_failed_run_can_be_restarted(manager, server, happy_events, config_dict):
    server.serve_broken(happy_events[:1], RuntimeError("body exploded"))
    with pytest.raises(RuntimeError):
        await manager.start("p1", config_dict)

    server.serve_events(happy_events)
    state = await manager.start("p1", config_dict)

    assert state.status == GenerationStatus.COMPLETE
    assert len(server.requests) == 2


async def test_restart_after_finish_opens_new_stream(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)

    first = await manager.start("p1", config_dict)
    second = await manager.start("p1", config_dict)

    assert first is not second
    assert len(server.requests) == 2


async def test_edit_mode_posts_to_edit_endpoint(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)

    await manager.start("p1", config_dict, edit={"sectionId": "hero"})

    assert server.requests[0].url.path == "/api/generate/edit"


async def test_subscribers_receive_updates(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    project_updates = []
    global_updates = []
    manager.subscribe("p1", lambda s: project_updates.append(s.status))
    manager.subscribe_global(lambda s: global_updates.append(s.project_id))

    await manager.start("p1", config_dict)

    assert project_updates[0] == GenerationStatus.GENERATING
    assert project_updates[-1] == GenerationStatus.COMPLETE
    assert len(global_updates) == len(project_updates)
    assert set(global_updates) == {"p1"}


async def test_late_subscriber_gets_current_state(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    await manager.start("p1", config_dict)

    received = []
    manager.subscribe("p1", received.append)

    assert len(received) == 1
    assert received[0].status == GenerationStatus.COMPLETE


async def test_unsubscribe_stops_updates(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    received = []
    unsubscribe = manager.subscribe("p1", received.append)
    unsubscribe_global = manager.subscribe_global(received.append)
    unsubscribe()
    unsubscribe_global()

    await manager.start("p1", config_dict)

    assert received == []


async def test_failing_listener_does_not_block_others(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    received = []

    def broken(state):
        raise RuntimeError("listener bug")

    manager.subscribe("p1", broken)
    manager.subscribe("p1", received.append)

    def broken_callback(event):
        raise ValueError("callback bug")

    state = await manager.start("p1", config_dict, on_event=broken_callback)

    assert state.status == GenerationStatus.COMPLETE
    assert received[-1].status == GenerationStatus.COMPLETE


async def test_cancel_returns_to_idle(manager, server, happy_events, config_dict):
    release = asyncio.Event()
    server.serve_until(release, happy_events[:2])
    first_event = asyncio.Event()
    manager.subscribe("p1", lambda s: first_event.set() if len(s.events) else None)

    starter = asyncio.create_task(manager.start("p1", config_dict))
    await asyncio.wait_for(first_event.wait(), timeout=1)

    assert manager.is_generating("p1")
    assert [s.project_id for s in manager.active_generations()] == ["p1"]
    assert manager.clear("p1") is False

    assert await manager.cancel("p1") is True
    state = await starter

    assert state.status == GenerationStatus.IDLE
    assert not manager.is_generating()
    assert await manager.cancel("p1") is False
    release.set()


async def test_caller_cancellation_does_not_stop_the_run(manager, server, happy_events, config_dict):
    release = asyncio.Event()
    server.serve_until(release, happy_events[:2])
    first_event = asyncio.Event()
    manager.subscribe("p1", lambda s: first_event.set() if len(s.events) else None)

    starter = asyncio.create_task(manager.start("p1", config_dict))
    await asyncio.wait_for(first_event.wait(), timeout=1)
    starter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await starter

    assert manager.is_generating("p1")
    release.set()
    await manager.cancel("p1")


async def test_clear_removes_finished_state(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    await manager.start("p1", config_dict)

    assert manager.clear("p1") is True
    assert manager.get_state("p1") is None
    assert manager.clear("p1") is False


async def test_clear_drops_project_listeners(manager, server, happy_events, config_dict):
    server.serve_events(happy_events)
    received = []
    manager.subscribe("p1", received.append)
    await manager.start("p1", config_dict)
    manager.clear("p1")
    received.clear()

    await manager.start("p1", config_dict)

    assert received == []
