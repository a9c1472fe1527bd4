"""Tests for log context binding and request-id validation."""

import uuid

import pytest
import structlog

from sitegen.core.logging import bind_generation_context, generation_log_context
from sitegen.middleware.correlation import is_valid_request_id

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def clean_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


def test_bind_stringifies_and_skips_none():
    version_id = uuid.uuid4()
    bind_generation_context(project_id="p1", version_id=version_id, clerk_user_id=None)

    assert structlog.contextvars.get_contextvars() == {"project_id": "p1", "version_id": str(version_id)}


def test_scoped_context_is_removed_on_exit():
    bind_generation_context(clerk_user_id="user_1")

    with generation_log_context(project_id="p2"):
        assert structlog.contextvars.get_contextvars() == {"clerk_user_id": "user_1", "project_id": "p2"}

    assert structlog.contextvars.get_contextvars() == {"clerk_user_id": "user_1"}


@pytest.mark.parametrize("value", ["custom-id-123", "0f8fad5b-d9cb-469f-a165-70867728950e", "trace:abc.1"])
def test_request_id_accepted(value):
    assert is_valid_request_id(value)


@pytest.mark.parametrize("value", ["", "has space", "x" * 129, "semi;colon", "new\nline"])
def test_request_id_rejected(value):
    assert not is_valid_request_id(value)
