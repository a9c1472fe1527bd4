"""X-Request-ID handling.

Each request gets a correlation id, echoed in the ``X-Request-ID`` response
header and attached to every log line written while serving it (see
``sitegen.core.logging``). A caller-supplied id is kept when it looks like
an id: at most 128 characters from ``[A-Za-z0-9._:-]``. Anything else is
replaced with a fresh UUID so arbitrary header content never reaches the
logs.
"""

import re
import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:\-]{1,128}")


def is_valid_request_id(value: str) -> bool:
    return _REQUEST_ID_RE.fullmatch(value) is not None


def setup_correlation_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: str(uuid.uuid4()),
        validator=is_valid_request_id,
        transformer=lambda value: value,
    )


def get_correlation_id() -> str | None:
    """The current request's id, or None outside a request."""
    return correlation_id.get(None)
