"""structlog setup for the API process.

One processor chain renders both structlog events and stdlib records from
uvicorn, SQLAlchemy, httpx and the Anthropic SDK. Every entry carries the
request's correlation id, plus whatever generation context was bound with
``bind_generation_context`` (user, project, version), so the lines of one
streamed run can be pulled out of the aggregate log by ``version_id``.
"""

import logging
import logging.config
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from asgi_correlation_id.context import correlation_id

# Chatty third-party loggers capped at WARNING
QUIET_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "anthropic",
    "sqlalchemy.engine",
    "aiosqlite",
)


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict.setdefault("correlation_id", cid)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Install the processor chain and route stdlib logging through it.

    Must run before other sitegen modules log anything: loggers are cached
    on first use.

    Args:
        log_level: Root level name, e.g. ``"INFO"``
        json_logs: JSON lines (production) or ConsoleRenderer (local dev)
    """
    shared = _shared_processors()
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "processors": [structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
                    "foreign_pre_chain": shared,
                },
            },
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "formatter": "structlog",
                    "stream": "ext://sys.stdout",
                },
            },
            "root": {"handlers": ["stdout"], "level": log_level},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_generation_context(**ids) -> None:
    """Attach ids (``clerk_user_id``, ``project_id``, ``version_id``) to every later entry in this context.

    ``None`` values are skipped; UUIDs are logged as strings.
    """
    structlog.contextvars.bind_contextvars(**{k: str(v) for k, v in ids.items() if v is not None})


@contextmanager
def generation_log_context(**ids) -> Iterator[None]:
    """Scoped form of ``bind_generation_context`` for background work."""
    with structlog.contextvars.bound_contextvars(**{k: str(v) for k, v in ids.items() if v is not None}):
        yield
