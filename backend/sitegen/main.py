"""SiteGen backend: FastAPI application factory and ASGI entry point."""

import signal
import uuid
from contextlib import asynccontextmanager

# Logging is configured before any other sitegen import: structlog caches
# each logger's processor chain on first use.
from sitegen.core.config import get_settings as _get_settings_early
from sitegen.core.logging import configure_structlog

_early_settings = _get_settings_early()
configure_structlog(
    log_level="DEBUG" if _early_settings.debug else "INFO",
    json_logs=not _early_settings.debug,
)

import structlog

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sitegen.api.routes import api_router
from sitegen.core.config import get_settings
from sitegen.core.exceptions import PersistenceError, VersionLockTimeoutError
from sitegen.db import close_db, close_redis, init_db, init_redis
from sitegen.middleware.correlation import get_correlation_id, setup_correlation_middleware

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # SIGTERM flips this so /api/health answers 503 while in-flight streams drain
    app.state.shutting_down = False

    def handle_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_check_503_draining_connections")

    signal.signal(signal.SIGTERM, handle_sigterm)

    settings = get_settings()
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)
    await init_db()
    await init_redis()
    logger.info("startup_complete", generation_model=settings.generation_model)

    yield

    logger.info("shutdown_begin")
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


# ──────────────────────────────────────────────────────────────────────────────
# Exception handlers
#
# Every error body is {"detail", "debug_id"}. The debug_id is logged with the
# full context server-side so a user report can be matched to the log line.
# ──────────────────────────────────────────────────────────────────────────────


def _error_response(request: Request, status_code: int, detail, event: str, **extra) -> JSONResponse:
    debug_id = str(uuid.uuid4())
    log = logger.error if status_code >= 500 else logger.warning
    log(
        event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=get_correlation_id(),
        path=request.url.path,
        method=request.method,
        user_id=getattr(request.state, "user_id", None),
        **extra,
    )
    content = {"detail": detail, "debug_id": debug_id}
    if "errors" in extra:
        content["errors"] = extra["errors"]
    return JSONResponse(status_code=status_code, content=content)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail, "http_exception")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400, not FastAPI's default 422."""
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return _error_response(request, 400, "Invalid request body", "request_validation_failed", errors=errors)


async def version_lock_timeout_handler(request: Request, exc: VersionLockTimeoutError) -> JSONResponse:
    """Another generation for the project is still allocating its version."""
    return _error_response(
        request, 503, "Project is busy, try again shortly", "version_lock_timeout", project_id=exc.project_id
    )


async def persistence_error_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    return _error_response(
        request, 500, "Generation could not be saved", "persistence_failed", error=str(exc), exc_info=True
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unhandled: full traceback in the log, nothing internal in the body."""
    return _error_response(
        request,
        500,
        "Internal server error",
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(VersionLockTimeoutError, version_lock_timeout_handler)
    app.add_exception_handler(PersistenceError, persistence_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)


# ──────────────────────────────────────────────────────────────────────────────
# App factory
# ──────────────────────────────────────────────────────────────────────────────


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Streaming site generation backend",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url, *settings.clerk_allowed_origins],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    # Added last so it wraps CORS and sees every request first
    setup_correlation_middleware(app)

    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sitegen.main:app", host="0.0.0.0", port=8000, reload=True)
