from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from sitegen.db import ping_database, ping_redis

SERVICE_NAME = "sitegen-backend"

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Liveness probe. 503 once SIGTERM has been received, so the balancer drains us."""
    if getattr(request.app.state, "shutting_down", False):
        return JSONResponse(status_code=503, content={"status": "shutting_down", "service": SERVICE_NAME})
    return {"status": "healthy", "service": SERVICE_NAME}


@router.get("/ready")
async def readiness_check():
    """Readiness probe: Postgres answers ``SELECT 1`` and Redis (version locks) answers PING."""
    checks = {"database": await ping_database(), "redis": await ping_redis()}
    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "degraded", "checks": checks},
    )
