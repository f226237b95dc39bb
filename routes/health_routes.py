"""
Health check endpoint.

GET /health pings MongoDB and Redis.
- MongoDB unreachable → "unhealthy" (503); no endpoint works without it.
- Redis failing or not configured → "degraded" (200); only the per-IP
  limiter uses it and falls back to memory.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        await request.app.state.mongo.ping()
        checks["mongodb"] = "ok"
    except Exception as e:
        log.warning("health_mongodb_failed", error=str(e), error_type=type(e).__name__)
        checks["mongodb"] = "error"
        overall = "unhealthy"

    redis = request.app.state.redis
    if redis is None:
        checks["redis"] = "not_configured"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as e:
            log.warning("health_redis_failed", error=str(e), error_type=type(e).__name__)
            checks["redis"] = "error"

    if overall == "healthy" and checks["redis"] != "ok":
        overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    body = HealthResponse(status=overall, checks=checks)
    return JSONResponse(status_code=status_code, content=body.model_dump())
