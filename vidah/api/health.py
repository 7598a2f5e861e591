"""
Health check endpoints - used by the load balancer, container healthcheck and monitoring.

- GET /health, /_health - liveness (always 200 if the app is running)
- GET /ready            - readiness (database + Redis)
- GET /metrics          - in-process request metrics
"""
import logging
import os
import platform
import time
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from vidah.config import APP_VERSION, get_settings
from vidah.database import DatabaseNotConfiguredError, async_session_factory
from vidah.utils.metrics import request_metrics

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

_started_at = time.monotonic()


def uptime_seconds() -> int:
    return int(time.monotonic() - _started_at)


@router.get("/health")
@router.get("/_health")
async def health_check():
    """Basic liveness check - returns 200 if the app is running."""
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": uptime_seconds(),
        "version": APP_VERSION,
        "environment": settings.app_env,
        "database": "configured" if settings.database_url else "missing",
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check - verifies database and Redis connectivity.
    Always 200; `status` is "degraded" when a dependency is down.
    """
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    all_healthy = all(c["healthy"] for c in checks.values())
    return {
        "status": "ready" if all_healthy else "degraded",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
async def metrics():
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime_seconds": uptime_seconds(),
        "environment": get_settings().app_env,
        "requests": request_metrics.snapshot(),
        "process": {
            "pid": os.getpid(),
            "python_version": platform.python_version(),
            "platform": platform.platform(),
        },
    }


async def _check_database() -> dict:
    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
        return {"healthy": True}
    except DatabaseNotConfiguredError:
        return {"healthy": False, "error": "DATABASE_URL not configured"}
    except Exception as e:
        logger.error("Readiness: database check failed: %s", str(e))
        return {"healthy": False, "error": str(e)}


async def _check_redis() -> dict:
    try:
        from vidah.utils.rate_limiter import get_redis
        redis = await get_redis()
        await redis.ping()
        return {"healthy": True}
    except Exception as e:
        logger.warning("Readiness: Redis check failed: %s", str(e))
        return {"healthy": False, "error": str(e)}
