"""
Health check endpoints with database pool and Redis monitoring.
"""

import time

from fastapi import APIRouter

from app.config import settings
from app.db.pool import db_health_check
from app.infrastructure.observability.logging import log_health_check
from app.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "followup-attention"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering the database pool and the holiday cache."""
    checks = {}
    overall_ok = True

    # Redis only backs the holiday cache and is excluded from overall_ok
    t0 = time.time()
    redis_ok = await fast_redis.ping()
    latency_ms = round((time.time() - t0) * 1000, 1)
    checks["redis"] = {"ok": redis_ok, "latency_ms": latency_ms, "required": False}
    log_health_check("redis", redis_ok, latency_ms)

    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = bool(db_health.get("healthy", False))
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}

        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                    "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
                }
            )

        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        log_health_check("database", is_healthy, latency_ms, checks["database"].get("error"))
        overall_ok = overall_ok and is_healthy

    except Exception as e:
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": latency_ms,
        }
        log_health_check("database", False, latency_ms, str(e))
        overall_ok = False

    config_issues = []
    if not settings.OPENAI_API_KEY and settings.ATTENTION_MENTION_CLASSIFIER_ENABLED:
        config_issues.append("OPENAI_API_KEY not set, mention classification will be skipped")

    checks["configuration"] = {
        "ok": True,
        "issues": config_issues or None,
        "environment": settings.environment,
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
