"""
Health Check Endpoints

- /health/live  - Liveness (process is up)
- /health/ready - Readiness (database reachable and tables created)
- /health/deep  - Full diagnostics, including background jobs and live sockets
"""

from fastapi import APIRouter, HTTPException, status
from typing import Dict, Any
import asyncio
import time

from sqlalchemy import text

from app.core.config import settings
from app.core.database import get_session_local
from app.core.logging_config import logger
from app.models.base import utcnow
from app.services.realtime import notification_manager
from app.services.scheduler import scheduler


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Connectivity plus a probe of the users table"""
    start = time.time()
    try:
        async with get_session_local()() as session:
            await session.execute(text("SELECT 1"))
            try:
                await session.execute(text("SELECT COUNT(*) FROM users"))
                tables_ok = True
            except Exception as e:
                logger.warning(f"[HealthCheck] users table not readable: {e}")
                tables_ok = False

        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "tables_ready": tables_ok,
        }
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "tables_ready": False,
            "error": str(e),
        }


async def check_uploads() -> Dict[str, Any]:
    upload_dir = settings.UPLOAD_DIR
    writable = upload_dir.is_dir()
    return {
        "status": "healthy" if writable else "degraded",
        "path": str(upload_dir),
        "message": "Upload directory ready" if writable else "Upload directory missing",
    }


def check_critical_env_vars() -> Dict[str, Any]:
    missing = [
        name
        for name, value in (("SECRET_KEY", settings.SECRET_KEY), ("JWT_SECRET_KEY", settings.JWT_SECRET_KEY))
        if not value or value == "CHANGE_ME"
    ]
    if missing:
        return {"status": "unhealthy", "missing_critical": missing}
    return {"status": "healthy", "missing_critical": []}


@router.get("/live")
async def liveness_check():
    return {
        "status": "alive",
        "timestamp": utcnow().isoformat(),
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/ready")
async def readiness_check():
    """503 unless the database answers and the tables exist"""
    db_check = await check_database()
    is_ready = db_check.get("status") == "healthy" and db_check.get("tables_ready", False)

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": utcnow().isoformat(),
        "checks": {"database": db_check},
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")

    return response


@router.get("/deep")
async def deep_health_check():
    start_time = time.time()
    db_check, upload_check = await asyncio.gather(check_database(), check_uploads())

    checks = {
        "database": db_check,
        "uploads": upload_check,
        "environment": check_critical_env_vars(),
    }
    statuses = [c.get("status", "unknown") for c in checks.values()]
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    response = {
        "status": overall,
        "timestamp": utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
        "total_check_time_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
        "scheduler": scheduler.status(),
        "connected_users": notification_manager.connected_user_count,
    }

    if overall == "unhealthy":
        logger.error(f"[HealthCheck] Deep check unhealthy: {response}")

    return response
