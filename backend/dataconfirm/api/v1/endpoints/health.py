"""
Health Check Endpoints

- /health        - summary of every check
- /health/live   - basic liveness (app is running)
- /health/ready  - readiness (database reachable, tables created, catalog loads)
"""

from fastapi import APIRouter, HTTPException, status
from datetime import datetime
from typing import Dict, Any
import time

from dataconfirm import __version__
from dataconfirm.core.config import settings
from dataconfirm.core.exceptions import CatalogFormatError
from dataconfirm.core.logging_config import logger
from dataconfirm.services.catalog_service import get_catalog_service
from dataconfirm.services.email_service import email_service


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the submission tables exist"""
    start = time.time()
    try:
        from dataconfirm.core.database import get_session_local
        from sqlalchemy import text

        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1 as health"))

            try:
                await session.execute(text("SELECT COUNT(*) FROM submissions LIMIT 1"))
                tables_ok = True
            except Exception:
                tables_ok = False

            latency = (time.time() - start) * 1000
            return {
                "status": "healthy",
                "latency_ms": round(latency, 2),
                "connection": "ok",
                "tables_ready": tables_ok,
                "message": "Database connection successful"
            }
    except Exception as e:
        latency = (time.time() - start) * 1000
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round(latency, 2),
            "connection": "failed",
            "tables_ready": False,
            "error": str(e),
            "message": "Database connection failed - submissions cannot be saved"
        }


def check_catalog() -> Dict[str, Any]:
    """Check the systems catalog loads"""
    try:
        flows = get_catalog_service().list_flows()
        return {
            "status": "healthy",
            "flows": flows,
            "message": "Catalog loaded"
        }
    except CatalogFormatError as e:
        return {
            "status": "unhealthy",
            "error": e.message,
            "message": "Catalog could not be loaded"
        }


def check_email_config() -> Dict[str, Any]:
    """Check email configuration (not actual connectivity)"""
    if email_service.is_configured:
        return {
            "status": "healthy",
            "configured": True,
            "host": settings.SMTP_HOST,
            "recipients": len(settings.NOTIFICATION_RECIPIENTS),
            "message": "SMTP credentials configured"
        }
    return {
        "status": "degraded",
        "configured": False,
        "message": "Email not configured - submission notifications will be skipped"
    }


@router.get("")
async def health_summary():
    """All checks; always 200 so dashboards can read the details"""
    db_check = await check_database()
    checks = {
        "database": db_check,
        "catalog": check_catalog(),
        "email": check_email_config(),
    }
    overall = "healthy"
    if any(c["status"] == "unhealthy" for c in checks.values()):
        overall = "unhealthy"
    elif any(c["status"] == "degraded" for c in checks.values()):
        overall = "degraded"

    return {
        "status": overall,
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
        "checks": checks,
    }


@router.get("/live")
async def liveness_check():
    """
    Liveness probe - indicates the application is running.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
        "version": __version__
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness probe - 200 only if the database and catalog are usable.
    """
    db_check = await check_database()
    catalog_check = check_catalog()

    is_ready = (
        db_check.get("status") == "healthy"
        and db_check.get("tables_ready", False)
        and catalog_check.get("status") == "healthy"
    )

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": db_check,
            "catalog": catalog_check,
        }
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response
        )

    return response
