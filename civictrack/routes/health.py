"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from google.api_core import exceptions as gexc
import logging

from civictrack.core.settings import settings
from civictrack.routes.deps import get_database

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db")
async def database_health(db=Depends(get_database)):
    """
    Database connectivity check.
    Lists collections, a lightweight call that needs a live connection.
    """
    try:
        collections = list(db.collections())
    except gexc.GoogleAPIError as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(status_code=503, content={
            "status": "unhealthy",
            "database": "firestore",
            "connected": False,
        })
    return {
        "status": "healthy",
        "database": "mock" if settings.USE_MOCK_DB else "firestore",
        "connected": True,
        "collections_count": len(collections),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
