"""
Health Router for the Discover Crawler API
System health checks and status endpoints
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from models.schemas import HealthResponse
from services.supabase import SupabaseService, get_supabase_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

# API Version
API_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: SupabaseService = Depends(get_supabase_service)
):
    """
    Health check endpoint for monitoring and load balancers.

    The API can still run scrapes without the database, so a failed
    Supabase check reports "degraded" rather than failing.
    """
    supabase_connected = False
    try:
        supabase_connected = db.is_connected()
    except Exception as e:
        logger.warning(f"Supabase health check failed: {e}")

    return HealthResponse(
        status="healthy" if supabase_connected else "degraded",
        version=API_VERSION,
        supabase_connected=supabase_connected,
        timestamp=datetime.utcnow()
    )


@router.get("/health/ready")
async def readiness_check(
    db: SupabaseService = Depends(get_supabase_service)
):
    """
    Readiness probe endpoint.

    Returns 200 if the service is ready to accept traffic, 503 if the
    database is unavailable.
    """
    try:
        if not db.is_connected():
            return JSONResponse(status_code=503, content={"ready": False, "reason": "Database not connected"})
        return {"ready": True}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"ready": False, "reason": str(e)})


@router.get("/health/live")
async def liveness_check():
    """Liveness probe endpoint."""
    return {"alive": True, "timestamp": datetime.utcnow().isoformat()}
