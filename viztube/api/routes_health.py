"""Health check endpoints for the VizTube API."""

import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy import text

from viztube.api.responses import api_response
from viztube.db.session import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/")
async def root_status():
    """
    Service banner.

    Returns:
        The response envelope with the service status
    """
    return api_response({"status": "ok"}, "VizTube API is running")


@router.get("/healthz")
async def health_check():
    """
    Health check endpoint.

    Returns:
        A simple status object indicating the service is healthy
    """
    return {"ok": True}


@router.get("/readyz")
async def readiness_check():
    """
    Readiness check endpoint.

    Returns:
        A simple status object once the database answers a trivial query
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Readiness check failed", exc_info=True)
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"ok": True}
