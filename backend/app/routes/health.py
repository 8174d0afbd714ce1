# backend/app/routes/health.py
"""
Health check endpoints for the application.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.config import settings
from ..schemas.base_responses import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Simple status indicating the service is running.
    """
    response.headers["Cache-Control"] = "no-store"
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
        status = "healthy"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "unavailable"
        status = "degraded"

    return HealthResponse(status=status, environment=settings.environment, database=db_status)
