# backend/app/routes/health.py
"""
Health check endpoints for the application.

These endpoints are used for monitoring application health
and database connectivity.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.config import settings

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    environment: str
    database: bool
    timestamp: datetime


@router.get("/health", response_model=HealthCheckResponse)
def health_check(response: Response, db: Session = Depends(get_db)) -> HealthCheckResponse:
    """
    Basic health check endpoint.

    Returns:
        ``healthy`` when the database answers, otherwise ``degraded``.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        db_status = False

    response.headers["Cache-Control"] = "no-store"
    return HealthCheckResponse(
        status="healthy" if db_status else "degraded",
        service="fitness-trainer-api",
        environment=settings.environment,
        database=db_status,
        timestamp=datetime.now(timezone.utc),
    )
