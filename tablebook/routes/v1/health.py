# tablebook/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer checks.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ... import __version__
from ...api.dependencies import get_db
from ...core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(response: Response, db: Session = Depends(get_db)) -> dict:
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check database query failed: %s", e)
        database = "unavailable"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "healthy" if database == "ok" else "degraded",
        "service": "tablebook-api",
        "version": __version__,
        "environment": settings.environment,
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
