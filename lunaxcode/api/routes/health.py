"""
Health check endpoint for deployment monitoring.
"""
import logging
from fastapi import APIRouter, Depends
from datetime import datetime, timezone
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lunaxcode.core import config
from lunaxcode.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint for deployment monitoring.

    Returns 200 with `degraded` status when the database is unreachable.
    """
    status = "healthy"

    if config.STORAGE_BACKEND == "memory":
        db_status = "in-memory"
    else:
        try:
            db.execute(text("SELECT 1"))
            db_status = "connected"
        except SQLAlchemyError as e:
            logger.warning(f"Health check database error: {type(e).__name__}")
            db_status = "error"
            status = "degraded"

    return {
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": db_status,
        "storage": config.STORAGE_BACKEND,
        "version": "1.0.0",
    }
