"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from companion_engine import __version__
from companion_engine.core.logging import get_logger
from companion_engine.db.database import get_db

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)) -> dict[str, str]:
    """Engine version and database connectivity."""
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "disconnected"
    status = "ok" if database == "connected" else "error"
    return {"status": status, "database": database, "version": __version__}
