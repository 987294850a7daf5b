"""Health check endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clipshare.api.deps import get_db
from clipshare.errors import DatabaseUnavailableError
from clipshare.logging import get_logger
from clipshare.responses import success_response

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check. Does not touch the database."""
    return success_response({"status": "ok"})


@router.get("/health/db")
def database_health_check(db: Annotated[Session, Depends(get_db)]) -> dict:
    """Readiness check: runs a trivial query, 503 when the database is unreachable."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("database_health_check_failed", error_type=type(e).__name__)
        raise DatabaseUnavailableError() from e
    return success_response({"status": "ok", "database": "ok"})
