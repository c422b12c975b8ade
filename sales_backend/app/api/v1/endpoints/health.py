from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sales_backend.app.core.database import get_db

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check(db: Session = Depends(get_db)) -> dict[str, str]:
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        database = "error"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "service": "sales",
        "database": database,
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
    }
