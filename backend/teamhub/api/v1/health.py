# backend/teamhub/api/v1/health.py
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from teamhub.core.config import settings
from teamhub.db.session import get_db

logger = logging.getLogger("teamhub.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Liveness check")
def health():
    return {
        "status": "ok",
        "service": "teamhub",
        "environment": settings.environment,
        "self_host_mode": settings.self_host_mode,
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db", summary="Database readiness check")
def health_db(db: Session = Depends(get_db)):
    """503 with the driver error when the database can't answer SELECT 1."""
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.exception("DB health check failed")
        raise HTTPException(
            status_code=503,
            detail={"code": "DB_UNAVAILABLE", "message": "Database unavailable", "error": str(exc)},
        )
    return {"status": "ok", "db": "up", "latency_ms": int((time.perf_counter() - start) * 1000)}
