"""
Health endpoints.

/healthz is a dependency-free liveness check; /readyz checks the configured
badge document backend.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from backend.core.config import settings
from backend.core.database import get_engine, user_badges

logger = logging.getLogger("smi")

root_router = APIRouter(tags=["health"])


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz():
    """Readiness: with the sql backend, DB connectivity and the badges table."""
    backends = {
        "documents": settings.BADGE_DOCUMENT_BACKEND,
        "streaks": settings.STREAK_STORAGE_BACKEND,
    }
    if settings.BADGE_DOCUMENT_BACKEND != "sql":
        return {"status": "ok", "backends": backends}

    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        if not inspect(engine).has_table(user_badges.name):
            detail = f"missing table: {user_badges.name}"
            logger.warning(f"[readyz] {detail}")
            return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
        return {"status": "ok", "backends": backends}
    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})
