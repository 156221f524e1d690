"""Health check endpoints."""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter(tags=["health"])

logger = logging.getLogger(__name__)

_START_TIME = time.monotonic()


@router.get("/api/health")
async def health() -> dict[str, str]:
    """Basic health check -- always returns quickly."""
    return {"status": "ok"}


@router.get("/api/health/detailed")
async def health_detailed(request: Request) -> dict[str, Any]:
    """Health check including a database round trip."""
    from forumwiki import __version__

    checks: dict[str, Any] = {
        "status": "ok",
        "version": __version__,
        "uptime_seconds": round(time.monotonic() - _START_TIME, 1),
        "components": {},
    }

    try:
        db_factory = request.app.state.db_factory
        async with db_factory() as session:
            await session.execute(text("SELECT 1"))
        checks["components"]["database"] = {"status": "ok"}
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        checks["components"]["database"] = {"status": "error", "detail": str(e)}
        checks["status"] = "degraded"

    return checks
