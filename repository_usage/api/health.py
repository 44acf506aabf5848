"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from repository_usage.api.deps import get_database, get_queue
from repository_usage.database import Database
from repository_usage.services.scanning_queue import ScanningQueue

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    worker: str


@router.get("/api/health", response_model=HealthResponse)
async def health_check(
    database: Annotated[Database, Depends(get_database)],
    queue: Annotated[ScanningQueue, Depends(get_queue)],
) -> HealthResponse:
    """Health check endpoint for monitoring and load balancers."""
    db_status = "ok"
    if not database.is_available:
        db_status = "unavailable"
    else:
        try:
            async with database.session() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Health check database query failed", exc_info=True)
            db_status = "error"

    worker_status = "ok" if queue.is_running else "stopped"
    healthy = db_status == "ok" and worker_status == "ok"
    return HealthResponse(
        status="ok" if healthy else "degraded",
        version="0.1.0",
        database=db_status,
        worker=worker_status,
    )
