"""Administrative endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, status

from repository_usage.api.deps import get_scan_service, require_admin
from repository_usage.schemas.scan import ScanRequest, ScanResponse
from repository_usage.services.scan_service import ScanService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/scan", response_model=ScanResponse, status_code=status.HTTP_202_ACCEPTED)
async def scan(
    body: ScanRequest,
    scan_service: Annotated[ScanService, Depends(get_scan_service)],
    _admin: Annotated[None, Depends(require_admin)],
) -> ScanResponse:
    """Rescan specific projects or branches.

    Raises ValueError (422) when ``all`` is combined with project names.
    """
    queued = await scan_service.scan(
        all_projects=body.all,
        projects=body.projects,
        branches=body.branches,
    )
    logger.info("Admin scan request queued %d task(s)", len(queued))
    return ScanResponse(queued=queued)
