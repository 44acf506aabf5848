"""Ref-update intake endpoint."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from repository_usage.api.deps import get_handler, get_queue, require_event_token
from repository_usage.schemas.events import EventAcceptedResponse, RefUpdatedEvent
from repository_usage.services.ref_update_handler import (
    RefUpdate,
    RefUpdateHandler,
    RefUpdateTask,
)
from repository_usage.services.scanning_queue import ScanningQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


@router.post(
    "/ref-updated",
    response_model=EventAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ref_updated(
    body: RefUpdatedEvent,
    queue: Annotated[ScanningQueue, Depends(get_queue)],
    handler: Annotated[RefUpdateHandler, Depends(get_handler)],
    _auth: Annotated[None, Depends(require_event_token)],
) -> EventAcceptedResponse:
    """Queue a ref update for background processing and return immediately."""
    event = RefUpdate(
        project_name=body.project_name,
        ref_name=body.ref_name,
        old_object_id=body.old_object_id,
        new_object_id=body.new_object_id,
    )
    task = RefUpdateTask(handler, event)
    if not queue.submit(task):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is shutting down",
        )
    return EventAcceptedResponse(queued=str(task))
