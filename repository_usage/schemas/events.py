"""Ref-update event schemas."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

ObjectId = Annotated[str, Field(pattern=r"^[0-9a-f]{40}$")]


class RefUpdatedEvent(BaseModel):
    """A ref update delivered by the hosting service."""

    project_name: str = Field(min_length=1, max_length=1000)
    ref_name: str = Field(min_length=1, max_length=255, pattern=r"^refs/")
    old_object_id: ObjectId
    new_object_id: ObjectId


class EventAcceptedResponse(BaseModel):
    """Acknowledgement that an event was queued."""

    queued: str
