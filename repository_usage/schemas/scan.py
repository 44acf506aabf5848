"""Scan request schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ScanRequest(BaseModel):
    """Projects and branches to rescan."""

    all: bool = False
    projects: list[str] = Field(default_factory=list)
    branches: list[str] = Field(default_factory=list)


class ScanResponse(BaseModel):
    """Tasks that were queued for the scan."""

    queued: list[str] = Field(default_factory=list)
