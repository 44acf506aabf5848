"""Shared API dependencies: settings, services, bearer-token gates."""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from repository_usage.config import Settings
from repository_usage.database import Database
from repository_usage.services.ref_update_handler import RefUpdateHandler
from repository_usage.services.scan_service import ScanService
from repository_usage.services.scanning_queue import ScanningQueue

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_database(request: Request) -> Database:
    database: Database = request.app.state.database
    return database


def get_queue(request: Request) -> ScanningQueue:
    queue: ScanningQueue = request.app.state.queue
    return queue


def get_handler(request: Request) -> RefUpdateHandler:
    handler: RefUpdateHandler = request.app.state.handler
    return handler


def get_scan_service(request: Request) -> ScanService:
    scan_service: ScanService = request.app.state.scan_service
    return scan_service


def _token_matches(
    credentials: HTTPAuthorizationCredentials | None, expected: str
) -> bool:
    return credentials is not None and secrets.compare_digest(
        credentials.credentials.encode(), expected.encode()
    )


async def require_event_token(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the event token when one is configured. Raises 401 otherwise."""
    if settings.event_token and not _token_matches(credentials, settings.event_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the administrator token. Raises 403 if missing or wrong.

    With no admin token configured the admin endpoints are disabled.
    """
    if not settings.admin_token or not _token_matches(credentials, settings.admin_token):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
