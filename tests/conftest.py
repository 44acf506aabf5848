"""Shared test fixtures for the repository usage service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from repository_usage.config import Settings
from repository_usage.database import Database
from repository_usage.main import create_app, init_services, shutdown_services
from repository_usage.services.git_service import RepositoryManager
from repository_usage.services.ref_service import RefService
from repository_usage.services.ref_update_handler import RefUpdateHandler
from repository_usage.services.usage_service import UsageService
from tests._git_helpers import GitRepoBuilder

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

TEST_ADMIN_TOKEN = "test-admin-token"
SERVER_HOST = "git.example.com"


@pytest.fixture
def repositories_dir(tmp_path: Path) -> Path:
    path = tmp_path / "git"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(tmp_path: Path, repositories_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    return Settings(
        canonical_web_url=f"https://{SERVER_HOST}/",
        repositories_dir=repositories_dir,
        site_path=tmp_path,
        database=str(tmp_path / "db" / "usage.db"),
        admin_token=TEST_ADMIN_TOKEN,
    )


@pytest.fixture
def make_repo(repositories_dir: Path):
    """Factory creating ``<repositories_dir>/<project>.git``."""

    def _make(project: str) -> GitRepoBuilder:
        return GitRepoBuilder(repositories_dir / f"{project}.git")

    return _make


@pytest.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database]:
    db = Database(test_settings)
    await db.bootstrap()
    yield db
    await db.dispose()


@pytest.fixture
def ref_service(database: Database) -> RefService:
    return RefService(database)


@pytest.fixture
def usage_service(database: Database) -> UsageService:
    return UsageService(database)


@pytest.fixture
def handler(
    test_settings: Settings, ref_service: RefService, usage_service: UsageService
) -> RefUpdateHandler:
    return RefUpdateHandler(
        test_settings,
        RepositoryManager(test_settings.repositories_dir),
        ref_service,
        usage_service,
    )


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully initialized app.

    Manually performs the work of the application lifespan because
    ASGITransport does not trigger it.
    """
    app = create_app(settings)
    await init_services(app, settings)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        ac.app = app  # type: ignore[attr-defined]
        yield ac
    await shutdown_services(app)
