"""Tests for the health endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tests.conftest import create_test_client

if TYPE_CHECKING:
    from pathlib import Path

    from repository_usage.config import Settings


class TestHealth:
    async def test_healthy(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "version": "0.1.0",
            "database": "ok",
            "worker": "ok",
        }

    async def test_unavailable_database(self, test_settings: Settings, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        settings = test_settings.model_copy(update={"database": str(blocker / "db" / "usage.db")})
        async with create_test_client(settings) as client:
            resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "degraded"
        assert resp.json()["database"] == "unavailable"

    async def test_stopped_worker(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            await client.app.state.queue.stop()  # type: ignore[attr-defined]
            resp = await client.get("/api/health")
        assert resp.json()["worker"] == "stopped"
