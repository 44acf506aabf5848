"""Tests for the admin scan endpoint and the global error handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from repository_usage.exceptions import GitObjectError
from repository_usage.services.ref_service import RefService
from tests.conftest import TEST_ADMIN_TOKEN, create_test_client

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from httpx import AsyncClient

    from repository_usage.config import Settings

ADMIN_HEADERS = {"Authorization": f"Bearer {TEST_ADMIN_TOKEN}"}


@pytest.fixture
async def client(test_settings: Settings) -> AsyncGenerator[AsyncClient]:
    async with create_test_client(test_settings) as ac:
        yield ac


class TestScanEndpoint:
    async def test_requires_admin_token(self, client: AsyncClient) -> None:
        resp = await client.post("/api/admin/scan", json={"all": True})
        assert resp.status_code == 403

    async def test_wrong_admin_token(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/admin/scan", json={"all": True}, headers={"Authorization": "Bearer wrong"}
        )
        assert resp.status_code == 403

    async def test_disabled_without_configured_token(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"admin_token": ""})
        async with create_test_client(settings) as ac:
            resp = await ac.post(
                "/api/admin/scan", json={"all": True}, headers={"Authorization": "Bearer "}
            )
        assert resp.status_code == 403

    async def test_all_with_projects_is_422(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/admin/scan", json={"all": True, "projects": ["p"]}, headers=ADMIN_HEADERS
        )
        assert resp.status_code == 422
        assert resp.json()["detail"] == "error: cannot combine --all and PROJECT"

    async def test_scan_all(self, client: AsyncClient, make_repo) -> None:  # type: ignore[no-untyped-def]
        builder = make_repo("p")
        main = builder.commit({"a": b"1"})
        dev = builder.commit({"a": b"2"}, parent=main)
        builder.set_ref("refs/heads/main", main)
        builder.set_ref("refs/heads/dev", dev)

        resp = await client.post("/api/admin/scan", json={"all": True}, headers=ADMIN_HEADERS)
        assert resp.status_code == 202
        assert len(resp.json()["queued"]) == 2

        app = client.app  # type: ignore[attr-defined]
        await app.state.queue.join()
        rows = await RefService(app.state.database).fetch_by_project("git.example.com/p")
        assert {row.ref: row.commit for row in rows} == {
            "refs/heads/main": main,
            "refs/heads/dev": dev,
        }

    async def test_scan_branch_of_project(self, client: AsyncClient, make_repo) -> None:  # type: ignore[no-untyped-def]
        builder = make_repo("p")
        main = builder.commit({"a": b"1"})
        builder.set_ref("refs/heads/main", main)
        builder.set_ref("refs/heads/dev", main)

        resp = await client.post(
            "/api/admin/scan",
            json={"projects": ["p"], "branches": ["dev"]},
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 202
        assert resp.json()["queued"] == [f"(repository-usage) p refs/heads/dev 0000000..{main[:7]}"]


class TestErrorHandlers:
    async def test_git_error_maps_to_502(self, client: AsyncClient) -> None:
        async def broken() -> None:
            raise GitObjectError("boom")

        client.app.add_api_route("/api/test/git-error", broken)  # type: ignore[attr-defined]
        resp = await client.get("/api/test/git-error")
        assert resp.status_code == 502
        assert resp.json()["detail"] == "Repository access failed"

    async def test_operational_error_maps_to_503(self, client: AsyncClient) -> None:
        async def broken() -> None:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        client.app.add_api_route("/api/test/db-error", broken)  # type: ignore[attr-defined]
        resp = await client.get("/api/test/db-error")
        assert resp.status_code == 503
