"""RepoUsage persistence: outbound dependencies per (project, branch)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from repository_usage.models.usage import RepoUsage

if TYPE_CHECKING:
    from sqlalchemy.sql import Executable

    from repository_usage.database import Database

logger = logging.getLogger(__name__)


class UsageService:
    """CRUD for the RepoUsage table, one statement per session."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def fetch_by_project(self, project: str, branch: str | None = None) -> list[RepoUsage]:
        """Rows for a source project, optionally limited to one branch."""
        stmt = select(RepoUsage).where(RepoUsage.project == project)
        if branch is not None:
            stmt = stmt.where(RepoUsage.branch == branch)
        return await self._fetch(stmt)

    async def fetch_by_dependency(self, destination: str) -> list[RepoUsage]:
        """Rows whose destination is the given canonical repository."""
        return await self._fetch(select(RepoUsage).where(RepoUsage.destination == destination))

    async def save(self, usage: RepoUsage) -> None:
        """Insert or update the row keyed by (project, branch, destination)."""
        usage.last_update = datetime.now()
        logger.debug(
            "Saving Usage: %s, %s, %s, %s",
            usage.project,
            usage.branch,
            usage.destination,
            usage.ref,
        )
        if not self.database.is_available:
            logger.error("Database unavailable; not saving usage %s", usage.destination)
            return
        existing = await self._fetch(
            select(RepoUsage).where(*self._key_clause(usage)),
        )
        timestamp = self.database.timestamp(usage.last_update)
        if not existing:
            stmt: Executable = insert(RepoUsage).values(
                project=usage.project,
                branch=usage.branch,
                destination=usage.destination,
                ref=usage.ref,
                info=usage.info,
                last_update=timestamp,
            )
            action = "insert"
        else:
            stmt = (
                update(RepoUsage)
                .where(*self._key_clause(usage))
                .values(ref=usage.ref, info=usage.info, last_update=timestamp)
            )
            action = "update"
        await self._execute(stmt, f"Unable to {action} usage")

    async def delete(self, usage: RepoUsage) -> None:
        logger.debug(
            "Deleting Usage: %s, %s, %s", usage.project, usage.branch, usage.destination
        )
        await self._execute(
            delete(RepoUsage).where(*self._key_clause(usage)),
            "Unable to delete usage",
        )

    async def delete_by_branch(self, project: str, branch: str) -> None:
        """Remove every dependency recorded for (project, branch)."""
        logger.debug("Deleting all uses: %s, %s", project, branch)
        await self._execute(
            delete(RepoUsage).where(RepoUsage.project == project, RepoUsage.branch == branch),
            "Unable to delete usage",
        )

    async def reconcile(self, project: str, branch: str, extracted: dict[str, str]) -> None:
        """Make the rows for (project, branch) equal the extracted mapping.

        Existing rows are updated in place or deleted; destinations that are
        new get inserted. ``extracted`` maps destination to revision and is
        not modified.
        """
        remaining = dict(extracted)
        for usage in await self.fetch_by_project(project, branch):
            if usage.destination not in remaining:
                await self.delete(usage)
            else:
                usage.ref = remaining.pop(usage.destination)
                await self.save(usage)
        for destination, revision in remaining.items():
            await self.save(
                RepoUsage(
                    project=project,
                    branch=branch,
                    destination=destination,
                    ref=revision,
                    info="",
                )
            )

    @staticmethod
    def _key_clause(usage: RepoUsage) -> tuple[object, ...]:
        return (
            RepoUsage.project == usage.project,
            RepoUsage.branch == usage.branch,
            RepoUsage.destination == usage.destination,
        )

    async def _execute(self, stmt: Executable, failure: str) -> None:
        if not self.database.is_available:
            logger.error("Database unavailable: %s", failure)
            return
        try:
            async with self.database.session() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("%s: %s", failure, exc)

    async def _fetch(self, stmt: Executable) -> list[RepoUsage]:
        if not self.database.is_available:
            logger.error("Database unavailable; returning no usage rows")
            return []
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Unable to execute query: %s", exc)
            return []
