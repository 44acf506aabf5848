"""RefStatus persistence: latest observed commit per (project, ref)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from repository_usage.models.ref import RefStatus

if TYPE_CHECKING:
    from sqlalchemy.sql import Executable

    from repository_usage.database import Database

logger = logging.getLogger(__name__)


class RefService:
    """CRUD for the RefStatus table.

    Every method runs exactly one statement in its own session. Failures are
    logged and swallowed so that a bad row never aborts the caller.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def fetch_by_project(self, project: str) -> list[RefStatus]:
        return await self._fetch(select(RefStatus).where(RefStatus.project == project))

    async def fetch_by_ref(self, project: str, ref: str) -> RefStatus | None:
        """Return the row for (project, ref), or None."""
        rows = await self._fetch(
            select(RefStatus).where(RefStatus.project == project, RefStatus.ref == ref)
        )
        if len(rows) == 1:
            return rows[0]
        return None

    async def save(self, ref: RefStatus) -> None:
        """Insert or update the row keyed by (project, ref)."""
        ref.last_update = datetime.now()
        if not self.database.is_available:
            logger.error("Database unavailable; not saving ref %s %s", ref.project, ref.ref)
            return
        existing = await self.fetch_by_ref(ref.project, ref.ref)
        timestamp = self.database.timestamp(ref.last_update)
        if existing is None:
            stmt: Executable = insert(RefStatus).values(
                project=ref.project,
                ref=ref.ref,
                commit=ref.commit,
                last_update=timestamp,
            )
            action = "insert"
        else:
            stmt = (
                update(RefStatus)
                .where(RefStatus.project == ref.project, RefStatus.ref == ref.ref)
                .values(commit=ref.commit, last_update=timestamp)
            )
            action = "update"
        try:
            async with self.database.session() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Unable to %s reference %s %s: %s", action, ref.project, ref.ref, exc)
            return
        logger.info("Saving Ref: %s, %s, %s", ref.project, ref.ref, ref.commit)

    async def delete(self, ref: RefStatus) -> None:
        logger.info("Deleting Ref: %s, %s", ref.project, ref.ref)
        if not self.database.is_available:
            logger.error("Database unavailable; not deleting ref %s %s", ref.project, ref.ref)
            return
        try:
            async with self.database.session() as session:
                await session.execute(
                    delete(RefStatus).where(
                        RefStatus.project == ref.project, RefStatus.ref == ref.ref
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Unable to delete reference %s %s: %s", ref.project, ref.ref, exc)

    async def _fetch(self, stmt: Executable) -> list[RefStatus]:
        if not self.database.is_available:
            logger.error("Database unavailable; returning no refs")
            return []
        try:
            async with self.database.session() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Unable to execute query: %s", exc)
            return []
