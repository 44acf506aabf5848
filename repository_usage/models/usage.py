"""Repository usage model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from repository_usage.models.base import Base


class RepoUsage(Base):
    """One outbound dependency of a (project, branch).

    ``project`` is the canonical source; manifest-derived rows append
    ``":<manifest path>"`` so every manifest acts as its own source.
    """

    __tablename__ = "RepoUsage"

    project: Mapped[str] = mapped_column(String(1023), primary_key=True)
    branch: Mapped[str] = mapped_column(String(255), primary_key=True)
    destination: Mapped[str] = mapped_column(String(1023), primary_key=True)
    ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    info: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_update: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, server_default=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"RepoUsage({self.project!r}, {self.branch!r}, "
            f"{self.destination!r}, {self.ref!r})"
        )
