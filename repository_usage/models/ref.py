"""Ref status model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from repository_usage.models.base import Base


class RefStatus(Base):
    """Latest observed commit of a head or tag, keyed by (project, ref)."""

    __tablename__ = "RefStatus"

    project: Mapped[str] = mapped_column(String(1023), primary_key=True)
    ref: Mapped[str] = mapped_column(String(255), primary_key=True)
    commit: Mapped[str | None] = mapped_column(String(40), nullable=True)
    last_update: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"RefStatus({self.project!r}, {self.ref!r}, {self.commit!r})"
