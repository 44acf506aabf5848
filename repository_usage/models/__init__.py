"""SQLAlchemy ORM models for the repository usage database."""

from repository_usage.models.base import Base
from repository_usage.models.ref import RefStatus
from repository_usage.models.usage import RepoUsage

__all__ = [
    "Base",
    "RefStatus",
    "RepoUsage",
]
