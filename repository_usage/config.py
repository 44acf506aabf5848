"""Application configuration loaded from environment variables."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class DatabaseType(StrEnum):
    """Supported database engines."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


class Settings(BaseSettings):
    """Repository usage service settings."""

    model_config = SettingsConfigDict(
        env_prefix="REPOSITORY_USAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    canonical_web_url: str | None = None

    # Paths
    repositories_dir: Path = Path("./git")
    site_path: Path = Path(".")

    # Extraction
    refresh_all_submodules: bool = False
    parse_manifests: bool = True
    large_blob_threshold: int = Field(default=50 * 1024 * 1024, ge=1)

    # Database
    database_type: DatabaseType = DatabaseType.SQLITE
    database: str | None = None
    database_host: str = ""
    database_user: str = ""
    database_password: str = ""

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)

    # Auth
    admin_token: str = ""
    event_token: str = ""

    @property
    def database_name(self) -> str:
        """Database file path (sqlite) or database name (postgresql)."""
        if self.database:
            return self.database
        return str(self.site_path / "db" / "UsageDB")

    @property
    def database_url(self) -> str:
        """SQLAlchemy async URL for the configured database type."""
        if self.database_type is DatabaseType.POSTGRESQL:
            url = URL.create(
                "postgresql+asyncpg",
                username=self.database_user or None,
                password=self.database_password or None,
                host=self.database_host or None,
                database=self.database_name,
            )
            return url.render_as_string(hide_password=False)
        return f"sqlite+aiosqlite:///{self.database_name}"
