"""Pydantic models for forumwiki configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    """Database connection settings."""

    url: str = "sqlite+aiosqlite:///~/.local/share/forumwiki/forumwiki.db"
    busy_timeout: float = 5.0
    sqlite_wal: bool = True
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600


class IdentifierConfig(BaseModel):
    """Unique-id generation under write contention."""

    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=0.05, ge=0.0)


class ForumSettings(BaseModel):
    """Defaults and bounds for forum operations."""

    elevated_roles: list[str] = Field(default_factory=lambda: ["admin", "moderator"])
    default_page_size: int = 20
    max_page_size: int = 100
    default_graph_depth: int = 2
    max_graph_depth: int = 5


class APIConfig(BaseModel):
    """REST API server settings."""

    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class ForumWikiConfig(BaseModel):
    """Top-level configuration for forumwiki."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    identifiers: IdentifierConfig = Field(default_factory=IdentifierConfig)
    forum: ForumSettings = Field(default_factory=ForumSettings)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
