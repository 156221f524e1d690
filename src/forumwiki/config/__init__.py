"""Configuration loading and validation."""

from forumwiki.config.loader import load_config
from forumwiki.config.schema import (
    APIConfig,
    DatabaseConfig,
    ForumSettings,
    ForumWikiConfig,
    IdentifierConfig,
    LoggingConfig,
)

__all__ = [
    "APIConfig",
    "DatabaseConfig",
    "ForumSettings",
    "ForumWikiConfig",
    "IdentifierConfig",
    "LoggingConfig",
    "load_config",
]
