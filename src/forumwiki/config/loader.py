"""Configuration loading: TOML layers, environment overrides, validation.

Layers, lowest priority first:
    1. Built-in defaults (Pydantic model defaults)
    2. User config: ``$XDG_CONFIG_HOME/forumwiki/config.toml``
    3. Project-local config: ``./forumwiki.toml``
    4. ``$FORUMWIKI_CONFIG`` (must exist when set)
    5. The explicit ``path`` argument (must exist when given)
    6. Single-value environment overrides, see :data:`ENV_OVERRIDES`
    7. Programmatic ``overrides``
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from forumwiki.core.errors import ConfigError

from .schema import ForumWikiConfig

# Environment variable -> (section, key) it replaces after files are merged.
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "FORUMWIKI_DATABASE_URL": ("database", "url"),
    "FORUMWIKI_API_HOST": ("api", "host"),
    "FORUMWIKI_API_PORT": ("api", "port"),
    "FORUMWIKI_LOG_LEVEL": ("logging", "level"),
}


def _optional_layers() -> list[Path]:
    """Config files that are read only if present."""
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    candidates = [
        Path(xdg) / "forumwiki" / "config.toml",
        Path.cwd() / "forumwiki.toml",
    ]
    return [p for p in candidates if p.is_file()]


def _required_layer(raw: str | Path, missing: str) -> Path:
    path = Path(raw)
    if not path.is_file():
        raise ConfigError(missing)
    return path


def _layers(path: str | Path | None) -> list[Path]:
    layers = _optional_layers()
    env_path = os.environ.get("FORUMWIKI_CONFIG")
    if env_path:
        layers.append(
            _required_layer(
                env_path, f"FORUMWIKI_CONFIG points to non-existent file: {env_path}"
            )
        )
    if path is not None:
        layers.append(_required_layer(path, f"Config file not found: {path}"))
    return layers


def _parse(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _merge_into(target: dict[str, Any], layer: dict[str, Any]) -> None:
    """Fold *layer* into *target* in place; nested tables merge key by key."""
    for key, value in layer.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(current, value)
        elif isinstance(value, dict):
            target[key] = {}
            _merge_into(target[key], value)
        else:
            target[key] = value


def _env_layer() -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            layer.setdefault(section, {})[key] = value
    return layer


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ForumWikiConfig:
    """Load and validate configuration.

    Args:
        path: Explicit config file, merged above every discovered file.
        overrides: Nested dict merged last (highest priority).

    Raises:
        ConfigError: A required file is missing, a file is not valid
            TOML, or the merged result fails validation.
    """
    merged: dict[str, Any] = {}
    for layer_path in _layers(path):
        _merge_into(merged, _parse(layer_path))
    _merge_into(merged, _env_layer())
    if overrides:
        _merge_into(merged, overrides)

    try:
        return ForumWikiConfig.model_validate(merged)
    except ValidationError as e:
        msg = f"Configuration validation failed: {e}"
        raise ConfigError(msg) from e
