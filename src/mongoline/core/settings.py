"""Environment-driven settings for mongoline.

``MongoSettings`` supplies the connection URL and driver timeouts used when a
collection definition carries no explicit ``config``, and by the CLI when no
``--url`` is given.

All fields can be set via ``MONGOLINE_*`` environment variables (e.g.
``MONGOLINE_URL=mongodb://db:27017/app``) or a ``.env`` file.

Examples:
    >>> from mongoline.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.to_config().database
    'mongoline'

Tags:
    settings, configuration, pydantic, environment, mongoline
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from mongoline.adapter.types import MongoConfig


class MongoSettings(BaseSettings):
    """mongoline configuration.

    Fields
    ──────
    url                          : Default connection URL
    server_selection_timeout_ms  : Driver ``serverSelectionTimeoutMS``
    connect_timeout_ms           : Driver ``connectTimeoutMS``
    log_level                    : Structlog log level
    log_json                     : Render logs as JSON instead of console
    """

    model_config = SettingsConfigDict(
        env_prefix="MONGOLINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection ───────────────────────────────────────────────
    url: str = Field(default="mongodb://localhost:27017/mongoline")
    server_selection_timeout_ms: int = Field(default=5000, ge=0)
    connect_timeout_ms: int = Field(default=10000, ge=0)

    # ── Observability ────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool | None = Field(default=None)

    def to_config(self) -> MongoConfig:
        """Build a :class:`MongoConfig` from the URL and timeout settings."""
        from mongoline.adapter.types import parse_url

        config = parse_url(self.url)
        config.options.setdefault("serverSelectionTimeoutMS", self.server_selection_timeout_ms)
        config.options.setdefault("connectTimeoutMS", self.connect_timeout_ms)
        return config


_settings_cache: dict[str, MongoSettings] = {}


def get_settings(*, _force_reload: bool = False) -> MongoSettings:
    """Load, validate, and cache a :class:`MongoSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]

    settings = MongoSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "MongoSettings",
    "get_settings",
    "clear_settings_cache",
]
