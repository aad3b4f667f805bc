"""
Centralized settings for hashcol.

All fields can be set through ``HASHCOL_*`` environment variables (e.g.
``HASHCOL_INSECURE_ALGORITHM_POLICY=error``) or a ``.env`` file.  The
engine functions take explicit arguments where behaviour is configurable and
fall back to :func:`get_settings` only when the caller passes nothing.

Tags:
    hashcol, configuration, settings, pydantic, caching
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InsecurePolicy(str, Enum):
    """What to do when a legacy (insecure) algorithm is declared."""

    ALLOW = "allow"
    WARN = "warn"
    ERROR = "error"


class HashColSettings(BaseSettings):
    """hashcol configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HASHCOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool | None = Field(
        default=None, description="JSON log output (None = auto, JSON when not a tty)"
    )

    # ── Engine ───────────────────────────────────────────────────
    insecure_algorithm_policy: InsecurePolicy = Field(
        default=InsecurePolicy.WARN,
        description="allow | warn | error for MD2/MD4/MD5/SHA/SHA1",
    )
    dialect: str = Field(default="mssql", description="SQL dialect used for rendering")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {value}")
        return value


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, HashColSettings] = {}


def get_settings(*, _force_reload: bool = False) -> HashColSettings:
    """Load, validate, and cache a :class:`HashColSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = HashColSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "HashColSettings",
    "InsecurePolicy",
    "get_settings",
    "clear_settings_cache",
]
