"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``  committed static defaults
  2. ``config/local.toml``    optional local overrides (gitignored)
  3. ``.env``                 local secrets (Petfinder credentials)
  4. Environment variables    ``PAWMATCH_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``

The CLI and every service constructor receive an ``AppConfig`` (or one of
its sections); nothing reads environment variables directly.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# ── Sub-config models ─────────────────────────────────────────────────────────


class DatabaseConfig(BaseModel):
    """SQLite document store settings."""

    model_config = ConfigDict(frozen=True)

    db_path: str = "data/db/pawmatch.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000


class MatchingConfig(BaseModel):
    """Recommendation policy knobs."""

    model_config = ConfigDict(frozen=True)

    recommendation_limit: int = 8
    min_match_percent: int = 25

    @field_validator("recommendation_limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"recommendation_limit must be >= 0, got {v}.")
        return v

    @field_validator("min_match_percent")
    @classmethod
    def validate_floor(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError(f"min_match_percent must be in [0, 100], got {v}.")
        return v


class FeedsConfig(BaseModel):
    """Live feed sizes per role."""

    model_config = ConfigDict(frozen=True)

    adopter_limit: int = 50
    staff_limit: int = 25
    recent_applications_limit: int = 8

    @field_validator("adopter_limit", "staff_limit", "recent_applications_limit")
    @classmethod
    def validate_non_negative(cls, v: int, info) -> int:
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got {v}.")
        return v


class MetadataConfig(BaseModel):
    """Petfinder breed/type metadata lookup settings.

    Credentials are never committed; they come from ``.env`` through the
    ``PAWMATCH_PETFINDER_CLIENT_ID`` / ``..._SECRET`` overrides.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://api.petfinder.com/v2"
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    cache_ttl_days: int = 30
    cache_file: str = "data/cache/petfinder.json"
    timeout_seconds: float = 15.0

    @field_validator("cache_ttl_days")
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"cache_ttl_days must be positive, got {v}.")
        return v


class NotificationsConfig(BaseModel):
    """Best-effort system message delivery."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = 2
    base_delay_seconds: float = 0.5


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = "data/logs/pawmatch.log"
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration."""

    model_config = ConfigDict(frozen=True)

    database: DatabaseConfig = DatabaseConfig()
    matching: MatchingConfig = MatchingConfig()
    feeds: FeedsConfig = FeedsConfig()
    metadata: MetadataConfig = MetadataConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    logging: LoggingConfig = LoggingConfig()
    debug: bool = False


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the directory holding pyproject.toml."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit TOML file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Validated ``AppConfig``.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        pydantic.ValidationError: If merged values fail validation.
    """
    root = _find_project_root()
    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {config_path}\n"
            "Create config/default.toml or pass --config."
        )

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            raw = _deep_merge(raw, tomllib.load(f))

    raw = _apply_env_overrides(raw)
    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply PAWMATCH_* env vars to the raw config dict.

    Supported overrides:
      PAWMATCH_DB_PATH                  → raw["database"]["db_path"]
      PAWMATCH_LOG_LEVEL                → raw["logging"]["level"]
      PAWMATCH_DEBUG                    → raw["debug"]
      PAWMATCH_PETFINDER_CLIENT_ID      → raw["metadata"]["client_id"]
      PAWMATCH_PETFINDER_CLIENT_SECRET  → raw["metadata"]["client_secret"]
    """
    if db_path := os.environ.get("PAWMATCH_DB_PATH"):
        raw.setdefault("database", {})["db_path"] = db_path

    if log_level := os.environ.get("PAWMATCH_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if debug := os.environ.get("PAWMATCH_DEBUG"):
        raw["debug"] = debug.lower() in ("1", "true", "yes")

    if client_id := os.environ.get("PAWMATCH_PETFINDER_CLIENT_ID"):
        raw.setdefault("metadata", {})["client_id"] = client_id

    if client_secret := os.environ.get("PAWMATCH_PETFINDER_CLIENT_SECRET"):
        raw.setdefault("metadata", {})["client_secret"] = client_secret

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map the raw TOML dict onto ``AppConfig``."""
    project = raw.pop("project", {})

    return AppConfig(
        database=DatabaseConfig(**raw.get("database", {})),
        matching=MatchingConfig(**raw.get("matching", {})),
        feeds=FeedsConfig(**raw.get("feeds", {})),
        metadata=MetadataConfig(**raw.get("metadata", {})),
        notifications=NotificationsConfig(**raw.get("notifications", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
        debug=raw.get("debug", project.get("debug", False)),
    )
