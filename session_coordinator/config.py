"""
Configuration management for the session coordinator.

Config lives at ~/.session-coordinator/config.json. Environment variables
(optionally from a project .env) override file values.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".session-coordinator" / "config.json"

DEFAULT_ACTIVE_SESSION_TIMEOUT_MS = 2 * 60 * 1000

ENV_ACTIVE_TIMEOUT = "SESSION_COORDINATOR_ACTIVE_TIMEOUT_MS"
ENV_CLEANUP_INTERVAL = "SESSION_COORDINATOR_CLEANUP_INTERVAL_MS"
ENV_DATABASE = "SESSION_COORDINATOR_DB"

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


def _filter_dataclass_fields(data: dict[str, Any], cls: type) -> dict[str, Any]:
    """Filter dict to only include fields that exist in the dataclass."""
    valid_fields = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_fields}


@dataclass
class ActivityConfig:
    """
    Configuration for the activity window.

    A session counts as active while less than active_session_timeout_ms
    has elapsed since its last activity event.
    """

    active_session_timeout_ms: int = DEFAULT_ACTIVE_SESSION_TIMEOUT_MS
    cleanup_interval_ms: int = 30_000

    def __post_init__(self):
        for name in ("active_session_timeout_ms", "cleanup_interval_ms"):
            value = getattr(self, name)
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or not math.isfinite(value)
                or value <= 0
            ):
                raise ValueError(f"{name} must be a positive finite number, got {value!r}")


@dataclass
class CoordinatorConfig:
    """Complete coordinator configuration."""

    activity: ActivityConfig = field(default_factory=ActivityConfig)
    database_path: str = "~/.session-coordinator/sessions.db"
    processing_log_path: str = "~/.session-coordinator/processed.jsonl"

    @classmethod
    def load(cls, path: Path | None = None) -> "CoordinatorConfig":
        """
        Load config from file with defaults, then apply environment overrides.

        Args:
            path: Optional config file path. Defaults to CONFIG_PATH

        Returns:
            CoordinatorConfig with user settings merged over defaults
        """
        if path is None:
            path = CONFIG_PATH

        data: dict[str, Any] = {}
        if path.exists():
            try:
                data = json.loads(path.read_text())
            except (json.JSONDecodeError, OSError):
                # Use defaults on error
                data = {}
        if not isinstance(data, dict):
            data = {}

        raw_activity = data.get("activity", {})
        if not isinstance(raw_activity, dict):
            logger.warning(f"Ignoring non-object 'activity' in {path}, using defaults")
            raw_activity = {}

        activity_data = _filter_dataclass_fields(raw_activity, ActivityConfig)
        try:
            activity = ActivityConfig(**activity_data)
        except ValueError as e:
            logger.warning(f"Invalid 'activity' settings in {path}, using defaults: {e}")
            activity = ActivityConfig()

        top_level = _filter_dataclass_fields(data, cls)
        top_level.pop("activity", None)

        config = cls(activity=activity, **top_level)
        config.apply_env()
        return config

    def apply_env(self) -> None:
        """
        Apply environment variable overrides in place.

        Unparseable or out-of-range values are logged and ignored.
        """
        overrides: dict[str, int] = {}
        for env_name, key in (
            (ENV_ACTIVE_TIMEOUT, "active_session_timeout_ms"),
            (ENV_CLEANUP_INTERVAL, "cleanup_interval_ms"),
        ):
            raw = os.getenv(env_name)
            if raw is None:
                continue
            try:
                overrides[key] = int(raw)
            except ValueError:
                logger.warning(f"Ignoring {env_name}={raw!r}: not an integer")

        for key, value in overrides.items():
            try:
                self.activity = replace(self.activity, **{key: value})
            except ValueError as e:
                logger.warning(f"Ignoring {key} override from environment: {e}")

        database = os.getenv(ENV_DATABASE)
        if database:
            self.database_path = database

    def save(self, path: Path | None = None) -> None:
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(
                {
                    "activity": self.activity.__dict__,
                    "database_path": self.database_path,
                    "processing_log_path": self.processing_log_path,
                },
                f,
                indent=2,
            )

    def resolved_database_path(self) -> Path:
        return Path(self.database_path).expanduser()

    def resolved_processing_log_path(self) -> Path:
        return Path(self.processing_log_path).expanduser()
