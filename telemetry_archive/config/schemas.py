"""Pydantic schemas for configuration validation."""
from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from ..errors import ConfigurationError

# ============================================================================
# Environment Variables
# ============================================================================

# field name -> environment variable
ENV_VARS = {
    "base_path": "SST_PATH",
    "trades_dir": "TRADES_PATH",
    "life_events_dir": "LIFE_EVENTS_PATH",
    "events_dir": "EVENTS_PATH",
    "online_players_file": "ONLINE_PLAYERS_PATH",
    "snapshot_db_path": "DATABASE_PATH",
    "archive_db_path": "ARCHIVE_DATABASE_PATH",
    "snapshot_migrations_dir": "SNAPSHOT_MIGRATIONS_PATH",
    "archive_migrations_dir": "ARCHIVE_MIGRATIONS_PATH",
    "archive_hour": "ARCHIVE_HOUR",
    "archive_minute": "ARCHIVE_MINUTE",
    "archive_retention_days": "ARCHIVE_RETENTION_DAYS",
    "position_retention_days": "POSITION_RETENTION_DAYS",
    "clear_files": "ARCHIVE_CLEAR_FILES",
}

# Interval is given in milliseconds in the environment
POSITION_INTERVAL_ENV_VAR = "POSITION_TRACKING_INTERVAL"


# ============================================================================
# Telemetry Configuration
# ============================================================================


class TelemetryConfig(BaseModel):
    """Runtime configuration for the stores, the pipeline and the scheduler.

    Source locations default to subdirectories of ``base_path``, the
    producer's profile directory.
    """

    # Source locations
    base_path: Path = Field(Path("./profiles/SST"), description="Producer profile directory")
    trades_dir: Path | None = Field(None, description="Per-entity trade logs")
    life_events_dir: Path | None = Field(None, description="Per-entity life-event logs")
    events_dir: Path | None = Field(None, description="Per-entity item-event logs")
    online_players_file: Path | None = Field(None, description="Online players snapshot")

    # Databases
    snapshot_db_path: Path | None = Field(None, description="Position snapshot DuckDB file")
    archive_db_path: Path | None = Field(None, description="Archive DuckDB file")
    snapshot_migrations_dir: Path | None = Field(None, description="Snapshot store .sql migrations")
    archive_migrations_dir: Path | None = Field(None, description="Archive store .sql migrations")

    # Scheduling
    archive_hour: int = Field(4, description="Daily archive hour (UTC)", ge=0, le=23)
    archive_minute: int = Field(0, description="Daily archive minute", ge=0, le=59)
    position_tracking_interval_seconds: float = Field(
        30, description="Seconds between position captures", gt=0
    )

    # Retention
    archive_retention_days: int = Field(90, description="Days of archive history to keep", gt=0)
    position_retention_days: int = Field(7, description="Days of position history to keep", gt=0)
    clear_files: bool = Field(True, description="Delete source files after archiving")

    @field_validator("base_path", mode="before")
    @classmethod
    def base_path_not_empty(cls, v: Any) -> Any:
        """Validate base_path is a real path."""
        if v is None or not str(v).strip():
            raise ValueError("base_path must not be empty")
        return v

    @model_validator(mode="after")
    def fill_default_paths(self) -> TelemetryConfig:
        """Derive unset locations from base_path."""
        base = self.base_path
        if self.trades_dir is None:
            self.trades_dir = base / "trades"
        if self.life_events_dir is None:
            self.life_events_dir = base / "life_events"
        if self.events_dir is None:
            self.events_dir = base / "events"
        if self.online_players_file is None:
            self.online_players_file = base / "api" / "online_players.json"
        if self.snapshot_db_path is None:
            self.snapshot_db_path = base / "data" / "sst_tracking.duckdb"
        if self.archive_db_path is None:
            self.archive_db_path = base / "data" / "archive.duckdb"
        if self.snapshot_migrations_dir is None:
            self.snapshot_migrations_dir = base / "migrations" / "snapshot"
        if self.archive_migrations_dir is None:
            self.archive_migrations_dir = base / "migrations" / "archive"
        return self

    @classmethod
    def from_dict(cls, config_dict: dict) -> TelemetryConfig:
        """Create config from dictionary."""
        return cls.model_validate(config_dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TelemetryConfig:
        """Create config from environment variables.

        Unset variables fall back to the field defaults.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        environ = os.environ if environ is None else environ

        values: dict[str, Any] = {}
        for field_name, env_var in ENV_VARS.items():
            raw = environ.get(env_var)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()

        interval_ms = environ.get(POSITION_INTERVAL_ENV_VAR)
        if interval_ms is not None and interval_ms.strip():
            try:
                values["position_tracking_interval_seconds"] = float(interval_ms) / 1000
            except ValueError:
                raise ConfigurationError(
                    f"{POSITION_INTERVAL_ENV_VAR} must be a number of milliseconds, got {interval_ms!r}"
                ) from None

        try:
            return cls.model_validate(values)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment configuration: {e}") from e
