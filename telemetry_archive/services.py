"""Service wiring.

Builds the stores and the components that use them from one
``TelemetryConfig``. Each store is opened once, lazily, and shared by
every component the container hands out.
"""

from __future__ import annotations

import logging

from .config import TelemetryConfig
from .ingest import IngestionPipeline, PositionTracker, default_sources
from .persistence import ArchiveStore, RetentionManager, SnapshotStore
from .scheduler import DailySchedule, IntervalSchedule, Scheduler

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Container for the stores and the components built on them.

    Usage:
        with ServiceContainer(config) as services:
            services.pipeline.run_archive()
    """

    def __init__(self, config: TelemetryConfig) -> None:
        self.config = config
        self._snapshot_store: SnapshotStore | None = None
        self._archive_store: ArchiveStore | None = None
        self._pipeline: IngestionPipeline | None = None
        self._tracker: PositionTracker | None = None
        self._retention: RetentionManager | None = None

    @property
    def snapshot_store(self) -> SnapshotStore:
        """Get the snapshot store, opening it if needed."""
        if self._snapshot_store is None:
            self._snapshot_store = SnapshotStore(
                self.config.snapshot_db_path, migrations_dir=self.config.snapshot_migrations_dir
            )
        return self._snapshot_store

    @property
    def archive_store(self) -> ArchiveStore:
        """Get the archive store, opening it if needed."""
        if self._archive_store is None:
            self._archive_store = ArchiveStore(
                self.config.archive_db_path, migrations_dir=self.config.archive_migrations_dir
            )
        return self._archive_store

    @property
    def pipeline(self) -> IngestionPipeline:
        if self._pipeline is None:
            sources = default_sources(
                self.config.trades_dir,
                self.config.life_events_dir,
                self.config.events_dir,
            )
            self._pipeline = IngestionPipeline(self.archive_store, sources)
        return self._pipeline

    @property
    def tracker(self) -> PositionTracker:
        if self._tracker is None:
            self._tracker = PositionTracker(self.snapshot_store, self.config.online_players_file)
        return self._tracker

    @property
    def retention(self) -> RetentionManager:
        if self._retention is None:
            self._retention = RetentionManager(self.archive_store, self.snapshot_store)
        return self._retention

    def archive_job(self) -> None:
        """Daily job: archive producer logs, then prune both stores."""
        self.pipeline.run_archive(clear_files=self.config.clear_files)
        self.retention.prune_old_data(self.config.archive_retention_days)
        self.retention.prune_positions(self.config.position_retention_days)

    def build_scheduler(self) -> Scheduler:
        """Scheduler with the daily archive job and periodic position capture."""
        scheduler = Scheduler()
        scheduler.add_job(
            "archive",
            DailySchedule(self.config.archive_hour, self.config.archive_minute),
            self.archive_job,
        )
        scheduler.add_job(
            "positions",
            IntervalSchedule(self.config.position_tracking_interval_seconds),
            self.tracker.capture,
            run_immediately=True,
        )
        return scheduler

    def close(self) -> None:
        """Close any stores that were opened."""
        if self._snapshot_store is not None:
            self._snapshot_store.close()
            self._snapshot_store = None
        if self._archive_store is not None:
            self._archive_store.close()
            self._archive_store = None
        self._pipeline = None
        self._tracker = None
        self._retention = None

    def __enter__(self) -> ServiceContainer:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
