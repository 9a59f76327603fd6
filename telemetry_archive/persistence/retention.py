"""
Retention Manager

Age-based pruning for both stores. Archive pruning is followed by a
checkpoint so DuckDB can reclaim the freed blocks. Failures propagate to
the caller and are never ledgered.
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from .archive_store import ArchiveStore
from .snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


class RetentionManager:
    """Deletes archived and live records older than a horizon.

    Usage:
        retention = RetentionManager(archive_store, snapshot_store)
        deleted = retention.prune_old_data(days_to_keep=90)
        # {"trades": 12, "life_events": 3, "events": 40}
    """

    def __init__(
        self,
        archive_store: ArchiveStore,
        snapshot_store: SnapshotStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.archive_store = archive_store
        self.snapshot_store = snapshot_store
        self._clock = clock

    def prune_old_data(self, days_to_keep: int = 90) -> dict[str, int]:
        """Delete archived rows whose event time is older than now - days.

        Returns:
            Deleted row count per family (trades, life_events, events)

        Raises:
            ValueError: If days_to_keep is negative
        """
        if days_to_keep < 0:
            raise ValueError(f"days_to_keep must be >= 0, got {days_to_keep}")

        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc).replace(tzinfo=None)
        cutoff = now - timedelta(days=days_to_keep)

        deleted = self.archive_store.delete_before(cutoff)
        self.archive_store.compact()

        logger.info(
            "Pruned archive older than %s: %d trades, %d life events, %d events",
            cutoff.isoformat(),
            deleted["trades"],
            deleted["life_events"],
            deleted["events"],
        )
        return deleted

    def prune_positions(self, days_to_keep: int = 7) -> int:
        """Delete position records ingested more than ``days_to_keep`` days ago."""
        if self.snapshot_store is None:
            raise ValueError("RetentionManager has no snapshot store")
        if days_to_keep < 0:
            raise ValueError(f"days_to_keep must be >= 0, got {days_to_keep}")

        cutoff_ts = int(self._clock()) - days_to_keep * SECONDS_PER_DAY
        return self.snapshot_store.delete_older_than(cutoff_ts)
