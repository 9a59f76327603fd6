"""
Persistence layer for telemetry archive.

Provides DuckDB-based storage for live position snapshots and the
historical archive of trades, life events and item events.
"""

from .archive_store import ArchiveStore
from .models import (
    ArchivedGenericEventRecord,
    ArchivedLifeEventRecord,
    ArchivedTradeRecord,
    ArchiveRunRecord,
    ArchiveRunStatus,
    GenericEventType,
    LifeEventType,
    PositionRecord,
    TradeType,
)
from .retention import RetentionManager
from .snapshot_store import SnapshotStore, TrackedEntity

__all__ = [
    "ArchiveRunRecord",
    "ArchiveRunStatus",
    "ArchiveStore",
    "ArchivedGenericEventRecord",
    "ArchivedLifeEventRecord",
    "ArchivedTradeRecord",
    "GenericEventType",
    "LifeEventType",
    "PositionRecord",
    "RetentionManager",
    "SnapshotStore",
    "TrackedEntity",
    "TradeType",
]
