"""
Pydantic Models for Persistence Layer

These models are the single source of truth for both database schemas.
All DDL generation is derived from these models.

SnapshotStore owns ``PositionRecord``; ArchiveStore owns the three archived
record families plus the ``ArchiveRunRecord`` ledger.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Largest value a BIGINT column holds
INT64_MAX = 2**63 - 1

# ============================================================================
# Enums
# ============================================================================


class TradeType(str, Enum):
    """Trade direction, seen from the entity's side."""

    PURCHASE = "purchase"
    SALE = "sale"


class LifeEventType(str, Enum):
    """Lifecycle transitions recorded in life-event logs."""

    SPAWN = "spawn"
    RESPAWN = "respawn"
    DEATH = "death"
    CONNECTION = "connection"
    DISCONNECTION = "disconnection"


class GenericEventType(str, Enum):
    """Inventory-style item events."""

    PICKUP = "pickup"
    DROP = "drop"
    CRAFT = "craft"
    CONSUME = "consume"
    DESTROY = "destroy"


class ArchiveRunStatus(str, Enum):
    """Outcome recorded in the archive run ledger."""

    COMPLETED = "completed"
    ERROR = "error"


# ============================================================================
# Position Record (SnapshotStore)
# ============================================================================


class PositionRecord(BaseModel):
    """One observation of one tracked entity.

    ``ingested_at`` is assigned by the store at insert time and is what
    ordering, range queries and pruning use. ``recorded_at`` is the
    producer's own observation time and is kept verbatim.
    """

    model_config = ConfigDict(  # type: ignore[typeddict-unknown-key]
        table_name="positions",
        primary_key=["id"],
        indexes=[
            ("idx_positions_entity_id", ["entity_id"]),
            ("idx_positions_ingested_at", ["ingested_at"]),
            ("idx_positions_entity_time", ["entity_id", "ingested_at"]),
        ],
    )

    id: int | None = Field(None, description="Auto-increment primary key")

    # Identity
    entity_id: str = Field(..., description="Tracked entity identifier", min_length=1)
    entity_name: str | None = Field(None, description="Display name at observation time")

    # Location
    pos_x: float = Field(..., description="World X coordinate")
    pos_y: float = Field(..., description="World Y (height) coordinate")
    pos_z: float = Field(..., description="World Z coordinate")

    # Vital gauges
    health: float | None = Field(None, description="Health gauge")
    blood: float | None = Field(None, description="Blood gauge")
    is_alive: bool = Field(True, description="Entity alive at observation")
    is_unconscious: bool = Field(False, description="Entity unconscious at observation")

    # Timing
    recorded_at: str = Field(..., description="Producer observation time (ISO-8601)")
    ingested_at: int = Field(0, description="Store ingestion time (epoch seconds)", ge=0)


# ============================================================================
# Archived Families (ArchiveStore)
# ============================================================================


class ArchivedTradeRecord(BaseModel):
    """One purchase or sale migrated from a per-entity trade log."""

    model_config = ConfigDict(  # type: ignore[typeddict-unknown-key]
        table_name="archived_trades",
        primary_key=["id"],
        indexes=[
            ("idx_trades_entity_id", ["entity_id"]),
            ("idx_trades_archive_date", ["archive_date"]),
            ("idx_trades_event_timestamp", ["event_timestamp"]),
            ("idx_trades_item_class", ["item_class"]),
        ],
        use_enum_values=True,
    )

    id: int | None = Field(None, description="Auto-increment primary key")
    entity_id: str = Field(..., description="Trading entity identifier", min_length=1)
    event_timestamp: datetime = Field(..., description="Original event time (UTC)")
    trade_type: TradeType = Field(..., description="purchase or sale")

    # Counterparty
    trader_name: str | None = Field(None, description="Trader display name")
    zone_name: str | None = Field(None, description="Market zone name")

    # Item
    item_class: str = Field(..., description="Item class identifier", min_length=1)
    item_display: str | None = Field(None, description="Item display label")
    quantity: int = Field(1, description="Units traded", ge=0, le=INT64_MAX)
    price: int = Field(0, description="Price per trade", ge=0, le=INT64_MAX)
    currency: str = Field("Roubles", description="Currency label")

    # Archive bookkeeping
    archived_at: datetime = Field(..., description="When the row was archived (UTC)")
    archive_date: str = Field(..., description="Archive batch date (YYYY-MM-DD)")


class ArchivedLifeEventRecord(BaseModel):
    """One lifecycle transition (spawn, death, connection, ...)."""

    model_config = ConfigDict(  # type: ignore[typeddict-unknown-key]
        table_name="archived_life_events",
        primary_key=["id"],
        indexes=[
            ("idx_life_entity_id", ["entity_id"]),
            ("idx_life_archive_date", ["archive_date"]),
            ("idx_life_event_type", ["event_type"]),
        ],
        use_enum_values=True,
    )

    id: int | None = Field(None, description="Auto-increment primary key")
    entity_id: str = Field(..., description="Entity identifier", min_length=1)
    event_timestamp: datetime = Field(..., description="Original event time (UTC)")
    event_type: LifeEventType = Field(..., description="Lifecycle event kind")
    data: str | None = Field(None, description="Original entry as JSON")
    archived_at: datetime = Field(..., description="When the row was archived (UTC)")
    archive_date: str = Field(..., description="Archive batch date (YYYY-MM-DD)")


class ArchivedGenericEventRecord(BaseModel):
    """One inventory-style event (pickup, drop, craft, ...)."""

    model_config = ConfigDict(  # type: ignore[typeddict-unknown-key]
        table_name="archived_events",
        primary_key=["id"],
        indexes=[
            ("idx_events_entity_id", ["entity_id"]),
            ("idx_events_archive_date", ["archive_date"]),
            ("idx_events_event_type", ["event_type"]),
        ],
        use_enum_values=True,
    )

    id: int | None = Field(None, description="Auto-increment primary key")
    entity_id: str = Field(..., description="Entity identifier", min_length=1)
    event_timestamp: datetime = Field(..., description="Original event time (UTC)")
    event_type: GenericEventType = Field(..., description="Item event kind")

    # Item (optional)
    item_class: str | None = Field(None, description="Item class identifier")
    item_display: str | None = Field(None, description="Item display label")
    quantity: int | None = Field(None, description="Item quantity", ge=0, le=INT64_MAX)

    # Position (optional)
    position_x: float | None = Field(None, description="World X where it happened")
    position_y: float | None = Field(None, description="World Y where it happened")
    position_z: float | None = Field(None, description="World Z where it happened")

    data: str | None = Field(None, description="Original entry as JSON")
    archived_at: datetime = Field(..., description="When the row was archived (UTC)")
    archive_date: str = Field(..., description="Archive batch date (YYYY-MM-DD)")


# ============================================================================
# Archive Run Ledger
# ============================================================================


class ArchiveRunRecord(BaseModel):
    """One execution of the ingestion pipeline.

    Append-only: rows are inserted once at the end of a run and never
    updated.
    """

    model_config = ConfigDict(  # type: ignore[typeddict-unknown-key]
        table_name="archive_runs",
        primary_key=["id"],
        indexes=[
            ("idx_runs_run_date", ["run_date"]),
            ("idx_runs_created_at", ["created_at"]),
        ],
        use_enum_values=True,
    )

    id: int | None = Field(None, description="Auto-increment primary key")
    run_date: str = Field(..., description="Archive date of the run (YYYY-MM-DD)")
    trades_archived: int = Field(0, description="Trade rows committed", ge=0, le=INT64_MAX)
    life_events_archived: int = Field(0, description="Life-event rows committed", ge=0, le=INT64_MAX)
    events_archived: int = Field(0, description="Generic-event rows committed", ge=0, le=INT64_MAX)
    files_cleared: int = Field(0, description="Source files deleted", ge=0, le=INT64_MAX)
    duration_ms: int = Field(0, description="Wall-clock duration", ge=0, le=INT64_MAX)
    status: ArchiveRunStatus = Field(..., description="completed or error")
    error: str | None = Field(None, description="Causing error message")
    created_at: datetime = Field(..., description="When the row was written (UTC)")


SNAPSHOT_MODELS: list[type[BaseModel]] = [PositionRecord]

ARCHIVE_MODELS: list[type[BaseModel]] = [
    ArchivedTradeRecord,
    ArchivedLifeEventRecord,
    ArchivedGenericEventRecord,
    ArchiveRunRecord,
]
