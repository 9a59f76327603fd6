"""
Snapshot Store

Durable, queryable log of entity positions backed by its own DuckDB file.

Records are append-only. Every batch is stamped with one ingestion time
(epoch seconds) that never goes backwards for a given store instance, and
that ingestion time is what ordering, range queries and pruning use.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from .connection import IN_MEMORY, DatabaseManager
from .models import SNAPSHOT_MODELS, PositionRecord
from .writers import write_positions_batch

logger = logging.getLogger(__name__)

POSITION_COLUMNS = ", ".join(PositionRecord.model_fields)


@dataclass(frozen=True)
class TrackedEntity:
    """Summary of one entity seen by the store."""

    entity_id: str
    entity_name: str | None
    first_seen: int
    last_seen: int
    record_count: int


class SnapshotStore:
    """Append-only position records for tracked entities.

    Usage:
        store = SnapshotStore("data/sst_tracking.duckdb")
        store.record_batch([PositionRecord(...), ...])
        latest = store.latest_per_entity()
    """

    def __init__(
        self,
        db_path: str | Path = IN_MEMORY,
        migrations_dir: Path | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._db = DatabaseManager(db_path, SNAPSHOT_MODELS, migrations_dir, name="snapshot")
        self._db.setup()
        self._clock = clock
        self._ingest_lock = threading.Lock()

        with self._db.cursor() as conn:
            row = conn.execute("SELECT MAX(ingested_at) FROM positions").fetchone()
        self._last_ingested_at = row[0] or 0

    @property
    def db_path(self) -> Path | None:
        return self._db.db_path

    @property
    def database(self) -> DatabaseManager:
        return self._db

    def _next_ingested_at(self) -> int:
        with self._ingest_lock:
            now = max(int(self._clock()), self._last_ingested_at)
            self._last_ingested_at = now
            return now

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_batch(self, records: list[PositionRecord]) -> int:
        """Insert all records in a single transaction.

        No deduplication: two records for the same entity and instant both
        persist. Write failures propagate to the caller.

        Returns:
            Number of records written
        """
        if not records:
            return 0

        ingested_at = self._next_ingested_at()
        batch = [record.model_copy(update={"ingested_at": ingested_at}) for record in records]

        with self._db.cursor() as conn:
            conn.begin()
            try:
                count = write_positions_batch(conn, batch)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        logger.debug("Recorded %d positions at %d", count, ingested_at)
        return count

    def record_position(self, record: PositionRecord) -> int:
        """Insert a single observation."""
        return self.record_batch([record])

    def delete_older_than(self, cutoff_ts: int) -> int:
        """Remove records ingested strictly before ``cutoff_ts``.

        Returns:
            Number of records removed
        """
        with self._db.cursor() as conn:
            row = conn.execute(
                "DELETE FROM positions WHERE ingested_at < ?", [int(cutoff_ts)]
            ).fetchone()

        deleted = row[0] if row else 0
        logger.info("Deleted %d positions older than %d", deleted, cutoff_ts)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select(self, query: str, params: list | None = None) -> list[PositionRecord]:
        with self._db.cursor() as conn:
            df = conn.execute(query, params or []).pl()
        return [PositionRecord(**row) for row in df.to_dicts()]

    def query_by_entity(self, entity_id: str, limit: int = 100) -> list[PositionRecord]:
        """Return the ``limit`` most recent records for an entity, newest first."""
        return self._select(
            f"""
            SELECT {POSITION_COLUMNS} FROM positions
            WHERE entity_id = ?
            ORDER BY ingested_at DESC, id DESC
            LIMIT ?
            """,
            [entity_id, max(int(limit), 0)],
        )

    def query_range(self, entity_id: str, start_ts: int, end_ts: int) -> list[PositionRecord]:
        """Return records in the inclusive window [start_ts, end_ts], oldest first."""
        return self._select(
            f"""
            SELECT {POSITION_COLUMNS} FROM positions
            WHERE entity_id = ? AND ingested_at >= ? AND ingested_at <= ?
            ORDER BY ingested_at ASC, id ASC
            """,
            [entity_id, int(start_ts), int(end_ts)],
        )

    def latest_per_entity(self) -> list[PositionRecord]:
        """Return one record per entity (its most recent), newest overall first.

        Ties on ``ingested_at`` within an entity go to the latest insert.
        """
        return self._select(f"""
            SELECT {POSITION_COLUMNS} FROM positions
            QUALIFY ROW_NUMBER() OVER (
                PARTITION BY entity_id ORDER BY ingested_at DESC, id DESC
            ) = 1
            ORDER BY ingested_at DESC, id DESC
        """)

    def distinct_entities(self) -> list[TrackedEntity]:
        """Return every entity observed, most recently seen first."""
        with self._db.cursor() as conn:
            rows = conn.execute("""
                SELECT
                    entity_id,
                    arg_max(entity_name, id) AS entity_name,
                    MIN(ingested_at) AS first_seen,
                    MAX(ingested_at) AS last_seen,
                    COUNT(*) AS record_count
                FROM positions
                GROUP BY entity_id
                ORDER BY last_seen DESC, entity_id
            """).fetchall()

        return [TrackedEntity(*row) for row in rows]

    def get_stats(self) -> dict:
        """Total records, unique entities and the ingestion time span."""
        with self._db.cursor() as conn:
            total, entities, oldest, newest = conn.execute("""
                SELECT COUNT(*), COUNT(DISTINCT entity_id), MIN(ingested_at), MAX(ingested_at)
                FROM positions
            """).fetchone()

        return {
            "total_records": total,
            "unique_entities": entities,
            "oldest_record": oldest,
            "newest_record": newest,
        }

    def close(self) -> None:
        self._db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
