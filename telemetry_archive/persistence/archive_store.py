"""
Archive Store

Historical store for the three archived record families plus the run
ledger, kept in a DuckDB file separate from the snapshot store.

Each family batch is inserted inside its own transaction: a failure rolls
back that family's whole batch and nothing else.
"""

import logging
from datetime import datetime
from pathlib import Path

import duckdb

from .connection import IN_MEMORY, DatabaseManager
from .models import (
    ARCHIVE_MODELS,
    ArchivedGenericEventRecord,
    ArchivedLifeEventRecord,
    ArchivedTradeRecord,
    ArchiveRunRecord,
)
from .writers import (
    write_archive_run,
    write_generic_events_batch,
    write_life_events_batch,
    write_trades_batch,
)

logger = logging.getLogger(__name__)

# family name -> table
FAMILY_TABLES = {
    "trades": "archived_trades",
    "life_events": "archived_life_events",
    "events": "archived_events",
}


class ArchiveStore:
    """Schema and insert/select primitives for the archive database.

    Usage:
        store = ArchiveStore("data/archive.duckdb")
        store.insert_trades(records)
        with store.cursor() as conn:
            conn.execute("SELECT COUNT(*) FROM archived_trades").fetchone()
    """

    def __init__(self, db_path: str | Path = IN_MEMORY, migrations_dir: Path | None = None):
        self._db = DatabaseManager(db_path, ARCHIVE_MODELS, migrations_dir, name="archive")
        self._db.setup()

    @property
    def db_path(self) -> Path | None:
        return self._db.db_path

    @property
    def database(self) -> DatabaseManager:
        return self._db

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Per-operation cursor for read queries."""
        return self._db.cursor()

    def _insert_family(self, writer, records: list) -> int:
        if not records:
            return 0

        with self._db.cursor() as conn:
            conn.begin()
            try:
                count = writer(conn, records)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return count

    # ------------------------------------------------------------------
    # Family inserts (one transaction each)
    # ------------------------------------------------------------------

    def insert_trades(self, records: list[ArchivedTradeRecord]) -> int:
        return self._insert_family(write_trades_batch, records)

    def insert_life_events(self, records: list[ArchivedLifeEventRecord]) -> int:
        return self._insert_family(write_life_events_batch, records)

    def insert_generic_events(self, records: list[ArchivedGenericEventRecord]) -> int:
        return self._insert_family(write_generic_events_batch, records)

    def insert_run(self, run: ArchiveRunRecord) -> int:
        """Append a ledger row and return its id."""
        with self._db.cursor() as conn:
            return write_archive_run(conn, run)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def delete_before(self, cutoff: datetime) -> dict[str, int]:
        """Delete every family row whose event time is before ``cutoff``.

        All three deletes share one transaction.

        Returns:
            Deleted row count per family
        """
        deleted: dict[str, int] = {}
        with self._db.cursor() as conn:
            conn.begin()
            try:
                for family, table in FAMILY_TABLES.items():
                    row = conn.execute(
                        f"DELETE FROM {table} WHERE event_timestamp < ?", [cutoff]
                    ).fetchone()
                    deleted[family] = row[0] if row else 0
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return deleted

    def compact(self) -> None:
        """Reclaim space freed by deletes."""
        self._db.checkpoint()

    def count(self, family: str) -> int:
        table = FAMILY_TABLES[family]
        with self._db.cursor() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def size_bytes(self) -> int:
        return self._db.size_bytes()

    def table_storage_bytes(self, table: str) -> int | None:
        """Estimate the bytes a table occupies on disk.

        Counts the distinct persistent blocks the table uses and multiplies
        by the block size. Returns None when the estimate is unavailable.
        """
        try:
            with self._db.cursor() as conn:
                block_size = conn.execute(
                    "SELECT block_size FROM pragma_database_size()"
                ).fetchone()[0]
                blocks = conn.execute(
                    f"""
                    SELECT COUNT(DISTINCT block_id) FROM pragma_storage_info('{table}')
                    WHERE persistent AND block_id >= 0
                    """
                ).fetchone()[0]
        except duckdb.Error as e:
            logger.warning("Storage estimate unavailable for %s: %s", table, e)
            return None

        if block_size is None or blocks is None:
            return None
        return int(blocks) * int(block_size)

    def close(self) -> None:
        self._db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
