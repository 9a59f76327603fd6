"""
DuckDB Connection Manager

Manages database connections, schema initialization, validation, and migrations
for one embedded store. SnapshotStore and ArchiveStore each own a separate
DatabaseManager over a separate database file.

DuckDB keeps a write-ahead log next to the database file and gives every
transaction an MVCC snapshot, so readers on other cursors are never blocked
by an in-progress archive transaction.
"""

import logging
from pathlib import Path

import duckdb
from pydantic import BaseModel

from .migrations import MigrationManager
from .schema_generator import generate_schema_ddl, table_name_of, validate_table_schema

logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"


class DatabaseManager:
    """Manages a DuckDB connection and the schema for a set of models.

    Responsibilities:
    - Create and manage the root DuckDB connection
    - Initialize database schema from Pydantic models
    - Validate schema matches models
    - Apply pending migrations
    - Hand out per-operation cursors for thread-safe use

    Usage:
        manager = DatabaseManager("archive.duckdb", ARCHIVE_MODELS)
        manager.setup()  # Initialize, migrate, validate

        with manager.cursor() as conn:
            conn.execute("SELECT COUNT(*) FROM archived_trades").fetchone()
    """

    def __init__(
        self,
        db_path: str | Path,
        models: list[type[BaseModel]],
        migrations_dir: Path | None = None,
        name: str = "archive",
    ):
        """Initialize database manager.

        Args:
            db_path: Path to DuckDB database file, or ":memory:"
            models: Models whose tables this database holds
            migrations_dir: Directory of numbered .sql migrations (optional)
            name: Store label used in migration logs and templates
        """
        self.db_path = Path(db_path) if str(db_path) != IN_MEMORY else None
        self.models = list(models)
        self.name = name
        self.migrations_dir = Path(migrations_dir) if migrations_dir is not None else None

        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = duckdb.connect(str(self.db_path))
        else:
            self.conn = duckdb.connect(IN_MEMORY)

    @property
    def is_in_memory(self) -> bool:
        return self.db_path is None

    def cursor(self) -> duckdb.DuckDBPyConnection:
        """Return a duplicate connection for one operation.

        Cursors share the database but carry their own transaction state,
        which makes them safe to use from scheduler threads. Use as a
        context manager so the cursor is closed afterwards.
        """
        return self.conn.cursor()

    def initialize_schema(self) -> None:
        """Create sequences, tables and indexes (idempotent)."""
        ddl = generate_schema_ddl(self.models)

        # DuckDB doesn't have executescript, so split and execute individually
        statements = [s.strip() for s in ddl.split(";") if s.strip()]
        for statement in statements:
            self.conn.execute(statement)

        logger.debug("Schema initialized for %s", self.describe())

    def validate_schema(self) -> bool:
        """Validate that every model's table matches its columns.

        Returns:
            True if all tables valid, False if any mismatches found
        """
        all_valid = True
        for model in self.models:
            is_valid, errors = validate_table_schema(self.conn, model)
            if not is_valid:
                all_valid = False
                for error in errors:
                    logger.error("Schema mismatch in %s: %s", table_name_of(model), error)

        return all_valid

    def apply_migrations(self) -> int:
        """Apply pending .sql migrations, if a migrations directory is set.

        Returns:
            Number of migrations applied
        """
        if self.migrations_dir is None:
            return 0
        return len(self.migration_manager(self.migrations_dir).apply_pending())

    def migration_manager(self, migrations_dir: Path) -> MigrationManager:
        return MigrationManager(self.conn, migrations_dir, store=self.name)

    def table_names(self) -> list[str]:
        return [table_name_of(model) for model in self.models]

    def setup(self) -> None:
        """Complete database setup: initialize + migrate + validate.

        Raises:
            RuntimeError: If schema validation fails
        """
        self.initialize_schema()
        self.apply_migrations()

        if not self.validate_schema():
            raise RuntimeError(
                f"Database schema validation failed for {self.describe()}. "
                "The database schema is out of sync with the Pydantic models. "
                "Create a migration file to fix the schema, or delete the database and reinitialize."
            )

        logger.info("Database ready: %s", self.describe())

    def checkpoint(self) -> None:
        """Fold the write-ahead log into the database file.

        DuckDB reclaims the blocks freed by deleted rows at checkpoint time,
        so this is the compaction step after pruning.
        """
        with self.cursor() as conn:
            conn.execute("CHECKPOINT")

    def size_bytes(self) -> int:
        """Size of the database file plus its write-ahead log (0 in memory)."""
        if self.db_path is None:
            return 0

        size = 0
        for path in (self.db_path, Path(f"{self.db_path}.wal")):
            if path.exists():
                size += path.stat().st_size
        return size

    def list_tables(self) -> list[tuple[str, int]]:
        """Return (table_name, column_count) for every table in the database."""
        with self.cursor() as conn:
            return conn.execute("""
            SELECT table_name,
                   (SELECT COUNT(*) FROM information_schema.columns c
                    WHERE c.table_name = t.table_name) AS column_count
            FROM information_schema.tables t
            WHERE table_schema = 'main'
            ORDER BY table_name
        """).fetchall()

    def describe(self) -> str:
        return IN_MEMORY if self.db_path is None else str(self.db_path)

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
