"""
Per-Store Schema Migrations

Each store evolves through numbered SQL files in its own directory, named
``NNN_short_description.sql``. The applied versions live in that store's
``schema_migrations`` table, so the snapshot and archive databases migrate
independently. ``DatabaseManager.setup()`` applies whatever is pending each
time a store opens; ``telemetry-archive db migrate`` does the same on demand.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import duckdb

logger = logging.getLogger(__name__)

MIGRATION_FILENAME = re.compile(r"^(\d+)_(\w+)\.sql$")


@dataclass(frozen=True)
class Migration:
    """One numbered migration file."""

    version: int
    name: str
    path: Path

    @property
    def description(self) -> str:
        """``add_zone_index`` -> ``add zone index``"""
        return self.name.replace("_", " ")

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def has_statements(self) -> bool:
        """False for a template that still holds only comments."""
        return any(
            line.strip() and not line.strip().startswith("--")
            for line in self.read_sql().splitlines()
        )


def discover_migrations(directory: Path) -> list[Migration]:
    """Migration files in version order; a missing directory has none.

    Files that are not named ``NNN_description.sql`` are ignored.

    Raises:
        ValueError: If two files carry the same version number

    Examples:
        >>> [m.version for m in discover_migrations(Path("migrations/archive"))]
        [1, 2, 4]
    """
    if not directory.is_dir():
        return []

    found: dict[int, Migration] = {}
    for path in sorted(directory.glob("*.sql")):
        match = MIGRATION_FILENAME.match(path.name)
        if match is None:
            logger.debug("Ignoring %s: not a numbered migration", path.name)
            continue

        migration = Migration(version=int(match.group(1)), name=match.group(2), path=path)
        existing = found.get(migration.version)
        if existing is not None:
            raise ValueError(
                f"Duplicate migration version {migration.version}: "
                f"{existing.path.name} and {path.name}"
            )
        found[migration.version] = migration

    return [found[version] for version in sorted(found)]


class MigrationManager:
    """Applies one store's pending migrations and records them.

    Usage:
        manager = MigrationManager(conn, Path("migrations/archive"), store="archive")
        applied = manager.apply_pending()
    """

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        migrations_dir: Path,
        store: str = "archive",
    ):
        self.conn = conn
        self.migrations_dir = Path(migrations_dir)
        self.store = store

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                name VARCHAR NOT NULL,
                applied_at TIMESTAMP NOT NULL
            )
        """)

    def applied_versions(self) -> set[int]:
        rows = self.conn.execute("SELECT version FROM schema_migrations").fetchall()
        return {row[0] for row in rows}

    def pending(self) -> list[Migration]:
        """Written migrations on disk that this store has not applied yet."""
        applied = self.applied_versions()
        pending = []
        for migration in discover_migrations(self.migrations_dir):
            if migration.version in applied:
                continue
            if not migration.has_statements():
                logger.warning("Skipping %s: no SQL statements yet", migration.path.name)
                continue
            pending.append(migration)
        return pending

    def apply(self, migration: Migration) -> None:
        """Run one migration and record it in the same transaction.

        Raises:
            RuntimeError: If the migration fails (nothing is recorded)
        """
        logger.info(
            "Applying %s migration %d: %s", self.store, migration.version, migration.description
        )

        self.conn.begin()
        try:
            self.conn.execute(migration.read_sql())
            self.conn.execute(
                "INSERT INTO schema_migrations (version, name, applied_at) VALUES (?, ?, ?)",
                [
                    migration.version,
                    migration.name,
                    datetime.now(timezone.utc).replace(tzinfo=None),
                ],
            )
            self.conn.commit()
        except Exception as e:
            self.conn.rollback()
            raise RuntimeError(
                f"{self.store} migration {migration.version} ({migration.path.name}) failed: {e}"
            ) from e

    def apply_pending(self) -> list[Migration]:
        """Apply pending migrations in version order, stopping at the first failure."""
        pending = self.pending()
        for migration in pending:
            self.apply(migration)

        if pending:
            logger.info("Applied %d %s migration(s)", len(pending), self.store)
        return pending

    def create_template(self, name: str, tables: list[str]) -> Path:
        """Write an empty migration numbered after everything applied or on disk.

        Raises:
            ValueError: If name is not usable in a migration filename
        """
        if not re.fullmatch(r"\w+", name):
            raise ValueError(
                f"Invalid migration name '{name}': use letters, digits and underscores"
            )

        versions = self.applied_versions() | {
            m.version for m in discover_migrations(self.migrations_dir)
        }
        version = max(versions, default=0) + 1

        self.migrations_dir.mkdir(parents=True, exist_ok=True)
        path = self.migrations_dir / f"{version:03d}_{name}.sql"
        path.write_text(
            f"-- {self.store} store, migration {version}: {name.replace('_', ' ')}\n"
            f"-- Created {datetime.now(timezone.utc):%Y-%m-%d %H:%M} UTC\n"
            f"-- Tables: {', '.join(tables)}\n"
            "--\n"
            "-- Runs once, in a transaction, the next time the store opens.\n"
            "-- Keep the matching model in telemetry_archive/persistence/models.py\n"
            "-- in step, or schema validation will refuse to open the store.\n",
            encoding="utf-8",
        )

        logger.info("Created %s migration template %s", self.store, path)
        return path
