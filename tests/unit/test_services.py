"""
ServiceContainer tests: wiring from one config.
"""

import duckdb
import pytest


@pytest.fixture
def services(source_dirs):
    from telemetry_archive.config import TelemetryConfig
    from telemetry_archive.services import ServiceContainer

    container = ServiceContainer(TelemetryConfig(base_path=source_dirs.base, archive_hour=3))
    yield container
    container.close()


class TestServiceContainer:
    def test_stores_opened_once(self, services, source_dirs):
        assert services.archive_store is services.archive_store
        assert services.pipeline.store is services.archive_store
        assert services.retention.snapshot_store is services.snapshot_store
        assert services.archive_store.db_path == source_dirs.base / "data" / "archive.duckdb"

    def test_archive_job_archives_and_prunes(self, services, source_dirs):
        trade_file = source_dirs.write(source_dirs.trades, "p_trades.json", {
            "sales": [{"itemClass": "AKM", "timestamp": "2001-01-01T00:00:00Z"}],
        })

        services.archive_job()

        assert not trade_file.exists()
        assert services.archive_store.count("trades") == 0
        with services.archive_store.cursor() as conn:
            assert conn.execute("SELECT trades_archived FROM archive_runs").fetchall() == [(1,)]

    def test_build_scheduler(self, services):
        from telemetry_archive.scheduler import DailySchedule, IntervalSchedule

        scheduler = services.build_scheduler()

        assert scheduler.jobs["archive"].schedule == DailySchedule(3, 0)
        assert scheduler.jobs["positions"].schedule == IntervalSchedule(30)
        assert scheduler.jobs["positions"].next_run <= scheduler.jobs["archive"].next_run

    def test_close_is_repeatable(self, services):
        services.snapshot_store
        services.close()
        services.close()

    def test_stores_apply_their_own_migrations(self, source_dirs):
        from telemetry_archive.config import TelemetryConfig
        from telemetry_archive.services import ServiceContainer

        archive_dir = source_dirs.base / "migrations" / "archive"
        archive_dir.mkdir(parents=True)
        (archive_dir / "001_add_zone_index.sql").write_text(
            "CREATE INDEX IF NOT EXISTS idx_trades_zone ON archived_trades (zone_name);"
        )

        with ServiceContainer(TelemetryConfig(base_path=source_dirs.base)) as services:
            services.archive_store
            services.snapshot_store

        data = source_dirs.base / "data"
        conn = duckdb.connect(str(data / "archive.duckdb"))
        try:
            archive_versions = conn.execute("SELECT version, name FROM schema_migrations").fetchall()
            indexes = {row[0] for row in conn.execute("SELECT index_name FROM duckdb_indexes()").fetchall()}
        finally:
            conn.close()
        conn = duckdb.connect(str(data / "sst_tracking.duckdb"))
        try:
            snapshot_versions = conn.execute("SELECT version FROM schema_migrations").fetchall()
        finally:
            conn.close()

        assert archive_versions == [(1, "add_zone_index")]
        assert "idx_trades_zone" in indexes
        assert snapshot_versions == []
