"""
ArchiveStore tests: family inserts, per-family atomicity, ledger and pruning.
"""

from datetime import datetime, timedelta

import pytest

ARCHIVED_AT = datetime(2024, 5, 1, 4, 0)


def make_trade(entity_id="player1", event_time=None, price=100, quantity=1, item="AKM"):
    from telemetry_archive.persistence.models import ArchivedTradeRecord

    return ArchivedTradeRecord(
        entity_id=entity_id,
        event_timestamp=event_time or datetime(2024, 4, 30, 18, 0),
        trade_type="purchase",
        item_class=item,
        price=price,
        quantity=quantity,
        archived_at=ARCHIVED_AT,
        archive_date="2024-05-01",
    )


def make_life_event(entity_id="player1", event_time=None, event_type="death"):
    from telemetry_archive.persistence.models import ArchivedLifeEventRecord

    return ArchivedLifeEventRecord(
        entity_id=entity_id,
        event_timestamp=event_time or datetime(2024, 4, 30, 19, 0),
        event_type=event_type,
        data='{"cause": "zombie"}',
        archived_at=ARCHIVED_AT,
        archive_date="2024-05-01",
    )


def make_item_event(entity_id="player1", event_time=None):
    from telemetry_archive.persistence.models import ArchivedGenericEventRecord

    return ArchivedGenericEventRecord(
        entity_id=entity_id,
        event_timestamp=event_time or datetime(2024, 4, 30, 20, 0),
        event_type="pickup",
        item_class="Apple",
        quantity=2,
        position_x=1.5,
        position_y=0.0,
        position_z=-3.25,
        archived_at=ARCHIVED_AT,
        archive_date="2024-05-01",
    )


class TestFamilyInserts:
    def test_insert_each_family(self, archive_store):
        assert archive_store.insert_trades([make_trade(), make_trade()]) == 2
        assert archive_store.insert_life_events([make_life_event()]) == 1
        assert archive_store.insert_generic_events([make_item_event()]) == 1

        assert archive_store.count("trades") == 2
        assert archive_store.count("life_events") == 1
        assert archive_store.count("events") == 1

    def test_empty_batch_is_noop(self, archive_store):
        assert archive_store.insert_trades([]) == 0
        assert archive_store.count("trades") == 0

    def test_values_round_trip(self, archive_store):
        archive_store.insert_generic_events([make_item_event()])

        with archive_store.cursor() as conn:
            row = conn.execute("""
                SELECT event_type, item_class, quantity, position_x, position_z, archive_date
                FROM archived_events
            """).fetchone()

        assert row == ("pickup", "Apple", 2, 1.5, -3.25, "2024-05-01")

    def test_failed_batch_rolls_back_whole_family(self, archive_store):
        from telemetry_archive.persistence.writers import write_trades_batch

        def failing_writer(conn, records):
            write_trades_batch(conn, records)
            raise RuntimeError("disk full")

        with pytest.raises(RuntimeError, match="disk full"):
            archive_store._insert_family(failing_writer, [make_trade(), make_trade()])

        assert archive_store.count("trades") == 0

    def test_failure_in_one_family_leaves_others(self, archive_store):
        import duckdb

        archive_store.insert_trades([make_trade()])
        with archive_store.cursor() as conn:
            conn.execute("DROP TABLE archived_life_events")

        with pytest.raises(duckdb.Error):
            archive_store.insert_life_events([make_life_event()])

        assert archive_store.count("trades") == 1


class TestRunLedger:
    def test_insert_run_returns_increasing_ids(self, archive_store):
        from telemetry_archive.persistence.models import ArchiveRunRecord

        run = ArchiveRunRecord(
            run_date="2024-05-01",
            trades_archived=3,
            status="completed",
            created_at=ARCHIVED_AT,
        )

        first = archive_store.insert_run(run)
        second = archive_store.insert_run(run)

        assert second > first
        with archive_store.cursor() as conn:
            assert conn.execute("SELECT COUNT(*) FROM archive_runs").fetchone()[0] == 2


class TestDeleteBefore:
    def test_deletes_strictly_older_rows_in_every_family(self, archive_store):
        cutoff = datetime(2024, 4, 1)
        old = cutoff - timedelta(seconds=1)

        archive_store.insert_trades([make_trade(event_time=old), make_trade(event_time=cutoff)])
        archive_store.insert_life_events([make_life_event(event_time=old)])
        archive_store.insert_generic_events([make_item_event(event_time=cutoff)])

        deleted = archive_store.delete_before(cutoff)

        assert deleted == {"trades": 1, "life_events": 1, "events": 0}
        assert archive_store.count("trades") == 1
        assert archive_store.count("events") == 1

    def test_compact_after_delete(self, db_path):
        from telemetry_archive.persistence.archive_store import ArchiveStore

        with ArchiveStore(db_path) as store:
            store.insert_trades([make_trade() for _ in range(50)])
            store.delete_before(datetime(2025, 1, 1))
            store.compact()

            assert store.count("trades") == 0
            assert store.size_bytes() > 0


class TestStorageEstimate:
    def test_estimate_is_non_negative_or_unavailable(self, db_path):
        from telemetry_archive.persistence.archive_store import ArchiveStore

        with ArchiveStore(db_path) as store:
            store.insert_trades([make_trade() for _ in range(10)])
            store.compact()
            estimate = store.table_storage_bytes("archived_trades")

        assert estimate is None or estimate >= 0

    def test_unknown_table_is_unavailable(self, archive_store):
        assert archive_store.table_storage_bytes("no_such_table") is None
