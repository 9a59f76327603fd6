"""
SnapshotStore tests: batching, ordering, top-1-per-entity and pruning.
"""

import pytest


def make_position(entity_id: str, x: float = 0.0, name: str | None = None):
    from telemetry_archive.persistence.models import PositionRecord

    return PositionRecord(
        entity_id=entity_id,
        entity_name=name or f"name-{entity_id}",
        pos_x=x,
        pos_y=10.0,
        pos_z=20.0,
        health=100.0,
        recorded_at="2024-05-01T12:00:00Z",
    )


class TestRecordBatch:
    def test_batch_returns_count(self, snapshot_store):
        count = snapshot_store.record_batch([make_position("a"), make_position("b")])

        assert count == 2
        assert snapshot_store.get_stats()["total_records"] == 2

    def test_empty_batch(self, snapshot_store):
        assert snapshot_store.record_batch([]) == 0

    def test_no_dedup(self, snapshot_store):
        snapshot_store.record_batch([make_position("a"), make_position("a")])

        assert len(snapshot_store.query_by_entity("a")) == 2

    def test_batch_stamped_with_clock(self, snapshot_store, clock):
        snapshot_store.record_batch([make_position("a")])

        (record,) = snapshot_store.query_by_entity("a")
        assert record.ingested_at == int(clock.now)

    def test_ingested_at_never_goes_backwards(self, snapshot_store, clock):
        snapshot_store.record_batch([make_position("a", x=1)])
        clock.advance(-3600)
        snapshot_store.record_batch([make_position("a", x=2)])

        timestamps = [r.ingested_at for r in snapshot_store.query_range("a", 0, 2**40)]
        assert timestamps == sorted(timestamps)
        assert timestamps[0] == timestamps[1]

    def test_monotonic_across_reopen(self, db_path, clock):
        from telemetry_archive.persistence.snapshot_store import SnapshotStore

        with SnapshotStore(db_path, clock=clock) as store:
            store.record_position(make_position("a"))

        clock.advance(-60)
        with SnapshotStore(db_path, clock=clock) as store:
            store.record_position(make_position("a"))
            records = store.query_range("a", 0, 2**40)

        assert records[1].ingested_at >= records[0].ingested_at


class TestQueries:
    def test_query_by_entity_newest_first_with_limit(self, snapshot_store, clock):
        for x in range(5):
            snapshot_store.record_batch([make_position("a", x=float(x))])
            clock.advance(30)

        records = snapshot_store.query_by_entity("a", limit=3)

        assert [r.pos_x for r in records] == [4.0, 3.0, 2.0]

    def test_query_range_inclusive_oldest_first(self, snapshot_store, clock):
        start = int(clock.now)
        for x in range(4):
            snapshot_store.record_batch([make_position("a", x=float(x))])
            clock.advance(10)

        records = snapshot_store.query_range("a", start + 10, start + 20)

        assert [r.pos_x for r in records] == [1.0, 2.0]

    def test_latest_per_entity_one_row_each(self, snapshot_store, clock):
        snapshot_store.record_batch([make_position("a", x=1), make_position("b", x=1)])
        clock.advance(30)
        snapshot_store.record_batch([make_position("a", x=2)])
        clock.advance(30)
        snapshot_store.record_batch([make_position("c", x=1)])

        latest = snapshot_store.latest_per_entity()

        assert [r.entity_id for r in latest] == ["c", "a", "b"]
        assert {r.entity_id: r.pos_x for r in latest}["a"] == 2.0

    def test_latest_per_entity_is_max_timestamp(self, snapshot_store, clock):
        for step in range(3):
            snapshot_store.record_batch([make_position("a"), make_position("b")])
            clock.advance(5 * (step + 1))

        for record in snapshot_store.latest_per_entity():
            history = snapshot_store.query_range(record.entity_id, 0, 2**40)
            assert record.ingested_at == max(r.ingested_at for r in history)

    def test_latest_tie_goes_to_last_insert(self, snapshot_store):
        snapshot_store.record_batch([make_position("a", x=1), make_position("a", x=2)])

        (latest,) = snapshot_store.latest_per_entity()
        assert latest.pos_x == 2.0

    def test_distinct_entities(self, snapshot_store, clock):
        first = int(clock.now)
        snapshot_store.record_batch([make_position("a", name="Old")])
        clock.advance(60)
        snapshot_store.record_batch([make_position("a", name="New"), make_position("b")])

        entities = {e.entity_id: e for e in snapshot_store.distinct_entities()}

        assert entities["a"].record_count == 2
        assert entities["a"].first_seen == first
        assert entities["a"].last_seen == first + 60
        assert entities["a"].entity_name == "New"
        assert entities["b"].record_count == 1


class TestDeleteOlderThan:
    def test_strictly_before_cutoff(self, snapshot_store, clock):
        cutoff = int(clock.now) + 10
        snapshot_store.record_batch([make_position("a", x=1)])
        clock.advance(10)
        snapshot_store.record_batch([make_position("a", x=2)])

        deleted = snapshot_store.delete_older_than(cutoff)

        assert deleted == 1
        remaining = snapshot_store.query_by_entity("a")
        assert [r.pos_x for r in remaining] == [2.0]

    def test_nothing_to_delete(self, snapshot_store):
        assert snapshot_store.delete_older_than(0) == 0


class TestStats:
    def test_empty_stats(self, snapshot_store):
        stats = snapshot_store.get_stats()

        assert stats["total_records"] == 0
        assert stats["unique_entities"] == 0
        assert stats["oldest_record"] is None

    def test_write_failure_propagates(self, snapshot_store):
        import duckdb

        with snapshot_store.database.cursor() as conn:
            conn.execute("DROP TABLE positions")

        with pytest.raises(duckdb.Error):
            snapshot_store.record_batch([make_position("a")])
