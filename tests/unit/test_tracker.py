"""
PositionTracker tests: online filtering and snapshot handling.
"""

import pytest


@pytest.fixture
def tracker(snapshot_store, source_dirs, clock):
    from telemetry_archive.ingest.tracker import PositionTracker

    return PositionTracker(snapshot_store, source_dirs.online_players, clock=clock)


def write_snapshot(source_dirs, players, generated_at="2024-05-01T11:59:30Z"):
    body = {"players": players}
    if generated_at is not None:
        body["generatedAt"] = generated_at
    return source_dirs.write(source_dirs.online_players.parent, source_dirs.online_players.name, body)


class TestCapture:
    def test_missing_snapshot_records_nothing(self, tracker, snapshot_store):
        result = tracker.capture()

        assert result.recorded == 0
        assert snapshot_store.get_stats()["total_records"] == 0

    def test_only_online_players_recorded(self, tracker, snapshot_store, source_dirs):
        write_snapshot(source_dirs, [
            {"playerId": "a", "playerName": "Alice", "isOnline": True,
             "posX": 1.5, "posY": 2, "posZ": 3, "health": 90, "isAlive": True},
            {"playerId": "b", "playerName": "Bob", "isOnline": False, "posX": 9, "posY": 9, "posZ": 9},
            {"playerId": "c", "isOnline": 1, "posX": None, "posY": 0, "posZ": 4, "isAlive": 0},
        ])

        result = tracker.capture()

        assert result.recorded == 2
        assert result.online == 2
        assert result.generated_at == "2024-05-01T11:59:30Z"

        latest = {r.entity_id: r for r in snapshot_store.latest_per_entity()}
        assert set(latest) == {"a", "c"}
        assert latest["a"].entity_name == "Alice"
        assert latest["a"].pos_x == 1.5
        assert latest["a"].is_alive is True
        assert latest["c"].pos_x == 0.0
        assert latest["c"].is_alive is False
        assert latest["a"].recorded_at == "2024-05-01T11:59:30Z"

    def test_entry_without_id_skipped(self, tracker, snapshot_store, source_dirs):
        write_snapshot(source_dirs, [
            {"isOnline": True, "posX": 1, "posY": 1, "posZ": 1},
            {"playerId": "a", "isOnline": True, "posX": 1, "posY": 1, "posZ": 1},
        ])

        result = tracker.capture()

        assert result.recorded == 1
        assert result.skipped == 1

    def test_recorded_at_falls_back_to_clock(self, tracker, snapshot_store, source_dirs):
        write_snapshot(source_dirs, [{"playerId": "a", "isOnline": True}], generated_at=None)

        tracker.capture()

        (record,) = snapshot_store.query_by_entity("a")
        assert record.recorded_at.startswith("2024-05-01T12:00:00")

    def test_non_list_players_rejected(self, tracker, source_dirs):
        from telemetry_archive.errors import SourceFileError

        write_snapshot(source_dirs, {"a": 1})

        with pytest.raises(SourceFileError, match="must be an array"):
            tracker.capture()

    def test_each_capture_is_one_batch(self, tracker, snapshot_store, source_dirs, clock):
        write_snapshot(source_dirs, [
            {"playerId": "a", "isOnline": True},
            {"playerId": "b", "isOnline": True},
        ])

        tracker.capture()
        clock.advance(30)
        tracker.capture()

        entities = snapshot_store.distinct_entities()
        assert {e.record_count for e in entities} == {2}
        stats = snapshot_store.get_stats()
        assert stats["newest_record"] - stats["oldest_record"] == 30
