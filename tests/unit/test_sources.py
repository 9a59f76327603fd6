"""
Producer log parsing: body layouts, defaults, aliases and file naming.
"""

from datetime import datetime
from pathlib import Path

import pytest

RUN_STARTED = datetime(2024, 5, 1, 4, 0)


@pytest.fixture
def context():
    from telemetry_archive.ingest.sources import ParseContext

    return ParseContext(run_started=RUN_STARTED, archive_date="2024-05-01")


class TestParseTimestamp:
    def test_iso_with_z(self):
        from telemetry_archive.ingest.sources import parse_timestamp

        assert parse_timestamp("2024-05-01T12:00:00Z", RUN_STARTED) == datetime(2024, 5, 1, 12, 0)

    def test_iso_with_offset_converted_to_utc(self):
        from telemetry_archive.ingest.sources import parse_timestamp

        assert parse_timestamp("2024-05-01T14:00:00+02:00", RUN_STARTED) == datetime(2024, 5, 1, 12, 0)

    def test_epoch_seconds_and_millis(self):
        from telemetry_archive.ingest.sources import parse_timestamp

        expected = datetime(2024, 5, 1, 12, 0)
        assert parse_timestamp(1714564800, RUN_STARTED) == expected
        assert parse_timestamp(1714564800000, RUN_STARTED) == expected

    def test_missing_falls_back_to_default(self):
        from telemetry_archive.ingest.sources import parse_timestamp

        assert parse_timestamp(None, RUN_STARTED) == RUN_STARTED
        assert parse_timestamp("", RUN_STARTED) == RUN_STARTED

    @pytest.mark.parametrize("value", ["yesterday", True, [2024]])
    def test_garbage_rejected(self, value):
        from telemetry_archive.ingest.sources import parse_timestamp

        with pytest.raises(ValueError):
            parse_timestamp(value, RUN_STARTED)


class TestNormalizeTrades:
    def test_named_arrays(self, context):
        from telemetry_archive.ingest.sources import normalize_trades

        body = {
            "purchases": [{"itemClass": "AKM", "price": 1200, "quantity": 2, "traderName": "Bob"}],
            "sales": [{"itemClass": "Apple", "price": 5}],
        }

        trades = normalize_trades("player1", body, context, Path("player1_trades.json"))

        assert [t.trade_type for t in trades] == ["purchase", "sale"]
        assert trades[0].quantity == 2
        assert trades[0].trader_name == "Bob"
        assert trades[1].quantity == 1
        assert trades[1].currency == "Roubles"
        assert trades[1].event_timestamp == RUN_STARTED
        assert all(t.archive_date == "2024-05-01" for t in trades)

    def test_flat_array_with_aliases(self, context):
        from telemetry_archive.ingest.sources import normalize_trades

        body = {"trades": [{
            "eventType": "SALE",
            "itemClassName": "M4A1",
            "itemDisplayName": "M4-A1",
            "traderZone": "Green Mountain",
            "price": 900,
            "quantity": 1.7,
            "timestamp": "2024-04-30T22:15:00Z",
        }]}

        (trade,) = normalize_trades("player1", body, context, Path("x"))

        assert trade.trade_type == "sale"
        assert trade.item_class == "M4A1"
        assert trade.item_display == "M4-A1"
        assert trade.zone_name == "Green Mountain"
        assert trade.quantity == 1
        assert trade.event_timestamp == datetime(2024, 4, 30, 22, 15)

    def test_unknown_event_type_skipped(self, context):
        from telemetry_archive.ingest.sources import normalize_trades

        body = {"trades": [
            {"eventType": "BARTER", "itemClass": "AKM"},
            {"eventType": "purchase", "itemClass": "AKM"},
        ]}

        trades = normalize_trades("player1", body, context, Path("x"))

        assert [t.trade_type for t in trades] == ["purchase"]


class TestNormalizeEvents:
    def test_life_events_keep_payload(self, context):
        import json

        from telemetry_archive.ingest.sources import normalize_life_events

        body = {
            "deaths": [{"timestamp": 1714564800, "cause": "zombie"}],
            "events": [{"eventType": "CONNECTED"}],
        }

        events = normalize_life_events("player1", body, context, Path("x"))

        assert [e.event_type for e in events] == ["death", "connection"]
        assert json.loads(events[0].data)["cause"] == "zombie"

    def test_generic_event_position_and_item(self, context):
        from telemetry_archive.ingest.sources import normalize_generic_events

        body = {"events": [{
            "eventType": "ADDED",
            "item": "Apple",
            "itemQuantity": 3,
            "position": [10, 20.5, 30],
        }]}

        (event,) = normalize_generic_events("player1", body, context, Path("x"))

        assert event.event_type == "pickup"
        assert event.item_class == "Apple"
        assert event.quantity == 3
        assert (event.position_x, event.position_y, event.position_z) == (10.0, 20.5, 30.0)

    def test_generic_event_without_position(self, context):
        from telemetry_archive.ingest.sources import normalize_generic_events

        (event,) = normalize_generic_events("p", {"crafted": [{"itemClass": "Rag"}]}, context, Path("x"))

        assert event.event_type == "craft"
        assert event.position_x is None
        assert event.quantity is None


class TestSourceFamily:
    def test_entity_id_from_filename(self, tmp_path):
        from telemetry_archive.ingest.sources import (
            generic_events_family,
            life_events_family,
            trades_family,
        )

        assert trades_family(tmp_path).entity_id_for(Path("765_trades.json")) == "765"
        assert life_events_family(tmp_path).entity_id_for(Path("765_life.json")) == "765"
        assert life_events_family(tmp_path).entity_id_for(Path("765.json")) == "765"
        assert generic_events_family(tmp_path).entity_id_for(Path("765_events.json")) == "765"

    def test_list_files_filters_and_sorts(self, source_dirs):
        from telemetry_archive.ingest.sources import trades_family

        source_dirs.write(source_dirs.trades, "b_trades.json", {})
        source_dirs.write(source_dirs.trades, "a_trades.json", {})
        source_dirs.write_raw(source_dirs.trades, "notes.txt", "ignore me")

        files = trades_family(source_dirs.trades).list_files()

        assert [f.name for f in files] == ["a_trades.json", "b_trades.json"]

    def test_missing_directory_lists_nothing(self, tmp_path):
        from telemetry_archive.ingest.sources import trades_family

        assert trades_family(tmp_path / "absent").list_files() == []

    def test_parse_file(self, source_dirs, context):
        from telemetry_archive.ingest.sources import trades_family

        path = source_dirs.write(
            source_dirs.trades, "player1_trades.json", {"purchases": [{"itemClass": "AKM"}]}
        )

        (trade,) = trades_family(source_dirs.trades).parse_file(path, context)

        assert trade.entity_id == "player1"

    def test_malformed_json_is_source_error(self, source_dirs, context):
        from telemetry_archive.errors import SourceFileError
        from telemetry_archive.ingest.sources import trades_family

        path = source_dirs.write_raw(source_dirs.trades, "p_trades.json", "{not json")

        with pytest.raises(SourceFileError, match="invalid JSON"):
            trades_family(source_dirs.trades).parse_file(path, context)

    def test_deeply_nested_json_is_source_error(self, source_dirs, context):
        from telemetry_archive.errors import SourceFileError
        from telemetry_archive.ingest.sources import trades_family

        path = source_dirs.write_raw(source_dirs.trades, "p_trades.json", "[" * 100_000 + "]" * 100_000)

        with pytest.raises(SourceFileError, match="nested too deeply"):
            trades_family(source_dirs.trades).parse_file(path, context)

    def test_non_object_body_is_source_error(self, source_dirs, context):
        from telemetry_archive.errors import SourceFileError
        from telemetry_archive.ingest.sources import trades_family

        path = source_dirs.write(source_dirs.trades, "p_trades.json", [1, 2])

        with pytest.raises(SourceFileError):
            trades_family(source_dirs.trades).parse_file(path, context)

    @pytest.mark.parametrize("entry", [
        {"itemClass": "AKM", "price": -1},
        {"price": 10},
        {"itemClass": "AKM", "timestamp": "not a time"},
        {"itemClass": "AKM", "quantity": float("inf")},
        {"itemClass": "AKM", "quantity": "nan"},
        {"itemClass": "AKM", "price": 2**63},
        {"itemClass": "AKM", "timestamp": float("inf")},
    ])
    def test_one_bad_entry_fails_whole_file(self, source_dirs, context, entry):
        from telemetry_archive.errors import SourceFileError
        from telemetry_archive.ingest.sources import trades_family

        path = source_dirs.write(
            source_dirs.trades, "p_trades.json", {"purchases": [{"itemClass": "Apple"}, entry]}
        )

        with pytest.raises(SourceFileError, match="invalid entry"):
            trades_family(source_dirs.trades).parse_file(path, context)

    def test_utf8_bom_accepted(self, source_dirs, context):
        from telemetry_archive.ingest.sources import trades_family

        path = source_dirs.trades / "p_trades.json"
        source_dirs.trades.mkdir(parents=True)
        path.write_bytes(b'\xef\xbb\xbf{"sales": [{"itemClass": "Apple"}]}')

        assert len(trades_family(source_dirs.trades).parse_file(path, context)) == 1
