"""
Producer Log Sources

Reads the per-entity JSON logs written by the game-side producer and
normalizes them into archive records.

Each family lives in its own directory with one file per entity; the
filename encodes the entity id. Two body layouts are accepted:

    Named arrays (one array per kind):
        {"purchases": [...], "sales": [...]}
        {"deaths": [...], "spawns": [...], ...}
        {"pickups": [...], "drops": [...], ...}

    Flat array with an upper-case ``eventType`` per entry:
        {"trades": [{"eventType": "PURCHASE", ...}, ...]}
        {"events": [{"eventType": "DIED", ...}, ...]}

A file is all-or-nothing: any entry that cannot be normalized makes the
whole file unparseable, so it is neither archived nor deleted.
"""

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from ..errors import SourceFileError
from ..persistence.models import (
    ArchivedGenericEventRecord,
    ArchivedLifeEventRecord,
    ArchivedTradeRecord,
    GenericEventType,
    LifeEventType,
    TradeType,
)

logger = logging.getLogger(__name__)

# Values above this are taken to be epoch milliseconds
EPOCH_MILLIS_THRESHOLD = 100_000_000_000

DEFAULT_CURRENCY = "Roubles"


# ============================================================================
# Kind Maps
# ============================================================================

TRADE_ARRAYS = {
    "purchases": TradeType.PURCHASE,
    "sales": TradeType.SALE,
}

TRADE_CODES = {
    "PURCHASE": TradeType.PURCHASE,
    "SALE": TradeType.SALE,
}

LIFE_ARRAYS = {
    "deaths": LifeEventType.DEATH,
    "connections": LifeEventType.CONNECTION,
    "disconnections": LifeEventType.DISCONNECTION,
    "spawns": LifeEventType.SPAWN,
    "respawns": LifeEventType.RESPAWN,
}

LIFE_CODES = {
    "DIED": LifeEventType.DEATH,
    "CONNECTED": LifeEventType.CONNECTION,
    "DISCONNECTED": LifeEventType.DISCONNECTION,
    "SPAWNED": LifeEventType.SPAWN,
    "RESPAWNED": LifeEventType.RESPAWN,
}

GENERIC_ARRAYS = {
    "pickups": GenericEventType.PICKUP,
    "drops": GenericEventType.DROP,
    "crafted": GenericEventType.CRAFT,
    "consumed": GenericEventType.CONSUME,
    "destroyed": GenericEventType.DESTROY,
}

GENERIC_CODES = {
    "PICKED_UP": GenericEventType.PICKUP,
    "ADDED": GenericEventType.PICKUP,
    "DROPPED": GenericEventType.DROP,
    "REMOVED": GenericEventType.DROP,
    "CRAFTED": GenericEventType.CRAFT,
    "CONSUMED": GenericEventType.CONSUME,
    "DESTROYED": GenericEventType.DESTROY,
}


@dataclass(frozen=True)
class ParseContext:
    """Per-run values stamped onto every record."""

    run_started: datetime
    archive_date: str

    @property
    def archived_at(self) -> datetime:
        return self.run_started


# ============================================================================
# Value Coercion
# ============================================================================


def parse_timestamp(value: Any, default: datetime) -> datetime:
    """Coerce a producer timestamp to a naive UTC datetime.

    Accepts ISO-8601 strings (``Z`` suffix allowed) and epoch seconds or
    milliseconds. Missing values fall back to ``default``.

    Raises:
        ValueError: If the value cannot be interpreted

    Examples:
        >>> parse_timestamp("2024-05-01T12:00:00Z", default=None)
        datetime.datetime(2024, 5, 1, 12, 0)
        >>> parse_timestamp(1714564800, default=None)
        datetime.datetime(2024, 5, 1, 12, 0)
    """
    if value is None or value == "":
        return default

    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp {value!r}")

    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError) as e:
            raise ValueError(f"Timestamp out of range: {value!r}") from e

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    raise ValueError(f"Invalid timestamp {value!r}")


def _as_int(value: Any, default: int | None) -> int | None:
    """Coerce a count-like value, truncating fractional quantities."""
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = float(value)
    if isinstance(value, float):
        # json.loads turns 1e400 into inf
        if not math.isfinite(value):
            raise ValueError(f"Expected a finite number, got {value!r}")
        return int(value)
    raise ValueError(f"Expected a number, got {value!r}")


def _first(entry: dict, *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None:
            return value
    return None


def _position(entry: dict) -> tuple[float | None, float | None, float | None]:
    position = entry.get("position")
    if isinstance(position, (list, tuple)) and len(position) >= 3:
        try:
            return float(position[0]), float(position[1]), float(position[2])
        except (TypeError, ValueError):
            pass
    return None, None, None


# ============================================================================
# Family Normalizers
# ============================================================================


def _entries(body: dict, arrays: dict, flat_key: str, codes: dict, path: Path):
    """Yield (kind, entry) pairs from named arrays and the flat array."""
    for array_name, kind in arrays.items():
        entries = body.get(array_name)
        if entries is None:
            continue
        if not isinstance(entries, list):
            raise ValueError(f"'{array_name}' must be an array")
        for entry in entries:
            yield kind, entry

    flat = body.get(flat_key)
    if flat is None:
        return
    if not isinstance(flat, list):
        raise ValueError(f"'{flat_key}' must be an array")

    for entry in flat:
        code = entry.get("eventType") if isinstance(entry, dict) else None
        kind = codes.get(str(code).upper()) if code is not None else None
        if kind is None:
            logger.warning("Skipping entry with unknown eventType %r in %s", code, path)
            continue
        yield kind, entry


def normalize_trades(
    entity_id: str, body: dict, context: ParseContext, path: Path
) -> list[ArchivedTradeRecord]:
    """Flatten a trade log into archived trade records."""
    records = []
    for trade_type, entry in _entries(body, TRADE_ARRAYS, "trades", TRADE_CODES, path):
        if not isinstance(entry, dict):
            raise ValueError(f"Trade entry must be an object, got {type(entry).__name__}")

        records.append(ArchivedTradeRecord(
            entity_id=entity_id,
            event_timestamp=parse_timestamp(entry.get("timestamp"), context.run_started),
            trade_type=trade_type,
            trader_name=entry.get("traderName"),
            zone_name=_first(entry, "zoneName", "traderZone"),
            item_class=_first(entry, "itemClass", "itemClassName"),
            item_display=_first(entry, "itemDisplay", "itemDisplayName"),
            quantity=_as_int(entry.get("quantity"), 1),
            price=_as_int(entry.get("price"), 0),
            currency=entry.get("currency") or DEFAULT_CURRENCY,
            archived_at=context.archived_at,
            archive_date=context.archive_date,
        ))
    return records


def normalize_life_events(
    entity_id: str, body: dict, context: ParseContext, path: Path
) -> list[ArchivedLifeEventRecord]:
    """Flatten a life-event log; each entry is kept whole as the payload."""
    records = []
    for event_type, entry in _entries(body, LIFE_ARRAYS, "events", LIFE_CODES, path):
        if not isinstance(entry, dict):
            raise ValueError(f"Life event must be an object, got {type(entry).__name__}")

        records.append(ArchivedLifeEventRecord(
            entity_id=entity_id,
            event_timestamp=parse_timestamp(entry.get("timestamp"), context.run_started),
            event_type=event_type,
            data=json.dumps(entry),
            archived_at=context.archived_at,
            archive_date=context.archive_date,
        ))
    return records


def normalize_generic_events(
    entity_id: str, body: dict, context: ParseContext, path: Path
) -> list[ArchivedGenericEventRecord]:
    """Flatten an item-event log into archived generic event records."""
    records = []
    for event_type, entry in _entries(body, GENERIC_ARRAYS, "events", GENERIC_CODES, path):
        if not isinstance(entry, dict):
            raise ValueError(f"Item event must be an object, got {type(entry).__name__}")

        pos_x, pos_y, pos_z = _position(entry)
        records.append(ArchivedGenericEventRecord(
            entity_id=entity_id,
            event_timestamp=parse_timestamp(entry.get("timestamp"), context.run_started),
            event_type=event_type,
            item_class=_first(entry, "itemClass", "itemClassName", "item"),
            item_display=_first(entry, "itemDisplay", "itemDisplayName", "displayName"),
            quantity=_as_int(_first(entry, "quantity", "itemQuantity"), None),
            position_x=pos_x,
            position_y=pos_y,
            position_z=pos_z,
            data=json.dumps(entry),
            archived_at=context.archived_at,
            archive_date=context.archive_date,
        ))
    return records


# ============================================================================
# Source Families
# ============================================================================


def read_source_file(path: Path) -> dict:
    """Read and decode one producer JSON file.

    Raises:
        SourceFileError: If the file cannot be read, is not JSON, or is
            not a JSON object
    """
    try:
        text = path.read_text(encoding="utf-8-sig")
        body = json.loads(text)
    except OSError as e:
        raise SourceFileError(path, f"unreadable: {e}") from e
    except ValueError as e:
        raise SourceFileError(path, f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise SourceFileError(path, "invalid JSON: nested too deeply") from e

    if not isinstance(body, dict):
        raise SourceFileError(path, f"expected a JSON object, got {type(body).__name__}")
    return body


@dataclass(frozen=True)
class SourceFamily:
    """One record family's directory, naming scheme and normalizer."""

    name: str
    directory: Path
    pattern: str
    suffix: str
    normalizer: Callable[[str, dict, ParseContext, Path], list[BaseModel]]
    entity_suffix: str | None = None

    def list_files(self) -> list[Path]:
        """Matching files in name order; a missing directory has none.

        Raises:
            OSError: If the directory exists but cannot be listed
        """
        try:
            candidates = list(self.directory.iterdir())
        except FileNotFoundError:
            return []

        return sorted(p for p in candidates if p.match(self.pattern) and p.is_file())

    def entity_id_for(self, path: Path) -> str:
        """Derive the entity id from a source filename.

        Examples:
            >>> family = trades_family(Path("trades"))
            >>> family.entity_id_for(Path("trades/76561198000000001_trades.json"))
            '76561198000000001'
        """
        name = path.name
        if name.endswith(self.suffix):
            name = name[: -len(self.suffix)]
        if self.entity_suffix and name.endswith(self.entity_suffix):
            name = name[: -len(self.entity_suffix)]
        return name

    def parse_file(self, path: Path, context: ParseContext) -> list[BaseModel]:
        """Read one file and normalize all of its entries.

        Raises:
            SourceFileError: If any part of the file cannot be normalized
        """
        entity_id = self.entity_id_for(path)
        if not entity_id:
            raise SourceFileError(path, "filename does not contain an entity id")

        body = read_source_file(path)
        try:
            return self.normalizer(entity_id, body, context, path)
        except (ValidationError, ValueError, TypeError, OverflowError, RecursionError) as e:
            raise SourceFileError(path, f"invalid entry: {e}") from e


def trades_family(directory: Path) -> SourceFamily:
    return SourceFamily(
        name="trades",
        directory=Path(directory),
        pattern="*_trades.json",
        suffix="_trades.json",
        normalizer=normalize_trades,
    )


def life_events_family(directory: Path) -> SourceFamily:
    return SourceFamily(
        name="life_events",
        directory=Path(directory),
        pattern="*.json",
        suffix=".json",
        normalizer=normalize_life_events,
        entity_suffix="_life",
    )


def generic_events_family(directory: Path) -> SourceFamily:
    return SourceFamily(
        name="events",
        directory=Path(directory),
        pattern="*.json",
        suffix=".json",
        normalizer=normalize_generic_events,
        entity_suffix="_events",
    )


def default_sources(trades_dir: Path, life_events_dir: Path, events_dir: Path) -> list[SourceFamily]:
    """The three families in processing order: trades, life events, events."""
    return [
        trades_family(trades_dir),
        life_events_family(life_events_dir),
        generic_events_family(events_dir),
    ]
