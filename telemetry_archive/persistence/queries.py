"""
Analytical Query Interface

Read-only analytics over the archive store. Aggregations return Polars
DataFrames; paginated listings return a dict carrying the page and the
total match count, the way the event browser does.

Every query clamps ``limit`` to [1, MAX_QUERY_LIMIT] and ``offset`` to
non-negative values, so no caller gets an unbounded result set.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any

import polars as pl

from .archive_store import FAMILY_TABLES, ArchiveStore

MAX_QUERY_LIMIT = 1000

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}

TRADE_TYPES = ("purchase", "sale")


# ============================================================================
# Argument Handling
# ============================================================================


def clamp_limit(limit: int) -> int:
    """Clamp a requested page size to [1, MAX_QUERY_LIMIT]."""
    return max(1, min(int(limit), MAX_QUERY_LIMIT))


def clamp_offset(offset: int) -> int:
    return max(0, int(offset))


def _period_format(group_by: str) -> str:
    try:
        return PERIOD_FORMATS[group_by]
    except KeyError:
        raise ValueError(
            f"Invalid group_by '{group_by}'. Must be one of: {', '.join(PERIOD_FORMATS)}"
        ) from None


def _to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _parse_bound(value: str | date | datetime) -> tuple[datetime, bool]:
    """Return (datetime, is_date_only) for a start/end filter value."""
    if isinstance(value, datetime):
        return _to_utc_naive(value), False
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day), True

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid date filter '{value}'") from None

    return _to_utc_naive(parsed), len(text) == 10


def _time_filters(
    start_date: str | date | datetime | None,
    end_date: str | date | datetime | None,
) -> tuple[list[str], list[Any]]:
    """WHERE fragments for an inclusive event-time window.

    A date-only end bound covers that whole day.
    """
    clauses: list[str] = []
    params: list[Any] = []

    if start_date is not None:
        start, _ = _parse_bound(start_date)
        clauses.append("event_timestamp >= ?")
        params.append(start)

    if end_date is not None:
        end, date_only = _parse_bound(end_date)
        if date_only:
            clauses.append("event_timestamp < ?")
            params.append(end + timedelta(days=1))
        else:
            clauses.append("event_timestamp <= ?")
            params.append(end)

    return clauses, params


def _where(clauses: list[str]) -> str:
    return "WHERE " + " AND ".join(clauses) if clauses else ""


def _isoformat(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


# ============================================================================
# Archive Overview
# ============================================================================


def get_archive_info(store: ArchiveStore) -> dict[str, Any]:
    """Row counts, time span and storage estimate per family, plus run count.

    Returns:
        Dict with:
            - database_path: Archive file path (None in memory)
            - size_bytes: File plus write-ahead log size
            - trades / life_events / events: {count, oldest, newest, storage_bytes}
            - total_runs: Number of ledger rows
    """
    info: dict[str, Any] = {
        "database_path": str(store.db_path) if store.db_path else None,
        "size_bytes": store.size_bytes(),
    }

    with store.cursor() as conn:
        for family, table in FAMILY_TABLES.items():
            count, oldest, newest = conn.execute(
                f"SELECT COUNT(*), MIN(event_timestamp), MAX(event_timestamp) FROM {table}"
            ).fetchone()
            info[family] = {
                "count": count,
                "oldest": _isoformat(oldest),
                "newest": _isoformat(newest),
                "storage_bytes": None,
            }

        info["total_runs"] = conn.execute("SELECT COUNT(*) FROM archive_runs").fetchone()[0]

    for family, table in FAMILY_TABLES.items():
        info[family]["storage_bytes"] = store.table_storage_bytes(table)

    return info


def get_archive_runs(store: ArchiveStore, limit: int = 30) -> pl.DataFrame:
    """Most recent run-ledger rows, newest first."""
    query = """
        SELECT
            id,
            run_date,
            trades_archived,
            life_events_archived,
            events_archived,
            files_cleared,
            duration_ms,
            status,
            error,
            created_at
        FROM archive_runs
        ORDER BY created_at DESC, id DESC
        LIMIT ?
    """
    with store.cursor() as conn:
        return conn.execute(query, [clamp_limit(limit)]).pl()


# ============================================================================
# Trade Queries
# ============================================================================


def get_player_trades(
    store: ArchiveStore,
    entity_id: str,
    limit: int = 100,
    offset: int = 0,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
) -> dict[str, Any]:
    """Paginated, time-filtered trades for one entity, newest first.

    Returns:
        Dict with:
            - trades: List of trade dicts
            - total_count: Total matching trades (before limit/offset)
            - limit: Limit used
            - offset: Offset used

    Examples:
        >>> result = get_player_trades(store, "76561198000000001", limit=10)
        >>> result["total_count"]
        3
        >>> result["trades"][0]["trade_type"]
        'purchase'
    """
    limit = clamp_limit(limit)
    offset = clamp_offset(offset)

    time_clauses, params = _time_filters(start_date, end_date)
    where_clause = _where(["entity_id = ?", *time_clauses])
    params = [entity_id, *params]

    with store.cursor() as conn:
        total_count = conn.execute(
            f"SELECT COUNT(*) FROM archived_trades {where_clause}", params
        ).fetchone()[0]

        df = conn.execute(
            f"""
            SELECT
                id,
                entity_id,
                event_timestamp,
                trade_type,
                trader_name,
                zone_name,
                item_class,
                item_display,
                quantity,
                price,
                currency,
                archived_at,
                archive_date
            FROM archived_trades
            {where_clause}
            ORDER BY event_timestamp DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            [*params, limit, offset],
        ).pl()

    trades = [
        {key: _isoformat(value) for key, value in row.items()} for row in df.to_dicts()
    ]

    return {
        "trades": trades,
        "total_count": total_count,
        "limit": limit,
        "offset": offset,
    }


def get_trade_stats(
    store: ArchiveStore,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
    group_by: str = "day",
    limit: int = MAX_QUERY_LIMIT,
) -> pl.DataFrame:
    """Trade counts, quantity and value per time bucket and trade type.

    Returns:
        Polars DataFrame with columns:
        - period: Bucket label (2024-05-01, 2024-W17 or 2024-05)
        - trade_type: purchase or sale
        - count: Number of trades
        - total_quantity: Units traded
        - total_value: Sum of price * quantity (float)

    Raises:
        ValueError: If group_by is not day, week or month
    """
    period_format = _period_format(group_by)
    clauses, params = _time_filters(start_date, end_date)

    query = f"""
        SELECT
            strftime(event_timestamp, '{period_format}') AS period,
            trade_type,
            COUNT(*) AS count,
            CAST(SUM(quantity) AS BIGINT) AS total_quantity,
            SUM(CAST(price AS DOUBLE) * quantity) AS total_value
        FROM archived_trades
        {_where(clauses)}
        GROUP BY period, trade_type
        ORDER BY period DESC, trade_type
        LIMIT ?
    """
    with store.cursor() as conn:
        return conn.execute(query, [*params, clamp_limit(limit)]).pl()


def get_top_items(
    store: ArchiveStore,
    limit: int = 20,
    trade_type: str | None = None,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
) -> pl.DataFrame:
    """Items ranked by total value (price * quantity), highest first.

    Grouped by item and trade type, with trade count, total quantity and
    average price.

    Raises:
        ValueError: If trade_type is not purchase or sale
    """
    if trade_type is not None and trade_type not in TRADE_TYPES:
        raise ValueError(
            f"Invalid trade_type '{trade_type}'. Must be one of: {', '.join(TRADE_TYPES)}"
        )

    clauses, params = _time_filters(start_date, end_date)
    if trade_type is not None:
        clauses.insert(0, "trade_type = ?")
        params.insert(0, trade_type)

    query = f"""
        SELECT
            item_class,
            MAX(item_display) AS item_display,
            trade_type,
            COUNT(*) AS trade_count,
            CAST(SUM(quantity) AS BIGINT) AS total_quantity,
            SUM(CAST(price AS DOUBLE) * quantity) AS total_value,
            AVG(price) AS avg_price
        FROM archived_trades
        {_where(clauses)}
        GROUP BY item_class, trade_type
        ORDER BY total_value DESC, item_class, trade_type
        LIMIT ?
    """
    with store.cursor() as conn:
        return conn.execute(query, [*params, clamp_limit(limit)]).pl()


# ============================================================================
# Life Event Queries
# ============================================================================


def get_player_life_events(
    store: ArchiveStore,
    entity_id: str,
    limit: int = 100,
    offset: int = 0,
    event_type: str | None = None,
) -> dict[str, Any]:
    """Paginated life events for one entity, newest first.

    Returns:
        Dict with events, total_count, limit and offset. Each event's
        ``data`` payload is returned as stored (a JSON string).
    """
    limit = clamp_limit(limit)
    offset = clamp_offset(offset)

    where_clauses = ["entity_id = ?"]
    params: list[Any] = [entity_id]

    if event_type is not None:
        where_clauses.append("event_type = ?")
        params.append(event_type)

    where_clause = _where(where_clauses)

    with store.cursor() as conn:
        total_count = conn.execute(
            f"SELECT COUNT(*) FROM archived_life_events {where_clause}", params
        ).fetchone()[0]

        rows = conn.execute(
            f"""
            SELECT id, entity_id, event_timestamp, event_type, data, archived_at, archive_date
            FROM archived_life_events
            {where_clause}
            ORDER BY event_timestamp DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            [*params, limit, offset],
        ).fetchall()

    events = []
    for row in rows:
        events.append({
            "id": row[0],
            "entity_id": row[1],
            "event_timestamp": _isoformat(row[2]),
            "event_type": row[3],
            "data": row[4],
            "archived_at": _isoformat(row[5]),
            "archive_date": row[6],
        })

    return {
        "events": events,
        "total_count": total_count,
        "limit": limit,
        "offset": offset,
    }


def get_death_stats(
    store: ArchiveStore,
    start_date: str | date | datetime | None = None,
    end_date: str | date | datetime | None = None,
    group_by: str = "day",
    limit: int = MAX_QUERY_LIMIT,
) -> pl.DataFrame:
    """Death counts per time bucket, most recent bucket first.

    Returns:
        Polars DataFrame with columns period and deaths, at most ``limit``
        buckets
    """
    period_format = _period_format(group_by)
    clauses, params = _time_filters(start_date, end_date)
    clauses.insert(0, "event_type = 'death'")

    query = f"""
        SELECT
            strftime(event_timestamp, '{period_format}') AS period,
            COUNT(*) AS deaths
        FROM archived_life_events
        {_where(clauses)}
        GROUP BY period
        ORDER BY period DESC
        LIMIT ?
    """
    with store.cursor() as conn:
        return conn.execute(query, [*params, clamp_limit(limit)]).pl()
