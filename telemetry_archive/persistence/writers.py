"""
DuckDB Write Functions

Batch write operations for both stores.

Records are validated pydantic models; each batch is turned into a Polars
DataFrame with a schema derived from the model and inserted in a single
statement via DuckDB's replacement scan over Arrow memory.

Callers own the transaction: these functions only execute the INSERT on
the cursor they are given.
"""

import inspect
from datetime import datetime
from enum import Enum
from typing import Any

import duckdb
import polars as pl
from pydantic import BaseModel

from .models import (
    ArchivedGenericEventRecord,
    ArchivedLifeEventRecord,
    ArchivedTradeRecord,
    ArchiveRunRecord,
    PositionRecord,
)
from .schema_generator import table_name_of, unwrap_optional

POLARS_TYPE_MAP: dict[Any, Any] = {
    str: pl.Utf8,
    int: pl.Int64,
    float: pl.Float64,
    bool: pl.Boolean,
    datetime: pl.Datetime("us"),
}


def polars_schema_for(model: type[BaseModel], exclude: set[str] | None = None) -> dict[str, Any]:
    """Build a Polars schema from a model's field annotations.

    Examples:
        >>> polars_schema_for(ArchiveRunRecord, exclude={"id"})["duration_ms"]
        Int64
    """
    exclude = exclude or set()
    schema: dict[str, Any] = {}
    for field_name, field_info in model.model_fields.items():
        if field_name in exclude:
            continue
        py_type = unwrap_optional(field_info.annotation)
        if inspect.isclass(py_type) and issubclass(py_type, Enum):
            schema[field_name] = pl.Utf8
        else:
            schema[field_name] = POLARS_TYPE_MAP.get(py_type, pl.Utf8)
    return schema


def _record_rows(records: list[BaseModel], columns: list[str]) -> list[dict[str, Any]]:
    rows = []
    for record in records:
        row = record.model_dump(include=set(columns))
        for key, value in row.items():
            if isinstance(value, Enum):
                row[key] = value.value
        rows.append(row)
    return rows


def _write_records(
    conn: duckdb.DuckDBPyConnection,
    model: type[BaseModel],
    records: list[Any],
) -> int:
    """Insert validated records into the model's table, letting ``id`` default."""
    if not records:
        return 0

    schema = polars_schema_for(model, exclude={"id"})
    columns = list(schema)

    df = pl.DataFrame(_record_rows(records, columns), schema=schema)  # noqa: F841

    column_list = ", ".join(columns)
    table_name = table_name_of(model)
    conn.execute(f"INSERT INTO {table_name} ({column_list}) SELECT {column_list} FROM df")

    return len(records)


# ============================================================================
# SnapshotStore
# ============================================================================


def write_positions_batch(
    conn: duckdb.DuckDBPyConnection,
    positions: list[PositionRecord],
) -> int:
    """Write position observations to DuckDB.

    Args:
        conn: DuckDB cursor with an open transaction
        positions: Records with ``ingested_at`` already assigned

    Returns:
        Number of positions written
    """
    return _write_records(conn, PositionRecord, positions)


# ============================================================================
# ArchiveStore
# ============================================================================


def write_trades_batch(
    conn: duckdb.DuckDBPyConnection,
    trades: list[ArchivedTradeRecord],
) -> int:
    """Write archived trades to DuckDB.

    Returns:
        Number of trades written

    Examples:
        >>> count = write_trades_batch(conn, trades)
        >>> print(f"Archived {count} trades")
    """
    return _write_records(conn, ArchivedTradeRecord, trades)


def write_life_events_batch(
    conn: duckdb.DuckDBPyConnection,
    events: list[ArchivedLifeEventRecord],
) -> int:
    """Write archived life events to DuckDB."""
    return _write_records(conn, ArchivedLifeEventRecord, events)


def write_generic_events_batch(
    conn: duckdb.DuckDBPyConnection,
    events: list[ArchivedGenericEventRecord],
) -> int:
    """Write archived generic item events to DuckDB."""
    return _write_records(conn, ArchivedGenericEventRecord, events)


def write_archive_run(
    conn: duckdb.DuckDBPyConnection,
    run: ArchiveRunRecord,
) -> int:
    """Append one row to the archive run ledger.

    Returns:
        The id assigned to the ledger row
    """
    columns = [name for name in ArchiveRunRecord.model_fields if name != "id"]
    row = _record_rows([run], columns)[0]

    placeholders = ", ".join("?" for _ in columns)
    result = conn.execute(
        f"INSERT INTO archive_runs ({', '.join(columns)}) VALUES ({placeholders}) RETURNING id",
        [row[name] for name in columns],
    ).fetchone()

    return result[0]
