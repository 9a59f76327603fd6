"""
Position CLI Commands

Commands for the live position snapshot store:
- capture: Record the current online-players snapshot
- latest: Latest position of every entity
- entities: Every tracked entity with first/last seen
- history: Most recent positions of one entity
- range: Positions of one entity within a time window
- cleanup: Delete positions older than N days
- stats: Store totals
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Annotated, Optional

import duckdb
import typer

from telemetry_archive.cli.context import get_services
from telemetry_archive.cli.output import (
    console,
    log_error,
    log_success,
    output_json,
    print_rows,
)
from telemetry_archive.errors import SourceFileError

positions_app = typer.Typer(help="Live position snapshot commands")

POSITION_ERRORS = (duckdb.Error, RuntimeError, ValueError, OSError)

JsonOption = Annotated[bool, typer.Option("--json", help="Write JSON to stdout")]


def _emit(rows: list[dict], title: str, json_output: bool) -> None:
    if json_output:
        output_json(rows)
    else:
        print_rows(rows, title=title)


@positions_app.command("capture")
def positions_capture(ctx: typer.Context, json_output: JsonOption = False) -> None:
    """Record every online player from the snapshot file once."""
    services = get_services(ctx)
    try:
        result = services.tracker.capture()
    except SourceFileError as e:
        log_error(f"Error reading online players snapshot: {e}")
        raise typer.Exit(code=1)
    except POSITION_ERRORS as e:
        log_error(f"Error recording positions: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(result.model_dump())
    log_success(f"Recorded {result.recorded} of {result.online} online players")


@positions_app.command("latest")
def positions_latest(ctx: typer.Context, json_output: JsonOption = False) -> None:
    """Latest position of every tracked entity, newest first."""
    services = get_services(ctx)
    try:
        records = services.snapshot_store.latest_per_entity()
    except POSITION_ERRORS as e:
        log_error(f"Error querying positions: {e}")
        raise typer.Exit(code=1)

    _emit([r.model_dump() for r in records], "Latest Positions", json_output)


@positions_app.command("entities")
def positions_entities(ctx: typer.Context, json_output: JsonOption = False) -> None:
    """Every tracked entity with first/last seen and record count."""
    services = get_services(ctx)
    try:
        entities = services.snapshot_store.distinct_entities()
    except POSITION_ERRORS as e:
        log_error(f"Error querying entities: {e}")
        raise typer.Exit(code=1)

    _emit([asdict(e) for e in entities], "Tracked Entities", json_output)


@positions_app.command("history")
def positions_history(
    ctx: typer.Context,
    entity_id: Annotated[str, typer.Argument(help="Entity id")],
    limit: Annotated[int, typer.Option("--limit", "-n")] = 100,
    json_output: JsonOption = False,
) -> None:
    """Most recent positions of one entity, newest first."""
    services = get_services(ctx)
    try:
        records = services.snapshot_store.query_by_entity(entity_id, limit=limit)
    except POSITION_ERRORS as e:
        log_error(f"Error querying positions: {e}")
        raise typer.Exit(code=1)

    _emit([r.model_dump() for r in records], f"Positions for {entity_id}", json_output)


@positions_app.command("range")
def positions_range(
    ctx: typer.Context,
    entity_id: Annotated[str, typer.Argument(help="Entity id")],
    start_ts: Annotated[int, typer.Argument(help="Start (epoch seconds, inclusive)")],
    end_ts: Annotated[int, typer.Argument(help="End (epoch seconds, inclusive)")],
    json_output: JsonOption = False,
) -> None:
    """Positions of one entity within a time window, oldest first."""
    services = get_services(ctx)
    try:
        records = services.snapshot_store.query_range(entity_id, start_ts, end_ts)
    except POSITION_ERRORS as e:
        log_error(f"Error querying positions: {e}")
        raise typer.Exit(code=1)

    _emit([r.model_dump() for r in records], f"Positions for {entity_id}", json_output)


@positions_app.command("cleanup")
def positions_cleanup(
    ctx: typer.Context,
    days: Annotated[
        Optional[int],
        typer.Option("--days", "-d", help="Days of history to keep", min=0),
    ] = None,
) -> None:
    """Delete positions older than the retention horizon."""
    services = get_services(ctx)
    days_to_keep = services.config.position_retention_days if days is None else days

    try:
        deleted = services.retention.prune_positions(days_to_keep)
    except POSITION_ERRORS as e:
        log_error(f"Error deleting positions: {e}")
        raise typer.Exit(code=1)

    log_success(f"Deleted {deleted} positions older than {days_to_keep} days")


@positions_app.command("stats")
def positions_stats(ctx: typer.Context, json_output: JsonOption = False) -> None:
    """Total records, unique entities and ingestion time span."""
    services = get_services(ctx)
    try:
        stats = services.snapshot_store.get_stats()
    except POSITION_ERRORS as e:
        log_error(f"Error reading position stats: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(stats)
        return

    for key, value in stats.items():
        console.print(f"[bold]{key}:[/bold] {value}")
