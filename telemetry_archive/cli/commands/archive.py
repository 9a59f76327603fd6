"""
Archive CLI Commands

Commands for the producer log archive:
- run: Archive producer logs now
- prune: Delete archived rows older than N days
- info: Row counts, time span and storage per family
- runs: Recent archive runs
- trades / trade-stats / top-items: Trade analytics
- life-events / death-stats: Life event analytics
"""

from __future__ import annotations

from typing import Annotated, Optional

import duckdb
import typer

from telemetry_archive.cli.context import get_services
from telemetry_archive.cli.output import (
    console,
    log_error,
    log_success,
    log_warning,
    output_json,
    print_frame,
    print_rows,
)
from telemetry_archive.persistence import queries

archive_app = typer.Typer(help="Producer log archive commands")

ARCHIVE_ERRORS = (duckdb.Error, RuntimeError, ValueError, OSError)

JsonOption = Annotated[bool, typer.Option("--json", help="Write JSON to stdout")]
StartOption = Annotated[
    Optional[str], typer.Option("--start", help="Start date/time (ISO-8601, inclusive)")
]
EndOption = Annotated[
    Optional[str], typer.Option("--end", help="End date/time (ISO-8601, inclusive)")
]
GroupByOption = Annotated[str, typer.Option("--group-by", "-g", help="day, week or month")]


@archive_app.command("run")
def archive_run(
    ctx: typer.Context,
    clear: Annotated[
        Optional[bool],
        typer.Option("--clear/--keep", help="Delete source files after archiving"),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Archive producer logs into the archive database now."""
    services = get_services(ctx)
    clear_files = services.config.clear_files if clear is None else clear

    try:
        result = services.pipeline.run_archive(clear_files=clear_files)
    except ARCHIVE_ERRORS as e:
        log_error(f"Error opening archive: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(result.model_dump())

    for family in result.families:
        if family.failed_files:
            log_warning(
                f"{family.family}: {len(family.failed_files)} unparseable file(s) kept: "
                f"{', '.join(family.failed_files)}"
            )

    if result.status == "completed":
        log_success(
            f"Archived {result.trades_archived} trades, {result.life_events_archived} life events, "
            f"{result.events_archived} events; cleared {result.files_cleared} files "
            f"in {result.duration_ms}ms"
        )
    else:
        log_error(f"Archive run {result.status}: {result.error}")
        raise typer.Exit(code=1)


@archive_app.command("prune")
def archive_prune(
    ctx: typer.Context,
    days: Annotated[
        Optional[int],
        typer.Option("--days", "-d", help="Days of history to keep", min=0),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Delete archived rows older than the retention horizon."""
    services = get_services(ctx)
    days_to_keep = services.config.archive_retention_days if days is None else days

    try:
        deleted = services.retention.prune_old_data(days_to_keep)
    except ARCHIVE_ERRORS as e:
        log_error(f"Error pruning archive: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(deleted)
    log_success(
        f"Pruned {deleted['trades']} trades, {deleted['life_events']} life events, "
        f"{deleted['events']} events older than {days_to_keep} days"
    )


@archive_app.command("info")
def archive_info(ctx: typer.Context, json_output: JsonOption = False) -> None:
    """Show row counts, time span and storage per family."""
    services = get_services(ctx)
    try:
        info = queries.get_archive_info(services.archive_store)
    except ARCHIVE_ERRORS as e:
        log_error(f"Error reading archive: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(info)
        return

    console.print(f"[bold]Archive:[/bold] {info['database_path']} ({info['size_bytes']} bytes)")
    print_rows(
        [{"family": family, **info[family]} for family in ("trades", "life_events", "events")],
        title="Archived Families",
    )
    console.print(f"[bold]Runs:[/bold] {info['total_runs']}")


@archive_app.command("runs")
def archive_runs(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of runs")] = 30,
    json_output: JsonOption = False,
) -> None:
    """Show the most recent archive runs."""
    services = get_services(ctx)
    try:
        df = queries.get_archive_runs(services.archive_store, limit=limit)
    except ARCHIVE_ERRORS as e:
        log_error(f"Error reading archive runs: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(df.to_dicts())
    else:
        print_frame(df, title="Archive Runs")


@archive_app.command("trades")
def archive_trades(
    ctx: typer.Context,
    entity_id: Annotated[str, typer.Argument(help="Entity id")],
    limit: Annotated[int, typer.Option("--limit", "-n")] = 100,
    offset: Annotated[int, typer.Option("--offset")] = 0,
    start: StartOption = None,
    end: EndOption = None,
    json_output: JsonOption = False,
) -> None:
    """Show an entity's archived trades, newest first."""
    services = get_services(ctx)
    try:
        result = queries.get_player_trades(
            services.archive_store, entity_id, limit=limit, offset=offset,
            start_date=start, end_date=end,
        )
    except ARCHIVE_ERRORS as e:
        log_error(f"Error querying trades: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(result)
        return

    print_rows(result["trades"], title=f"Trades for {entity_id}")
    console.print(f"{len(result['trades'])} of {result['total_count']} trades")


@archive_app.command("trade-stats")
def archive_trade_stats(
    ctx: typer.Context,
    start: StartOption = None,
    end: EndOption = None,
    group_by: GroupByOption = "day",
    limit: Annotated[int, typer.Option("--limit", "-n")] = queries.MAX_QUERY_LIMIT,
    json_output: JsonOption = False,
) -> None:
    """Trade counts and value per period and trade type."""
    services = get_services(ctx)
    try:
        df = queries.get_trade_stats(
            services.archive_store, start_date=start, end_date=end, group_by=group_by,
            limit=limit,
        )
    except ARCHIVE_ERRORS as e:
        log_error(f"Error querying trade stats: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(df.to_dicts())
    else:
        print_frame(df, title=f"Trade Stats by {group_by}")


@archive_app.command("top-items")
def archive_top_items(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n")] = 20,
    trade_type: Annotated[
        Optional[str], typer.Option("--type", "-t", help="purchase or sale")
    ] = None,
    start: StartOption = None,
    end: EndOption = None,
    json_output: JsonOption = False,
) -> None:
    """Items ranked by total traded value."""
    services = get_services(ctx)
    try:
        df = queries.get_top_items(
            services.archive_store, limit=limit, trade_type=trade_type,
            start_date=start, end_date=end,
        )
    except ARCHIVE_ERRORS as e:
        log_error(f"Error querying top items: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(df.to_dicts())
    else:
        print_frame(df, title="Top Items")


@archive_app.command("life-events")
def archive_life_events(
    ctx: typer.Context,
    entity_id: Annotated[str, typer.Argument(help="Entity id")],
    limit: Annotated[int, typer.Option("--limit", "-n")] = 100,
    offset: Annotated[int, typer.Option("--offset")] = 0,
    event_type: Annotated[
        Optional[str], typer.Option("--type", "-t", help="spawn, respawn, death, ...")
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Show an entity's archived life events, newest first."""
    services = get_services(ctx)
    try:
        result = queries.get_player_life_events(
            services.archive_store, entity_id, limit=limit, offset=offset, event_type=event_type
        )
    except ARCHIVE_ERRORS as e:
        log_error(f"Error querying life events: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(result)
        return

    print_rows(result["events"], title=f"Life Events for {entity_id}")
    console.print(f"{len(result['events'])} of {result['total_count']} events")


@archive_app.command("death-stats")
def archive_death_stats(
    ctx: typer.Context,
    start: StartOption = None,
    end: EndOption = None,
    group_by: GroupByOption = "day",
    limit: Annotated[int, typer.Option("--limit", "-n")] = queries.MAX_QUERY_LIMIT,
    json_output: JsonOption = False,
) -> None:
    """Death counts per period."""
    services = get_services(ctx)
    try:
        df = queries.get_death_stats(
            services.archive_store, start_date=start, end_date=end, group_by=group_by,
            limit=limit,
        )
    except ARCHIVE_ERRORS as e:
        log_error(f"Error querying death stats: {e}")
        raise typer.Exit(code=1)

    if json_output:
        output_json(df.to_dicts())
    else:
        print_frame(df, title=f"Deaths by {group_by}")
