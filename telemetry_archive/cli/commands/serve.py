"""Serve command: run the scheduler in the foreground until interrupted."""

from __future__ import annotations

import threading

import duckdb
import typer

from telemetry_archive.cli.context import get_services
from telemetry_archive.cli.output import console, log_error, log_info


def serve(ctx: typer.Context) -> None:
    """Run the daily archive job and periodic position capture."""
    services = get_services(ctx)
    config = services.config

    try:
        # Open both stores up front so a bad path fails fast
        services.archive_store
        services.snapshot_store
        scheduler = services.build_scheduler()
    except (duckdb.Error, RuntimeError, ValueError, OSError) as e:
        log_error(f"Error starting scheduler: {e}")
        raise typer.Exit(code=1)

    log_info(
        f"Daily archive at {config.archive_hour:02d}:{config.archive_minute:02d} UTC, "
        f"position capture every {config.position_tracking_interval_seconds:g}s"
    )
    console.print("[dim]Press Ctrl+C to stop[/dim]")

    stop_event = threading.Event()
    try:
        scheduler.run_forever(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        log_info("Scheduler stopped")
