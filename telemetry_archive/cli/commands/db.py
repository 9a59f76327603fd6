"""
Database Management CLI Commands

Commands for managing the two DuckDB stores:
- init: Initialize database schema
- migrate: Apply pending migrations
- validate: Validate schema against Pydantic models
- create-migration: Create new migration template
- list: List all tables
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

import duckdb
import typer
from rich.table import Table

from telemetry_archive.cli.context import get_state
from telemetry_archive.cli.output import console, log_error
from telemetry_archive.persistence.connection import DatabaseManager
from telemetry_archive.persistence.models import ARCHIVE_MODELS, SNAPSHOT_MODELS

# Create sub-app for database commands
db_app = typer.Typer(help="Database management commands")

DB_ERRORS = (duckdb.Error, RuntimeError, OSError, ValueError)


class StoreName(str, Enum):
    SNAPSHOT = "snapshot"
    ARCHIVE = "archive"


StoreOption = Annotated[
    StoreName,
    typer.Option("--store", "-s", help="Which store to operate on"),
]
DbPathOption = Annotated[
    Path | None,
    typer.Option("--db-path", "-d", help="Path to database file (defaults to config)"),
]
MigrationsDirOption = Annotated[
    Path | None,
    typer.Option("--migrations-dir", "-m", help="Migrations directory (defaults to config)"),
]


def _resolve(ctx: typer.Context, store: StoreName, db_path: Path | None) -> tuple[Path, list]:
    """Pick the store's models and its path (explicit or from config)."""
    if store is StoreName.SNAPSHOT:
        return db_path or get_state(ctx).config.snapshot_db_path, SNAPSHOT_MODELS
    return db_path or get_state(ctx).config.archive_db_path, ARCHIVE_MODELS


def _migrations_dir(ctx: typer.Context, store: StoreName, migrations_dir: Path | None) -> Path:
    if migrations_dir is not None:
        return migrations_dir
    config = get_state(ctx).config
    if store is StoreName.SNAPSHOT:
        return config.snapshot_migrations_dir
    return config.archive_migrations_dir


def _open(ctx: typer.Context, store: StoreName, path: Path, models: list) -> DatabaseManager:
    manager = DatabaseManager(path, models, name=store.value)
    ctx.call_on_close(manager.close)
    return manager


@db_app.command("init")
def db_init(
    ctx: typer.Context,
    store: StoreOption = StoreName.ARCHIVE,
    db_path: DbPathOption = None,
) -> None:
    """Initialize database schema from Pydantic models."""
    path, models = _resolve(ctx, store, db_path)
    try:
        manager = _open(ctx, store, path, models)
        console.print(f"[yellow]Initializing {store.value} database at {manager.describe()}...[/yellow]")
        manager.initialize_schema()
    except DB_ERRORS as e:
        log_error(f"Error initializing database: {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Database initialized at {manager.describe()}[/green]")


@db_app.command("migrate")
def db_migrate(
    ctx: typer.Context,
    store: StoreOption = StoreName.ARCHIVE,
    db_path: DbPathOption = None,
    migrations_dir: MigrationsDirOption = None,
) -> None:
    """Apply the store's pending schema migrations."""
    path, models = _resolve(ctx, store, db_path)
    migrations_dir = _migrations_dir(ctx, store, migrations_dir)
    try:
        manager = _open(ctx, store, path, models)
        console.print(f"[yellow]Checking {migrations_dir} for pending migrations...[/yellow]")

        migration_manager = manager.migration_manager(migrations_dir)
        pending = migration_manager.pending()

        if not pending:
            console.print("[green]✓ No pending migrations[/green]")
            return

        console.print(f"[yellow]Found {len(pending)} pending migration(s)[/yellow]")
        for migration in pending:
            console.print(f"  • Migration {migration.version}: {migration.description}")

        applied = migration_manager.apply_pending()
    except DB_ERRORS as e:
        log_error(f"Error applying migrations: {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Applied {len(applied)} migration(s)[/green]")


@db_app.command("validate")
def db_validate(
    ctx: typer.Context,
    store: StoreOption = StoreName.ARCHIVE,
    db_path: DbPathOption = None,
) -> None:
    """Validate database schema against Pydantic models."""
    path, models = _resolve(ctx, store, db_path)
    try:
        manager = _open(ctx, store, path, models)
        console.print("[yellow]Validating database schema...[/yellow]")
        is_valid = manager.validate_schema()
    except DB_ERRORS as e:
        log_error(f"Error validating schema: {e}")
        raise typer.Exit(code=1)

    if not is_valid:
        log_error("Schema validation failed")
        console.print("[yellow]Run 'telemetry-archive db migrate' to fix schema[/yellow]")
        raise typer.Exit(code=1)

    console.print("[green]✓ Schema validation passed[/green]")


@db_app.command("create-migration")
def db_create_migration(
    ctx: typer.Context,
    name: Annotated[
        str,
        typer.Argument(help="Migration name (e.g., 'add_zone_index')"),
    ],
    store: StoreOption = StoreName.ARCHIVE,
    db_path: DbPathOption = None,
    migrations_dir: MigrationsDirOption = None,
) -> None:
    """Create a new migration template in the store's migrations directory."""
    path, models = _resolve(ctx, store, db_path)
    migrations_dir = _migrations_dir(ctx, store, migrations_dir)
    try:
        manager = _open(ctx, store, path, models)
        filepath = manager.migration_manager(migrations_dir).create_template(
            name, manager.table_names()
        )
    except DB_ERRORS as e:
        log_error(f"Error creating migration: {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Created migration template: {filepath}[/green]")
    console.print("[yellow]Next steps:[/yellow]")
    console.print(f"  1. Add SQL statements to {filepath}")
    console.print("  2. Update the matching model in telemetry_archive/persistence/models.py")
    console.print(f"  3. Run 'telemetry-archive db migrate --store {store.value}' or reopen the store")


@db_app.command("list")
def db_list(
    ctx: typer.Context,
    store: StoreOption = StoreName.ARCHIVE,
    db_path: DbPathOption = None,
) -> None:
    """List all tables in the database."""
    path, models = _resolve(ctx, store, db_path)
    try:
        result = _open(ctx, store, path, models).list_tables()
    except DB_ERRORS as e:
        log_error(f"Error listing tables: {e}")
        raise typer.Exit(code=1)

    if not result:
        console.print("[yellow]No tables found in database[/yellow]")
        return

    table = Table(title="Database Tables")
    table.add_column("Table Name", style="cyan")
    table.add_column("Columns", justify="right", style="magenta")

    for table_name, column_count in result:
        table.add_row(table_name, str(column_count))

    console.print(table)
