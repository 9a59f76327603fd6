"""Telemetry Archive CLI - Main entry point."""

from pathlib import Path
from typing import Annotated, Optional

import typer

from telemetry_archive import __version__

app = typer.Typer(
    name="telemetry-archive",
    help="Telemetry Archive - position snapshots and producer log archival",
    add_completion=True,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from telemetry_archive.cli.output import console
        console.print(f"[bold]Telemetry Archive[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="YAML configuration file (defaults to environment variables)",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Debug logging"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Telemetry Archive CLI - archive producer logs and query the stores."""
    from telemetry_archive.cli.context import CliState
    from telemetry_archive.cli.output import setup_logging

    setup_logging(verbose)
    ctx.obj = CliState(config_path=config)


# Import commands after app is defined to avoid circular imports
from telemetry_archive.cli.commands.archive import archive_app  # noqa: E402
from telemetry_archive.cli.commands.db import db_app  # noqa: E402
from telemetry_archive.cli.commands.positions import positions_app  # noqa: E402
from telemetry_archive.cli.commands.serve import serve  # noqa: E402

app.command(name="serve", help="Run the archive and position capture scheduler")(serve)
app.add_typer(archive_app, name="archive")
app.add_typer(positions_app, name="positions")
app.add_typer(db_app, name="db")


if __name__ == "__main__":
    app()
