"""Main CLI application for Occupancy Pacer."""

from pathlib import Path
from typing import Annotated

import typer
from rich.table import Table

from occupancy_pacer import __version__
from occupancy_pacer.cli import queue as queue_cmd
from occupancy_pacer.cli.common import console
from occupancy_pacer.config import get_settings
from occupancy_pacer.logging import setup_logging

app = typer.Typer(
    name="occupancy-pacer",
    help="Pace submissions against a remote queue whose capacity is only observable.",
    add_completion=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"occupancy-pacer version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-error output (WARNING level).",
        ),
    ] = False,
) -> None:
    """Occupancy Pacer - burst, then submit one item per observed free slot."""
    settings = get_settings()
    log_config = settings.logging

    setup_logging(
        level=settings.log_level,
        verbose=verbose,
        quiet=quiet,
        log_file=Path(log_config.log_file) if log_config.log_file else None,
        rotation=log_config.rotation,
        retention=log_config.retention,
        serialize=log_config.serialize,
    )


@app.command()
def config() -> None:
    """Show the effective configuration."""
    settings = get_settings()

    table = Table(title="Occupancy Pacer settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("environment", settings.environment)
    table.add_row("log_level", settings.log_level)
    for section in ("pacing", "signal", "actuator"):
        for key, value in getattr(settings, section).model_dump().items():
            table.add_row(f"{section}.{key}", str(value) if value != "" else "[dim](unset)[/dim]")

    console.print(table)


# Register subcommands
app.add_typer(queue_cmd.app, name="queue")


if __name__ == "__main__":
    app()
