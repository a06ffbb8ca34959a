"""Main Typer application — imports and registers all CLI commands.

Entry point: ``assetcache`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from assetcache.cli.commands.create import create_cmd
from assetcache.cli.commands.inspect_cmd import inspect_cmd
from assetcache.config import config

app = typer.Typer(
    name="assetcache",
    help="Package buildpack assets into content-addressed image layers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="create", help="Create an asset cache image from a buildpack.")(create_cmd)
app.command(name="inspect", help="Show the assets recorded in an asset cache image.")(inspect_cmd)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level, "--log-level", help="Logging level (DEBUG, INFO, WARNING...)."
    ),
) -> None:
    """Configure logging for every subcommand."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
