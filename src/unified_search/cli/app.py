from typing import Optional

import typer

from unified_search import __version__
from unified_search.config import init_cli_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        typer.echo(f"unified-search version: {__version__}")
        raise typer.Exit()


app = typer.Typer(name="unified-search", help="Search posts, activities, users and tags")


@app.callback()
def app_callback(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Unified search command line interface."""
    # Commands print JSON on stdout, so logs only go to the log file
    init_cli_logging()
