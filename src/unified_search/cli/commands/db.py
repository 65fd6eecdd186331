"""Database management commands."""

import typer
from loguru import logger
from rich.console import Console

from unified_search import db
from unified_search.cli.app import app
from unified_search.cli.commands.command_utils import run_with_cleanup
from unified_search.config import ConfigManager

console = Console()


async def run_init_db() -> None:
    config = ConfigManager().config
    await db.get_or_create_db(config, init_tables=True)


@app.command("init-db")
def init_db() -> None:
    """Create the content tables and the full-text search index.

    Safe to run repeatedly; rows missing from the index are backfilled.
    """
    try:
        run_with_cleanup(run_init_db())
        console.print("[green]Search database initialized[/green]")
    except Exception as e:
        logger.exception(f"Error initializing database: {e}")
        typer.echo(f"Error initializing database: {e}", err=True)
        raise typer.Exit(code=1)
