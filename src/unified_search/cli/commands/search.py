"""Search command."""

from typing import Annotated, Any, Dict, List, Optional

import typer
from loguru import logger

from unified_search import db
from unified_search.cli.app import app
from unified_search.cli.commands.command_utils import run_with_cleanup
from unified_search.config import ConfigManager
from unified_search.repository import create_search_repository
from unified_search.schemas.search import SearchResults
from unified_search.services.exceptions import (
    RateLimitedError,
    SearchInternalError,
    SearchValidationError,
)
from unified_search.services.rate_limit import InMemoryRateGate
from unified_search.services.search_service import SearchService


async def run_search(raw: Dict[str, Any], identity: str, is_admin: bool) -> SearchResults:
    config = ConfigManager().config
    _, session_maker = await db.get_or_create_db(config)
    repository = create_search_repository(session_maker, app_config=config)
    rate_gate = InMemoryRateGate(config.rate_limit_requests, config.rate_limit_window)
    service = SearchService(repository, config, rate_gate=rate_gate)
    return await service.search_content(raw, identity=identity, is_admin=is_admin)


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Text to search for")],
    type: Annotated[
        str, typer.Option("--type", "-t", help="all, posts, activities, users or tags")
    ] = "all",
    page: Annotated[int, typer.Option(help="Page number (single type searches)")] = 1,
    limit: Annotated[int, typer.Option(help="Results per page, 1-50")] = 20,
    sort: Annotated[str, typer.Option(help="relevance or recency")] = "relevance",
    author_id: Annotated[
        Optional[str], typer.Option("--author-id", help="Only posts/activities by this author")
    ] = None,
    tag: Annotated[
        Optional[List[str]],
        typer.Option("--tag", help="Tag id; repeat to require several tags"),
    ] = None,
    published_from: Annotated[
        Optional[str], typer.Option("--from", help="Earliest publication date")
    ] = None,
    published_to: Annotated[
        Optional[str], typer.Option("--to", help="Latest publication date")
    ] = None,
    include_drafts: bool = typer.Option(
        False, "--include-drafts", help="Include unpublished posts (admin only)"
    ),
    identity: str = typer.Option("cli", help="Caller identity used for rate limiting"),
    admin: bool = typer.Option(False, "--admin", help="Search with admin privileges"),
):
    """Search posts, activities, users and tags and print the results as JSON."""
    raw: Dict[str, Any] = {
        "query": query,
        "type": type,
        "page": page,
        "limit": limit,
        "sort": sort,
        "authorId": author_id,
        "tagIds": tag,
        "publishedFrom": published_from,
        "publishedTo": published_to,
        "onlyPublished": not include_drafts,
    }

    try:
        results = run_with_cleanup(run_search(raw, identity, admin))
    except SearchValidationError as e:
        typer.echo(f"Invalid {e.field}: {e.message}", err=True)
        raise typer.Exit(code=1)
    except RateLimitedError as e:  # pragma: no cover
        typer.echo(f"Rate limit exceeded, retry after {e.retry_after or 0:.0f}s", err=True)
        raise typer.Exit(code=1)
    except SearchInternalError as e:
        logger.error(f"Search failed: {e}")
        typer.echo(f"Search failed: {e.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(results.model_dump_json(by_alias=True, indent=2))
