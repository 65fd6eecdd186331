"""Repository for search operations.

This module provides the search repository interface.
The actual repository implementations are backend-specific:
- SQLiteSearchRepository: Uses FTS5 shadow tables
- PostgresSearchRepository: Uses tsvector/tsquery with GIN indexes
"""

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_search.config import ConfigManager, DatabaseBackend, SearchConfig
from unified_search.repository.postgres_search_repository import PostgresSearchRepository
from unified_search.repository.sqlite_search_repository import SQLiteSearchRepository
from unified_search.schemas.search import (
    ActivityHit,
    PostHit,
    SearchMode,
    SearchPage,
    SearchRequest,
    TagHit,
    UserHit,
)


class SearchRepository(Protocol):
    """Protocol defining the search repository interface.

    Both SQLite and Postgres implementations must satisfy this protocol.
    """

    app_config: SearchConfig

    async def search_posts(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
        include_tags: bool = True,
    ) -> SearchPage[PostHit]:
        """Search posts matching the request filters."""
        ...

    async def search_activities(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> SearchPage[ActivityHit]:
        """Search non-deleted activities."""
        ...

    async def search_users(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> SearchPage[UserHit]:
        """Search active users."""
        ...

    async def search_tags(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> SearchPage[TagHit]:
        """Search canonical tags."""
        ...


def create_search_repository(
    session_maker: async_sessionmaker[AsyncSession],
    app_config: Optional[SearchConfig] = None,
    database_backend: Optional[DatabaseBackend] = None,
) -> SearchRepository:
    """Factory function to create the appropriate search repository based on database backend.

    Args:
        session_maker: SQLAlchemy async session maker
        app_config: Configuration for ranking, timeouts and the FTS language
        database_backend: Optional explicit backend. If not provided, read from the config.

    Returns:
        SearchRepository: Backend-appropriate search repository instance
    """
    config = app_config or ConfigManager().config
    if database_backend is None:
        database_backend = config.database_backend

    if database_backend == DatabaseBackend.POSTGRES:
        return PostgresSearchRepository(session_maker, app_config=config)
    return SQLiteSearchRepository(session_maker, app_config=config)


__all__ = [
    "SearchRepository",
    "create_search_repository",
]
