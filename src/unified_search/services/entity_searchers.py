"""Per-entity searchers.

Each searcher runs the full-text path first and, only when that path fails or
times out, runs the substring path exactly once. Both paths share the same
structural filters, so callers see the same qualifying rows either way; only
the ranking differs.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

from unified_search.config import SearchConfig
from unified_search.repository.search_repository import SearchRepository
from unified_search.schemas.search import (
    ActivityHit,
    PostHit,
    SearchMode,
    SearchPage,
    SearchRequest,
    SearchSort,
    TagHit,
    UserHit,
    parse_search_request,
)
from unified_search.services.exceptions import SearchInternalError

T = TypeVar("T")


async def with_fallback(
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], Awaitable[T]],
    context: str,
    timeout: Optional[float] = None,
) -> T:
    """Run ``primary``; on failure or timeout run ``fallback`` once.

    Raises:
        SearchInternalError: when the fallback fails as well
    """
    try:
        if timeout is None:
            return await primary()
        return await asyncio.wait_for(primary(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{context}: full-text search timed out after {timeout}s, using fallback")
    except Exception as e:
        logger.warning(f"{context}: full-text search failed, using fallback: {e}")

    try:
        return await fallback()
    except Exception as e:
        logger.exception(f"{context}: fallback search failed: {e}")
        raise SearchInternalError() from e


class EntitySearcher(ABC, Generic[T]):
    """Searches one entity kind through a ``SearchRepository``."""

    kind: str = ""

    def __init__(self, repository: SearchRepository, app_config: Optional[SearchConfig] = None):
        self.repository = repository
        self.app_config = app_config or repository.app_config

    @abstractmethod
    async def _query(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int,
        now: Optional[datetime],
    ) -> SearchPage[T]:
        """Run one execution path against the repository."""

    async def search(
        self,
        request: SearchRequest,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> SearchPage[T]:
        """Search this entity kind.

        ``limit`` and ``offset`` default to the request's page window.
        """
        limit = request.limit if limit is None else limit
        offset = request.offset if offset is None else offset

        async def substring() -> SearchPage[T]:
            return await self._query(request, SearchMode.SUBSTRING, limit, offset, now)

        if not self.app_config.fts_enabled:
            try:
                return await substring()
            except Exception as e:
                logger.exception(f"{self.kind} search failed: {e}")
                raise SearchInternalError() from e

        async def fts() -> SearchPage[T]:
            return await self._query(request, SearchMode.FTS, limit, offset, now)

        return await with_fallback(
            fts,
            substring,
            context=f"{self.kind} search for {request.query!r}",
            timeout=self.app_config.fts_timeout,
        )


class PostSearcher(EntitySearcher[PostHit]):
    kind = "posts"

    async def _query(self, request, mode, limit, offset, now):
        return await self.repository.search_posts(request, mode, limit, offset, now=now)

    async def suggest(self, query: str, limit: int = 5) -> SearchPage[PostHit]:
        """Lightweight suggestions for published posts.

        Full-text only, relevance ordered, no tag hydration. Failures degrade
        to an empty page instead of raising.

        Raises:
            SearchValidationError: for queries the validator rejects
        """
        request = parse_search_request(
            {"query": query, "sort": SearchSort.RELEVANCE, "limit": limit, "onlyPublished": True}
        )
        try:
            return await asyncio.wait_for(
                self.repository.search_posts(
                    request, SearchMode.FTS, limit, 0, include_tags=False
                ),
                timeout=self.app_config.fts_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Post suggestions for {query!r} timed out")
        except Exception as e:
            logger.warning(f"Post suggestions for {query!r} failed: {e}")
        return SearchPage[PostHit]()


class ActivitySearcher(EntitySearcher[ActivityHit]):
    kind = "activities"

    async def _query(self, request, mode, limit, offset, now):
        return await self.repository.search_activities(request, mode, limit, offset, now=now)


class UserSearcher(EntitySearcher[UserHit]):
    kind = "users"

    async def _query(self, request, mode, limit, offset, now):
        return await self.repository.search_users(request, mode, limit, offset, now=now)


class TagSearcher(EntitySearcher[TagHit]):
    kind = "tags"

    async def _query(self, request, mode, limit, offset, now):
        return await self.repository.search_tags(request, mode, limit, offset, now=now)
