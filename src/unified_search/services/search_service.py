"""Service for unified search across posts, activities, users and tags."""

import asyncio
import time
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Union

from loguru import logger

from unified_search.config import SearchConfig
from unified_search.repository.search_repository import SearchRepository
from unified_search.schemas.search import (
    ActivityHit,
    PostHit,
    SearchPage,
    SearchRequest,
    SearchResultBucket,
    SearchResults,
    SearchType,
    TagHit,
    UserHit,
    parse_search_request,
)
from unified_search.services.entity_searchers import (
    ActivitySearcher,
    EntitySearcher,
    PostSearcher,
    TagSearcher,
    UserSearcher,
)
from unified_search.services.exceptions import RateLimitedError, SearchInternalError
from unified_search.services.rate_limit import RateGate


BUCKET_TYPES = {
    "posts": SearchResultBucket[PostHit],
    "activities": SearchResultBucket[ActivityHit],
    "users": SearchResultBucket[UserHit],
    "tags": SearchResultBucket[TagHit],
}


def build_bucket(
    page: SearchPage,
    kind: str,
    page_number: int,
    limit: int,
    offset: int,
) -> SearchResultBucket:
    """Wrap a searcher page with pagination metadata.

    ``has_more`` is true while rows remain past this page:
    ``total > offset + len(items)``.
    """
    return BUCKET_TYPES[kind](
        items=page.items,
        total=page.total,
        page=page_number,
        limit=limit,
        has_more=page.total > offset + len(page.items),
    )


def empty_bucket(kind: str, page_number: int, limit: int) -> SearchResultBucket:
    return BUCKET_TYPES[kind](items=[], total=0, page=page_number, limit=limit, has_more=False)


class SearchService:
    """Service for search operations.

    Supports two request shapes:
    1. ``type="all"``: every entity kind at once, small fixed-size buckets
    2. a single entity kind: regular page/limit pagination
    """

    def __init__(
        self,
        search_repository: SearchRepository,
        app_config: Optional[SearchConfig] = None,
        rate_gate: Optional[RateGate] = None,
    ):
        self.repository = search_repository
        self.app_config = app_config or search_repository.app_config
        self.rate_gate = rate_gate
        self.post_searcher = PostSearcher(search_repository, self.app_config)
        self.searchers: Dict[str, EntitySearcher] = {
            "posts": self.post_searcher,
            "activities": ActivitySearcher(search_repository, self.app_config),
            "users": UserSearcher(search_repository, self.app_config),
            "tags": TagSearcher(search_repository, self.app_config),
        }

    async def unified_search(
        self,
        request: SearchRequest,
        now: Optional[datetime] = None,
    ) -> SearchResults:
        """Search the requested entity kinds and assemble the response.

        Raises:
            SearchInternalError: single-type requests whose searcher failed
        """
        start_time = time.perf_counter()

        if request.type == SearchType.ALL:
            buckets = await self._search_all(request, now)
        else:
            buckets = await self._search_single(request, now)

        results = SearchResults(
            query=request.query,
            type=request.type,
            page=request.page,
            limit=request.limit,
            overall_total=sum(bucket.total for bucket in buckets.values()),
            **buckets,
        )

        elapsed_time = time.perf_counter() - start_time
        logger.debug(
            f"Search {request.type.value} for {request.query!r} found "
            f"{results.overall_total} results in {elapsed_time:.3f}s"
        )
        return results

    async def _run_searcher(
        self,
        kind: str,
        request: SearchRequest,
        limit: int,
        offset: int,
        now: Optional[datetime],
    ) -> SearchPage:
        try:
            return await asyncio.wait_for(
                self.searchers[kind].search(request, limit=limit, offset=offset, now=now),
                timeout=self.app_config.bucket_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"{kind} search timed out after {self.app_config.bucket_timeout}s")
            raise SearchInternalError() from e

    async def _search_all(
        self, request: SearchRequest, now: Optional[datetime]
    ) -> Dict[str, SearchResultBucket]:
        limits = {
            kind: min(request.limit, self.app_config.bucket_limits_for_all[kind])
            for kind in self.searchers
        }
        results = await asyncio.gather(
            *(
                self._run_searcher(kind, request, limits[kind], 0, now)
                for kind in self.searchers
            ),
            return_exceptions=True,
        )

        buckets: Dict[str, SearchResultBucket] = {}
        for kind, result in zip(self.searchers, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                # One failing kind does not fail the whole response
                logger.warning(f"{kind} bucket degraded to empty: {result!r}")
                buckets[kind] = empty_bucket(kind, 1, limits[kind])
            else:
                buckets[kind] = build_bucket(result, kind, 1, limits[kind], 0)
        return buckets

    async def _search_single(
        self, request: SearchRequest, now: Optional[datetime]
    ) -> Dict[str, SearchResultBucket]:
        kind = request.type.value
        page = await self._run_searcher(kind, request, request.limit, request.offset, now)

        buckets = {
            other: empty_bucket(other, request.page, request.limit) for other in self.searchers
        }
        buckets[kind] = build_bucket(page, kind, request.page, request.limit, request.offset)
        return buckets

    async def search_content(
        self,
        raw: Union[Mapping[str, Any], SearchRequest],
        identity: str,
        is_admin: bool = False,
    ) -> SearchResults:
        """Entry point for callers: validate, rate-limit, then search.

        Non-admin callers only ever see published posts.

        Raises:
            SearchValidationError: invalid parameters
            RateLimitedError: the rate gate denied the caller
            SearchInternalError: the search could not be completed
        """
        request = parse_search_request(raw)

        if self.rate_gate is not None:
            decision = await self.rate_gate.check(identity)
            if not decision.allowed:
                logger.info(f"Search rate limit exceeded for {identity}")
                raise RateLimitedError(decision.retry_after)

        if not is_admin and not request.only_published:
            request = request.model_copy(update={"only_published": True})

        return await self.unified_search(request)

    async def suggest_posts(self, query: str, limit: int = 5) -> SearchPage[PostHit]:
        """Post title suggestions for search-as-you-type."""
        return await self.post_searcher.suggest(query, limit=limit)
