"""Abstract base class for search repository implementations."""

import json
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy import Row, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_search import db
from unified_search.config import SearchConfig
from unified_search.models.search import (
    ACTIVITIES,
    POSTS,
    TAGS,
    USERS,
    SearchableTable,
)
from unified_search.repository.search_filters import (
    SqlFilter,
    activity_filters,
    post_filters,
    tag_filters,
    user_filters,
)
from unified_search.schemas.search import (
    ActivityHit,
    AuthorSummary,
    PostHit,
    SearchMode,
    SearchPage,
    SearchRequest,
    SearchSort,
    TagHit,
    TagSummary,
    UserHit,
)
from unified_search.services.ranking import RankWeights, rank_sql
from unified_search.utils import parse_db_timestamp

TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


def query_tokens(query: str) -> List[str]:
    """Split a query into the word tokens a full-text index can match."""
    return TOKEN_PATTERN.findall(query.lower())


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so the value matches literally (escape char is backslash)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SearchRepositoryBase(ABC):
    """Abstract base class for backend-specific search repository implementations.

    Query assembly, ranking, counting and row hydration are shared. Backends
    supply the full-text clauses, the substring predicate and the timestamp
    arithmetic.

    Concrete implementations:
    - SQLiteSearchRepository: Uses FTS5 shadow tables with MATCH queries
    - PostgresSearchRepository: Uses tsvector/tsquery with GIN indexes
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        app_config: Optional[SearchConfig] = None,
    ):
        self.session_maker = session_maker
        self.app_config = app_config or SearchConfig()
        self.weights = RankWeights.from_config(self.app_config)

    # ------------------------------------------------------------------
    # Abstract methods (backend-specific)
    # ------------------------------------------------------------------

    @abstractmethod
    def _prepare_search_term(self, term: str) -> str:
        """Prepare a search term for backend-specific query syntax.

        Raises:
            UnsupportedFtsQueryError: when the term has no indexable tokens

        Backend-specific implementations:
        - SQLite: quoted FTS5 prefix phrases, implicitly AND-ed
        - Postgres: tsquery syntax with the :* prefix operator
        """
        pass

    @abstractmethod
    def _fts_clauses(self, table: SearchableTable) -> Tuple[str, str, str]:
        """Return ``(join, condition, relevance)`` SQL for a full-text match on ``:text``.

        ``relevance`` must evaluate to a value in [0, 1].
        """
        pass

    @abstractmethod
    def _contains_sql(self, column: str) -> str:
        """Case-insensitive containment of ``:pattern`` in ``column``."""
        pass

    def _substring_pattern(self, query: str) -> str:
        """LIKE pattern matching ``query`` anywhere, with wildcards escaped."""
        return f"%{escape_like(query.lower())}%"

    @abstractmethod
    def _age_seconds_sql(self, timestamp_expr: str, now_expr: str) -> str:
        """Seconds between ``timestamp_expr`` and ``now_expr``, never negative."""
        pass

    @abstractmethod
    def _bind_timestamp(self, name: str, value: datetime) -> Tuple[str, Any]:
        """Return the SQL placeholder and bound value for a timestamp parameter."""
        pass

    # ------------------------------------------------------------------
    # Per-entity searches
    # ------------------------------------------------------------------

    async def search_posts(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
        include_tags: bool = True,
    ) -> SearchPage[PostHit]:
        filters = post_filters(request, self._bind_timestamp)
        rows, total = await self._search_table(
            table=POSTS,
            kind="posts",
            request=request,
            mode=mode,
            filters=filters,
            columns=(
                "posts.id, posts.slug, posts.title, posts.excerpt, posts.cover_image, "
                "posts.published, posts.published_at, posts.created_at, posts.view_count, "
                "posts.author_id, author.name AS author_name, "
                "author.avatar_url AS author_avatar_url"
            ),
            joins="LEFT JOIN users AS author ON author.id = posts.author_id",
            timestamp_expr="COALESCE(posts.published_at, posts.created_at)",
            limit=limit,
            offset=offset,
            now=now,
        )

        tags_by_post: Dict[str, List[TagSummary]] = {}
        if include_tags and rows:
            tags_by_post = await self._fetch_post_tags([row.id for row in rows])

        items = [
            PostHit(
                id=row.id,
                slug=row.slug,
                title=row.title,
                excerpt=row.excerpt,
                cover_image=row.cover_image,
                published=bool(row.published),
                published_at=parse_db_timestamp(row.published_at),
                created_at=parse_db_timestamp(row.created_at),
                view_count=row.view_count or 0,
                author=self._author_summary(row),
                tags=tags_by_post.get(row.id, []),
                rank=self._rank_value(row.search_rank),
            )
            for row in rows
        ]
        return SearchPage[PostHit](items=items, total=total)

    async def search_activities(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> SearchPage[ActivityHit]:
        rows, total = await self._search_table(
            table=ACTIVITIES,
            kind="activities",
            request=request,
            mode=mode,
            filters=activity_filters(request),
            columns=(
                "activities.id, activities.content, activities.image_urls, "
                "activities.created_at, activities.author_id, author.name AS author_name, "
                "author.avatar_url AS author_avatar_url"
            ),
            joins="LEFT JOIN users AS author ON author.id = activities.author_id",
            timestamp_expr="activities.created_at",
            limit=limit,
            offset=offset,
            now=now,
        )

        items = [
            ActivityHit(
                id=row.id,
                content=row.content,
                image_urls=self._json_list(row.image_urls),
                created_at=parse_db_timestamp(row.created_at),
                author=self._author_summary(row),
                rank=self._rank_value(row.search_rank),
            )
            for row in rows
        ]
        return SearchPage[ActivityHit](items=items, total=total)

    async def search_users(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> SearchPage[UserHit]:
        rows, total = await self._search_table(
            table=USERS,
            kind="users",
            request=request,
            mode=mode,
            filters=user_filters(request),
            columns="users.id, users.name, users.avatar_url, users.bio, users.created_at",
            timestamp_expr="users.created_at",
            limit=limit,
            offset=offset,
            now=now,
        )

        items = [
            UserHit(
                id=row.id,
                name=row.name,
                avatar_url=row.avatar_url,
                bio=row.bio,
                created_at=parse_db_timestamp(row.created_at),
                rank=self._rank_value(row.search_rank),
            )
            for row in rows
        ]
        return SearchPage[UserHit](items=items, total=total)

    async def search_tags(
        self,
        request: SearchRequest,
        mode: SearchMode,
        limit: int,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> SearchPage[TagHit]:
        rows, total = await self._search_table(
            table=TAGS,
            kind="tags",
            request=request,
            mode=mode,
            filters=tag_filters(request),
            columns=(
                "tags.id, tags.name, tags.slug, tags.description, tags.color, "
                "tags.posts_count, tags.created_at"
            ),
            timestamp_expr="tags.created_at",
            limit=limit,
            offset=offset,
            now=now,
        )

        items = [
            TagHit(
                id=row.id,
                name=row.name,
                slug=row.slug,
                description=row.description,
                color=row.color,
                posts_count=row.posts_count or 0,
                created_at=parse_db_timestamp(row.created_at),
                rank=self._rank_value(row.search_rank),
            )
            for row in rows
        ]
        return SearchPage[TagHit](items=items, total=total)

    # ------------------------------------------------------------------
    # Shared query assembly
    # ------------------------------------------------------------------

    def _substring_clauses(self, table: SearchableTable) -> Tuple[str, str]:
        """Return ``(condition, relevance)`` for the substring path.

        Relevance is the weight of the best matching column relative to the
        heaviest column of the table.
        """
        predicates = [
            (self._contains_sql(f"{table.name}.{column.name}"), column.weight)
            for column in table.columns
        ]
        condition = "(" + " OR ".join(predicate for predicate, _ in predicates) + ")"
        cases = " ".join(
            f"WHEN {predicate} THEN {weight / table.max_weight:.6f}"
            for predicate, weight in predicates
        )
        relevance = f"(CASE {cases} ELSE 0.0 END)"
        return condition, relevance

    def _order_by(self, sort: SearchSort, id_expr: str) -> str:
        if sort == SearchSort.RECENCY:
            return f"sort_ts DESC NULLS LAST, search_rank DESC, {id_expr} DESC"
        return f"search_rank DESC, sort_ts DESC, {id_expr} DESC"

    async def _search_table(
        self,
        table: SearchableTable,
        kind: str,
        request: SearchRequest,
        mode: SearchMode,
        filters: SqlFilter,
        columns: str,
        timestamp_expr: str,
        limit: int,
        offset: int,
        now: Optional[datetime] = None,
        joins: str = "",
    ) -> Tuple[Sequence[Row], int]:
        """Run the ranked page query and its COUNT query for one table."""
        conditions = list(filters.conditions)
        params: Dict[str, Any] = dict(filters.params)

        if mode == SearchMode.FTS:
            params["text"] = self._prepare_search_term(request.query)
            match_join, match_condition, relevance = self._fts_clauses(table)
        else:
            params["pattern"] = self._substring_pattern(request.query)
            match_join = ""
            match_condition, relevance = self._substring_clauses(table)

        if match_condition:
            conditions.append(match_condition)
        where_clause = " AND ".join(conditions) if conditions else "1=1"
        count_params = dict(params)

        now_expr, params["now"] = self._bind_timestamp("now", now or datetime.now(timezone.utc))
        rank_expr = rank_sql(
            relevance,
            self._age_seconds_sql(timestamp_expr, now_expr),
            self.app_config.half_life_seconds(kind),
            self.weights,
        )
        params["limit"] = limit
        params["offset"] = offset

        sql = f"""
            SELECT
                {columns},
                {rank_expr} AS search_rank,
                {timestamp_expr} AS sort_ts
            FROM {table.name}
            {match_join}
            {joins}
            WHERE {where_clause}
            ORDER BY {self._order_by(request.sort, f"{table.name}.id")}
            LIMIT :limit
            OFFSET :offset
        """
        count_sql = f"SELECT COUNT(*) FROM {table.name} {match_join} WHERE {where_clause}"

        logger.trace(f"Search {sql} params: {params}")
        async with db.scoped_session(self.session_maker) as session:
            start_time = time.perf_counter()
            result = await session.execute(text(sql), params)
            rows = result.fetchall()
            total = (await session.execute(text(count_sql), count_params)).scalar_one()
            elapsed_time = time.perf_counter() - start_time

        logger.debug(
            f"{kind} {mode.value} search returned {len(rows)} of {total} rows "
            f"in {elapsed_time:.3f}s"
        )
        return rows, int(total)

    async def _fetch_post_tags(self, post_ids: List[str]) -> Dict[str, List[TagSummary]]:
        """Load canonical tags for a page of posts."""
        params = {f"post_id_{i}": post_id for i, post_id in enumerate(post_ids)}
        placeholders = ", ".join(f":{name}" for name in params)
        sql = f"""
            SELECT post_tags.post_id, tags.id, tags.name, tags.slug, tags.color
            FROM post_tags
            JOIN tags ON tags.id = post_tags.tag_id
            WHERE post_tags.post_id IN ({placeholders})
            ORDER BY tags.name
        """
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(text(sql), params)
            rows = result.fetchall()

        tags_by_post: Dict[str, List[TagSummary]] = {}
        for row in rows:
            tags_by_post.setdefault(row.post_id, []).append(
                TagSummary(id=row.id, name=row.name, slug=row.slug, color=row.color)
            )
        return tags_by_post

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _author_summary(row: Row) -> Optional[AuthorSummary]:
        if row.author_id is None:
            return None  # pragma: no cover
        return AuthorSummary(id=row.author_id, name=row.author_name, avatar_url=row.author_avatar_url)

    @staticmethod
    def _rank_value(value: Any) -> Optional[float]:
        if value is None:
            return None  # pragma: no cover
        return min(max(float(value), 0.0), 1.0)

    @staticmethod
    def _json_list(value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = json.loads(value)
        return list(value or [])
