"""Structural filters for each searchable entity kind.

Both execution paths (full-text and substring) take their WHERE conditions from
these functions, which is what keeps the set of qualifying rows identical no
matter which path produced it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Tuple

from unified_search.schemas.search import SearchRequest

# (param name, value) -> (SQL placeholder expression, bound value)
TimestampBinder = Callable[[str, datetime], Tuple[str, Any]]


@dataclass
class SqlFilter:
    """WHERE conditions with their named parameters."""

    conditions: List[str] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)

    def add(self, condition: str, **params: Any) -> None:
        self.conditions.append(condition)
        self.params.update(params)


def post_filters(request: SearchRequest, bind_timestamp: TimestampBinder) -> SqlFilter:
    """Filters for posts.

    Tag filtering is an intersection: a post qualifies only when it carries
    every requested tag. Unknown tag ids therefore yield no results.
    """
    filters = SqlFilter()

    if request.only_published:
        filters.add("posts.published = :published", published=True)

    if request.author_id:
        filters.add("posts.author_id = :author_id", author_id=request.author_id)

    if request.tag_ids:
        placeholders = []
        for i, tag_id in enumerate(request.tag_ids):
            filters.params[f"tag_id_{i}"] = tag_id
            placeholders.append(f":tag_id_{i}")
        filters.add(
            "posts.id IN ("
            "SELECT post_tags.post_id FROM post_tags "
            f"WHERE post_tags.tag_id IN ({', '.join(placeholders)}) "
            "GROUP BY post_tags.post_id "
            "HAVING COUNT(DISTINCT post_tags.tag_id) = :tag_count)",
            tag_count=len(request.tag_ids),
        )

    # Drafts have no publication date, so unpublished searches bound creation time
    date_column = "posts.published_at" if request.only_published else "posts.created_at"
    if request.published_from:
        expr, value = bind_timestamp("published_from", request.published_from)
        filters.add(f"{date_column} >= {expr}", published_from=value)
    if request.published_to:
        expr, value = bind_timestamp("published_to", request.published_to)
        filters.add(f"{date_column} <= {expr}", published_to=value)

    return filters


def activity_filters(request: SearchRequest) -> SqlFilter:
    filters = SqlFilter()
    filters.add("activities.deleted_at IS NULL")
    if request.author_id:
        filters.add("activities.author_id = :author_id", author_id=request.author_id)
    return filters


def user_filters(request: SearchRequest) -> SqlFilter:
    filters = SqlFilter()
    filters.add("users.status = :active_status", active_status="ACTIVE")
    return filters


def tag_filters(request: SearchRequest) -> SqlFilter:
    return SqlFilter()
