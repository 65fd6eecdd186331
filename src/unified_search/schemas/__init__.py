"""Search request and result schemas.

Rather than importing from individual schema files, you can
import everything from unified_search.schemas.
"""

from unified_search.schemas.search import (
    ActivityHit,
    AuthorSummary,
    PostHit,
    SearchMode,
    SearchPage,
    SearchRequest,
    SearchResultBucket,
    SearchResults,
    SearchSort,
    SearchType,
    TagHit,
    TagSummary,
    UserHit,
    parse_search_request,
)

__all__ = [
    "ActivityHit",
    "AuthorSummary",
    "PostHit",
    "SearchMode",
    "SearchPage",
    "SearchRequest",
    "SearchResultBucket",
    "SearchResults",
    "SearchSort",
    "SearchType",
    "TagHit",
    "TagSummary",
    "UserHit",
    "parse_search_request",
]
