"""Search schemas for unified-search.

A request searches one entity kind or all four at once:
- posts: published articles (drafts only for privileged callers)
- activities: social feed entries
- users: active user profiles
- tags: canonical tags

Wire names are camelCase; Python attributes are snake_case. Both are accepted
on input.
"""

import re
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Generic, List, Mapping, Optional, TypeVar, Union

from dateparser import parse
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from unified_search.services.exceptions import SearchValidationError
from unified_search.utils import ensure_timezone_aware

MAX_QUERY_LENGTH = 100
MAX_LIMIT = 50
MAX_PAGE = 10_000
DEFAULT_LIMIT = 20
MAX_SEARCH_TAG_IDS = 10
MAX_TAG_ID_LENGTH = 64

# SQL comment and statement separators never belong in a search query
BANNED_QUERY_PATTERN = re.compile(r"(--|/\*|\*/|;|\x00)")
DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class SearchType(str, Enum):
    """Which entity kinds a request searches."""

    ALL = "all"
    POSTS = "posts"
    ACTIVITIES = "activities"
    USERS = "users"
    TAGS = "tags"


class SearchSort(str, Enum):
    RELEVANCE = "relevance"
    RECENCY = "recency"


class SearchMode(str, Enum):
    """Execution path of a per-entity query."""

    FTS = "fts"
    SUBSTRING = "substring"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchRequest(CamelModel):
    """Normalized search request.

    Built through ``parse_search_request`` so that every rule below is applied
    before any query runs:
    - query is trimmed and 1..100 characters
    - limit is 1..50 (out of range values are rejected, never clamped)
    - sort ``latest`` is accepted as ``recency``
    - tag_ids are de-duplicated and capped at 10
    - date-only bounds cover the whole day, naive datetimes are UTC
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    query: str
    type: SearchType = SearchType.ALL
    page: int = Field(default=1, ge=1, le=MAX_PAGE)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    sort: SearchSort = SearchSort.RELEVANCE
    author_id: Optional[str] = None
    tag_ids: Optional[List[str]] = None
    published_from: Optional[datetime] = None
    published_to: Optional[datetime] = None
    only_published: bool = True

    @field_validator("query", mode="before")
    @classmethod
    def validate_query(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("must be a string")
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        if len(v) > MAX_QUERY_LENGTH:
            raise ValueError(f"must be at most {MAX_QUERY_LENGTH} characters")
        if BANNED_QUERY_PATTERN.search(v):
            raise ValueError("contains illegal characters")
        return v

    @field_validator("type", "sort", mode="before")
    @classmethod
    def normalize_choice(cls, v: Any, info: ValidationInfo) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if info.field_name == "sort" and v == "latest":
                return SearchSort.RECENCY
        return v

    @field_validator("author_id", mode="before")
    @classmethod
    def normalize_author_id(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("tag_ids", mode="before")
    @classmethod
    def normalize_tag_ids(cls, v: Any) -> Optional[List[str]]:
        if v is None:
            return None
        if isinstance(v, str):
            v = v.split(",")
        if not isinstance(v, (list, tuple)):
            raise ValueError("must be a list of tag ids")

        unique: List[str] = []
        for tag_id in v:
            if not isinstance(tag_id, str):
                raise ValueError("tag ids must be strings")
            tag_id = tag_id.strip()
            if not tag_id or tag_id in unique:
                continue
            if len(tag_id) > MAX_TAG_ID_LENGTH:
                raise ValueError(f"tag ids must be at most {MAX_TAG_ID_LENGTH} characters")
            unique.append(tag_id)

        if len(unique) > MAX_SEARCH_TAG_IDS:
            raise ValueError(f"at most {MAX_SEARCH_TAG_IDS} tag ids are allowed")
        return unique or None

    @field_validator("published_from", "published_to", mode="before")
    @classmethod
    def parse_date_bound(cls, v: Any, info: ValidationInfo) -> Optional[datetime]:
        return _parse_date_bound(v, end_of_day=info.field_name == "published_to")

    @field_validator("published_to")
    @classmethod
    def validate_date_range(
        cls, v: Optional[datetime], info: ValidationInfo
    ) -> Optional[datetime]:
        published_from = info.data.get("published_from")
        if v is not None and published_from is not None and published_from > v:
            raise ValueError("publishedFrom must not be after publishedTo")
        return v

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def _parse_date_bound(value: Any, end_of_day: bool) -> Optional[datetime]:
    """Parse a date filter into an aware UTC-comparable datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_timezone_aware(value)
    if isinstance(value, date):
        return _day_bound(value, end_of_day)
    if not isinstance(value, str):
        raise ValueError("must be a date string")

    value = value.strip()
    if not value:
        return None
    if DATE_ONLY_PATTERN.match(value):
        try:
            return _day_bound(date.fromisoformat(value), end_of_day)
        except ValueError:
            raise ValueError(f"invalid date: {value}")

    try:
        return ensure_timezone_aware(datetime.fromisoformat(value))
    except ValueError:
        pass

    # Anything that is not ISO 8601, e.g. "March 3 2024" or "2 weeks ago"
    parsed = parse(value, settings={"TIMEZONE": "UTC", "RETURN_AS_TIMEZONE_AWARE": True})
    if parsed is None:
        raise ValueError(f"invalid date: {value}")
    return ensure_timezone_aware(parsed)


def _day_bound(day: date, end_of_day: bool) -> datetime:
    bound = time.max if end_of_day else time.min
    return datetime.combine(day, bound, tzinfo=timezone.utc)


def _wire_field_name(loc: tuple) -> str:
    if not loc:
        return "request"
    name = str(loc[0])
    if name in SearchRequest.model_fields:
        return to_camel(name)
    return name


def parse_search_request(raw: Union[Mapping[str, Any], SearchRequest]) -> SearchRequest:
    """Validate and normalize raw request parameters.

    Raises:
        SearchValidationError: naming the first offending field (camelCase)
    """
    if isinstance(raw, SearchRequest):
        return raw
    try:
        return SearchRequest.model_validate(dict(raw))
    except ValidationError as e:
        error = e.errors()[0]
        message = error["msg"]
        if error["type"] == "value_error" and "error" in error.get("ctx", {}):
            message = str(error["ctx"]["error"])
        raise SearchValidationError(_wire_field_name(error["loc"]), message) from None


# --- Result shapes ---


class AuthorSummary(CamelModel):
    id: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class TagSummary(CamelModel):
    id: str
    name: str
    slug: str
    color: Optional[str] = None


class PostHit(CamelModel):
    id: str
    slug: str
    title: str
    excerpt: Optional[str] = None
    cover_image: Optional[str] = None
    published: bool
    published_at: Optional[datetime] = None
    created_at: datetime
    view_count: int = 0
    author: Optional[AuthorSummary] = None
    tags: List[TagSummary] = Field(default_factory=list)
    rank: Optional[float] = None


class ActivityHit(CamelModel):
    id: str
    content: str
    image_urls: List[str] = Field(default_factory=list)
    created_at: datetime
    author: Optional[AuthorSummary] = None
    rank: Optional[float] = None


class UserHit(CamelModel):
    id: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    created_at: datetime
    rank: Optional[float] = None


class TagHit(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    color: Optional[str] = None
    posts_count: int = 0
    created_at: datetime
    rank: Optional[float] = None


HitT = TypeVar("HitT")


class SearchPage(BaseModel, Generic[HitT]):
    """One page of hits from a per-entity searcher plus the unpaged total."""

    items: List[HitT] = Field(default_factory=list)
    total: int = 0


class SearchResultBucket(CamelModel, Generic[HitT]):
    items: List[HitT] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = 1
    limit: int = DEFAULT_LIMIT
    has_more: bool = False


class SearchResults(CamelModel):
    query: str
    type: SearchType
    page: int
    limit: int
    overall_total: int
    posts: SearchResultBucket[PostHit]
    activities: SearchResultBucket[ActivityHit]
    users: SearchResultBucket[UserHit]
    tags: SearchResultBucket[TagHit]
