"""Models package for unified-search."""

from unified_search.models.base import Base, UtcDateTime
from unified_search.models.content import Activity, Post, PostTag, Tag, User

__all__ = [
    "Base",
    "UtcDateTime",
    "User",
    "Post",
    "Tag",
    "PostTag",
    "Activity",
]
