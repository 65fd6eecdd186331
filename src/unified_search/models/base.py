"""Base model class for SQLAlchemy models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from unified_search.utils import ensure_timezone_aware, to_utc


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    pass


class UtcDateTime(TypeDecorator):
    """Timezone-aware datetime that is always stored in UTC.

    SQLite drops tzinfo on write, so values are normalized before binding and
    the search queries compare timestamps as UTC text.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return to_utc(value)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_timezone_aware(value)
