"""Exceptions raised by the search core."""

from typing import Optional


class SearchError(Exception):
    """Base class for search errors.

    ``status_code`` is the HTTP status an API binding should answer with.
    """

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SearchValidationError(SearchError):
    """Raised when a search request fails validation, before any query runs."""

    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class RateLimitedError(SearchError):
    """Raised when the rate gate denies the caller."""

    status_code = 429

    def __init__(self, retry_after: Optional[float] = None) -> None:
        super().__init__("Too many search requests")
        self.retry_after = retry_after


class SearchInternalError(SearchError):
    """Raised when both execution paths of a searcher failed.

    The message is deliberately generic; the underlying store error is logged
    and chained as ``__cause__`` but never exposed to callers.
    """

    status_code = 500

    def __init__(self, message: str = "Search is temporarily unavailable") -> None:
        super().__init__(message)


class UnsupportedFtsQueryError(Exception):
    """Raised when a query cannot be expressed as a full-text query.

    Searchers treat it like any other primary-path failure and use the
    substring path instead.
    """
