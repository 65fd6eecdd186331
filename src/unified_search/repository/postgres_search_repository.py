"""PostgreSQL tsvector-based search repository implementation."""

from datetime import datetime
from typing import Any, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_search.config import SearchConfig
from unified_search.models.search import SearchableTable
from unified_search.repository.search_repository_base import (
    SearchRepositoryBase,
    query_tokens,
)
from unified_search.services.exceptions import UnsupportedFtsQueryError
from unified_search.utils import to_utc


class PostgresSearchRepository(SearchRepositoryBase):
    """PostgreSQL implementation of the search repository.

    Uses the generated ``search_vector`` column of each table:
    - @@ operator for matching
    - ts_rank() with normalization 32 for relevance, which keeps it in [0, 1)
    - ILIKE for the substring path
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        app_config: Optional[SearchConfig] = None,
    ):
        super().__init__(session_maker, app_config)
        # Rendered into SQL, so only plain configuration names are allowed
        language = self.app_config.fts_language
        if not language.replace("_", "").isalpha():
            raise ValueError(f"Invalid text search configuration name: {language}")
        self.language = language

    def _prepare_search_term(self, term: str) -> str:
        """Convert a query to tsquery syntax: every token as a prefix, AND-ed."""
        tokens = query_tokens(term)
        if not tokens:
            raise UnsupportedFtsQueryError(f"No indexable tokens in query: {term!r}")
        return " & ".join(f"{token}:*" for token in tokens)

    def _fts_clauses(self, table: SearchableTable) -> Tuple[str, str, str]:
        tsquery = f"to_tsquery('{self.language}', :text)"
        condition = f"{table.name}.search_vector @@ {tsquery}"
        relevance = f"CAST(ts_rank({table.name}.search_vector, {tsquery}, 32) AS double precision)"
        return "", condition, relevance

    def _contains_sql(self, column: str) -> str:
        return f"COALESCE({column}, '') ILIKE :pattern ESCAPE '\\'"

    def _age_seconds_sql(self, timestamp_expr: str, now_expr: str) -> str:
        return (
            f"GREATEST(0.0, CAST(EXTRACT(EPOCH FROM ({now_expr} - {timestamp_expr})) "
            f"AS double precision))"
        )

    def _bind_timestamp(self, name: str, value: datetime) -> Tuple[str, Any]:
        return f"CAST(:{name} AS timestamptz)", to_utc(value)
