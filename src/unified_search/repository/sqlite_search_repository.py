"""SQLite FTS5-based search repository implementation."""

from datetime import datetime
from typing import Any, Tuple

from unified_search.models.search import SearchableTable
from unified_search.repository.search_repository_base import (
    SearchRepositoryBase,
    escape_like,
    query_tokens,
)
from unified_search.services.exceptions import UnsupportedFtsQueryError
from unified_search.utils import fold_search_text, to_utc

# Matches the text layout SQLAlchemy uses for DateTime columns on SQLite
SQLITE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class SQLiteSearchRepository(SearchRepositoryBase):
    """SQLite FTS5 implementation of the search repository.

    Each searchable table has an FTS5 shadow table ``<table>_fts`` whose
    ``entity_id`` column points back at the source row. Timestamps are stored
    as UTC text, so they are compared as strings and aged with ``julianday()``.
    """

    def _prepare_search_term(self, term: str) -> str:
        """Build an FTS5 query of quoted prefix phrases.

        Every token must match (FTS5 ANDs adjacent phrases). Quoting keeps
        FTS5 operators and column filters in user input from being parsed.
        """
        tokens = query_tokens(term)
        if not tokens:
            raise UnsupportedFtsQueryError(f"No indexable tokens in query: {term!r}")
        return " ".join(f'"{token}"*' for token in tokens)

    def _fts_clauses(self, table: SearchableTable) -> Tuple[str, str, str]:
        # Trigger: MATCH combined with JOINs can fail with
        # "unable to use function MATCH in the requested context".
        # Outcome: evaluate MATCH and bm25() in a subquery and join on entity_id.
        # The leading 0.0 weight belongs to the UNINDEXED entity_id column.
        weights = ", ".join(["0.0"] + [f"{column.weight:.1f}" for column in table.columns])
        fts = table.fts_table
        join = (
            "JOIN (SELECT fts_entity_id, fts_score, MIN(fts_score) OVER () AS fts_best FROM "
            f"(SELECT entity_id AS fts_entity_id, bm25({fts}, {weights}) AS fts_score "
            f"FROM {fts} WHERE {fts} MATCH :text)) AS fts "
            f"ON fts.fts_entity_id = {table.name}.id"
        )
        # bm25() is negative, more negative is better. Relevance is the score
        # relative to the best row of the match set, which scores 1.0.
        relevance = (
            "(CASE WHEN fts.fts_best < 0.0 "
            "THEN MIN(1.0, MAX(0.0, fts.fts_score / fts.fts_best)) ELSE 0.0 END)"
        )
        return join, "", relevance

    def _contains_sql(self, column: str) -> str:
        # LOWER() only folds ASCII, search_fold is registered by db on connect
        return f"search_fold(COALESCE({column}, '')) LIKE :pattern ESCAPE '\\'"

    def _substring_pattern(self, query: str) -> str:
        return f"%{escape_like(fold_search_text(query))}%"

    def _age_seconds_sql(self, timestamp_expr: str, now_expr: str) -> str:
        return f"MAX(0.0, (julianday({now_expr}) - julianday({timestamp_expr})) * 86400.0)"

    def _bind_timestamp(self, name: str, value: datetime) -> Tuple[str, Any]:
        return f":{name}", to_utc(value).strftime(SQLITE_TIMESTAMP_FORMAT)
