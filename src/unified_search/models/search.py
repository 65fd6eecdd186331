"""Full-text index definitions for the searchable content tables.

Each searchable table lists its text columns with two weights: a Postgres
``setweight`` letter and a numeric weight used by SQLite ``bm25()`` and by the
substring path to score the best-matching column.

Backends:
- Postgres: a generated ``search_vector tsvector`` column plus a GIN index
- SQLite: an FTS5 shadow table ``<table>_fts`` kept in sync by triggers
"""

import re
from dataclasses import dataclass
from typing import List, Tuple

from sqlalchemy import TextClause, text

from unified_search.config import DatabaseBackend

SQLITE_FTS_TOKENIZER = "unicode61 remove_diacritics 2"


@dataclass(frozen=True)
class TextColumn:
    name: str
    pg_weight: str
    weight: float


@dataclass(frozen=True)
class SearchableTable:
    """A content table and the text columns its full-text index covers."""

    name: str
    columns: Tuple[TextColumn, ...]

    @property
    def fts_table(self) -> str:
        return f"{self.name}_fts"

    @property
    def max_weight(self) -> float:
        return max(column.weight for column in self.columns)

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]


POSTS = SearchableTable(
    "posts",
    (
        TextColumn("title", "A", 10.0),
        TextColumn("excerpt", "B", 5.0),
        TextColumn("seo_description", "C", 3.0),
        TextColumn("content", "D", 1.0),
    ),
)
ACTIVITIES = SearchableTable("activities", (TextColumn("content", "A", 1.0),))
USERS = SearchableTable(
    "users",
    (
        TextColumn("name", "A", 10.0),
        TextColumn("bio", "B", 5.0),
    ),
)
TAGS = SearchableTable(
    "tags",
    (
        TextColumn("name", "A", 10.0),
        TextColumn("description", "B", 5.0),
    ),
)

SEARCHABLE_TABLES = (POSTS, ACTIVITIES, USERS, TAGS)

_LANGUAGE_PATTERN = re.compile(r"^[A-Za-z_]+$")


def _postgres_ddl(table: SearchableTable, language: str) -> List[TextClause]:
    vector = " || ".join(
        f"setweight(to_tsvector('{language}', coalesce({column.name}, '')), '{column.pg_weight}')"
        for column in table.columns
    )
    return [
        text(
            f"ALTER TABLE {table.name} ADD COLUMN IF NOT EXISTS search_vector tsvector "
            f"GENERATED ALWAYS AS ({vector}) STORED"
        ),
        text(
            f"CREATE INDEX IF NOT EXISTS ix_{table.name}_search_vector "
            f"ON {table.name} USING GIN (search_vector)"
        ),
    ]


def _sqlite_ddl(table: SearchableTable) -> List[TextClause]:
    fts = table.fts_table
    columns = ", ".join(table.column_names)
    new_values = ", ".join(f"new.{name}" for name in table.column_names)

    return [
        text(
            f"CREATE VIRTUAL TABLE IF NOT EXISTS {fts} USING fts5("
            f"entity_id UNINDEXED, {columns}, tokenize='{SQLITE_FTS_TOKENIZER}')"
        ),
        text(
            f"CREATE TRIGGER IF NOT EXISTS {fts}_ai AFTER INSERT ON {table.name} BEGIN "
            f"INSERT INTO {fts}(entity_id, {columns}) VALUES (new.id, {new_values}); END"
        ),
        text(
            f"CREATE TRIGGER IF NOT EXISTS {fts}_ad AFTER DELETE ON {table.name} BEGIN "
            f"DELETE FROM {fts} WHERE entity_id = old.id; END"
        ),
        text(
            f"CREATE TRIGGER IF NOT EXISTS {fts}_au AFTER UPDATE ON {table.name} BEGIN "
            f"DELETE FROM {fts} WHERE entity_id = old.id; "
            f"INSERT INTO {fts}(entity_id, {columns}) VALUES (new.id, {new_values}); END"
        ),
        # Backfill rows written before the index existed
        text(
            f"INSERT INTO {fts}(entity_id, {columns}) "
            f"SELECT id, {columns} FROM {table.name} "
            f"WHERE id NOT IN (SELECT entity_id FROM {fts})"
        ),
    ]


def search_index_ddl(backend: DatabaseBackend, language: str = "simple") -> List[TextClause]:
    """Statements that create the full-text index for every searchable table.

    All statements are idempotent, so running them on an existing database
    only backfills rows that are missing from the index.
    """
    statements: List[TextClause] = []
    if backend == DatabaseBackend.POSTGRES:
        if not _LANGUAGE_PATTERN.match(language):
            raise ValueError(f"Invalid text search configuration name: {language}")
        for table in SEARCHABLE_TABLES:
            statements.extend(_postgres_ddl(table, language))
    else:
        for table in SEARCHABLE_TABLES:
            statements.extend(_sqlite_ddl(table))
    return statements
