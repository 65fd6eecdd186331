from unified_search.repository.postgres_search_repository import PostgresSearchRepository
from unified_search.repository.search_repository import (
    SearchRepository,
    create_search_repository,
)
from unified_search.repository.sqlite_search_repository import SQLiteSearchRepository

__all__ = [
    "SearchRepository",
    "SQLiteSearchRepository",
    "PostgresSearchRepository",
    "create_search_repository",
]
