"""Common test fixtures."""

import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Iterable, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from testcontainers.postgres import PostgresContainer

from unified_search import db
from unified_search.config import ConfigManager, DatabaseBackend, SearchConfig
from unified_search.db import DatabaseType
from unified_search.models import Activity, Base, Post, PostTag, Tag, User
from unified_search.repository.search_repository import (
    SearchRepository,
    create_search_repository,
)
from unified_search.services.search_service import SearchService

# Fixed clock for ranking and recency assertions
NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Backend Selection (env var approach)
# =============================================================================
# By default, tests run against SQLite.
# Set UNIFIED_SEARCH_TEST_POSTGRES=1 to run against Postgres (uses testcontainers).


@pytest.fixture(scope="session")
def db_backend():
    """Determine database backend from environment variable.

    Default: sqlite
    Set UNIFIED_SEARCH_TEST_POSTGRES=1 to use postgres
    """
    if os.environ.get("UNIFIED_SEARCH_TEST_POSTGRES", "").lower() in ("1", "true", "yes"):
        return "postgres"
    return "sqlite"


@pytest.fixture(scope="session")
def postgres_container(db_backend):
    """Session-scoped Postgres container, only started in postgres mode."""
    if db_backend != "postgres":
        yield None
        return

    with PostgresContainer("postgres:16-alpine") as postgres:
        yield postgres


def pytest_collection_modifyitems(config, items):
    if os.environ.get("UNIFIED_SEARCH_TEST_POSTGRES", "").lower() in ("1", "true", "yes"):
        return
    skip_postgres = pytest.mark.skip(reason="requires UNIFIED_SEARCH_TEST_POSTGRES=1")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_postgres)


@pytest.fixture
def config_home(tmp_path, monkeypatch) -> Path:
    monkeypatch.setenv("HOME", str(tmp_path))
    if os.name == "nt":
        monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.setenv("UNIFIED_SEARCH_CONFIG_DIR", str(tmp_path / ".unified-search"))
    return tmp_path


@pytest.fixture(scope="function")
def app_config(config_home, db_backend, postgres_container) -> SearchConfig:
    """Create test app configuration for the appropriate backend."""
    if db_backend == "postgres":
        backend = DatabaseBackend.POSTGRES
        sync_url = postgres_container.get_connection_url()
        database_url = sync_url.replace("postgresql+psycopg2", "postgresql+asyncpg")
    else:
        backend = DatabaseBackend.SQLITE
        database_url = None

    return SearchConfig(
        env="test",
        database_backend=backend,
        database_url=database_url,
    )


@pytest.fixture
def config_manager(app_config: SearchConfig, config_home: Path) -> ConfigManager:
    # Invalidate config cache to ensure clean state for each test
    from unified_search import config as config_module

    config_module._CONFIG_CACHE = None

    config_manager = ConfigManager()
    config_manager.save_config(app_config)
    return config_manager


@pytest_asyncio.fixture(scope="function")
async def engine_factory(
    app_config,
    config_home,
    config_manager,
    db_backend,
    postgres_container,
) -> AsyncGenerator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Engine factory for SQLite or Postgres tests."""
    if db_backend == "postgres":
        engine = create_async_engine(
            app_config.database_url,
            echo=False,
            poolclass=NullPool,  # NullPool for better test isolation
        )
        session_maker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        # Drop and recreate all tables for test isolation
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await db.init_schema(engine, DatabaseBackend.POSTGRES)

        yield engine, session_maker

        await engine.dispose()
    else:
        db_path = config_home / "search-test.db"
        async with db.engine_session_factory(db_path=db_path, db_type=DatabaseType.FILESYSTEM) as (
            engine,
            session_maker,
        ):
            await db.init_schema(engine, DatabaseBackend.SQLITE)
            yield engine, session_maker


@pytest_asyncio.fixture
async def session_maker(engine_factory) -> async_sessionmaker[AsyncSession]:
    """Get session maker for tests."""
    _, session_maker = engine_factory
    return session_maker


@pytest_asyncio.fixture
async def search_repository(session_maker, app_config) -> SearchRepository:
    return create_search_repository(session_maker, app_config=app_config)


@pytest_asyncio.fixture
async def search_service(search_repository, app_config) -> SearchService:
    return SearchService(search_repository, app_config)


## Content


def _slugify(value: str) -> str:
    return "-".join(value.lower().split())[:40] + "-" + uuid.uuid4().hex[:6]


@dataclass
class ContentFactory:
    """Inserts content rows through the ORM; the index triggers pick them up."""

    session_maker: async_sessionmaker[AsyncSession]

    async def _add(self, *objects):
        async with db.scoped_session(self.session_maker) as session:
            session.add_all(objects)
            await session.flush()
        return objects[0]

    async def user(
        self,
        name: str = "Test User",
        bio: Optional[str] = None,
        status: str = "ACTIVE",
        created_at: datetime = NOW - timedelta(days=10),
    ) -> User:
        user = User(
            name=name,
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            bio=bio,
            status=status,
            created_at=created_at,
        )
        return await self._add(user)

    async def tag(
        self,
        name: str,
        description: Optional[str] = None,
        created_at: datetime = NOW - timedelta(days=10),
    ) -> Tag:
        tag = Tag(
            name=name,
            slug=_slugify(name),
            description=description,
            color="#336699",
            created_at=created_at,
        )
        return await self._add(tag)

    async def post(
        self,
        title: str,
        author: User,
        content: str = "",
        excerpt: Optional[str] = None,
        seo_description: Optional[str] = None,
        published: bool = True,
        published_at: Optional[datetime] = NOW - timedelta(days=1),
        created_at: datetime = NOW - timedelta(days=2),
        tags: Iterable[Tag] = (),
    ) -> Post:
        post = Post(
            slug=_slugify(title),
            title=title,
            excerpt=excerpt,
            seo_description=seo_description,
            content=content,
            published=published,
            published_at=published_at if published else None,
            author_id=author.id,
            created_at=created_at,
            updated_at=created_at,
        )
        await self._add(post)
        post_tags = [PostTag(post_id=post.id, tag_id=tag.id) for tag in tags]
        if post_tags:
            await self._add(*post_tags)
        return post

    async def activity(
        self,
        content: str,
        author: User,
        created_at: datetime = NOW - timedelta(hours=5),
        deleted_at: Optional[datetime] = None,
        image_urls: Optional[List[str]] = None,
    ) -> Activity:
        activity = Activity(
            content=content,
            author_id=author.id,
            image_urls=image_urls,
            created_at=created_at,
            updated_at=created_at,
            deleted_at=deleted_at,
        )
        return await self._add(activity)


@pytest_asyncio.fixture
async def content(session_maker) -> ContentFactory:
    return ContentFactory(session_maker)


@pytest_asyncio.fixture
async def author(content) -> User:
    return await content.user(name="Ada Writer", bio="Writes about databases")


@pytest_asyncio.fixture
async def filler_posts(content, author) -> List[Post]:
    """Unrelated published posts.

    BM25 gives near-zero weight to terms found in most rows, so ranking tests
    need a corpus in which the searched term stays rare.
    """
    return [
        await content.post(f"Filler entry {i}", author, content="lorem ipsum dolor sit amet")
        for i in range(8)
    ]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def break_fts(session_maker, db_backend):
    """Return a coroutine that removes the full-text index so FTS queries fail.

    SQLite drops the FTS5 shadow tables, Postgres drops the search_vector
    columns. Either way the store raises and searchers must fall back.
    """

    async def _break() -> None:
        async with db.scoped_session(session_maker) as session:
            for table in ("posts", "activities", "users", "tags"):
                if db_backend == "postgres":
                    await session.execute(
                        text(f"ALTER TABLE {table} DROP COLUMN IF EXISTS search_vector")
                    )
                    continue
                for suffix in ("ai", "ad", "au"):
                    await session.execute(text(f"DROP TRIGGER IF EXISTS {table}_fts_{suffix}"))
                await session.execute(text(f"DROP TABLE IF EXISTS {table}_fts"))

    return _break
