"""Database engine and session management."""

from contextlib import asynccontextmanager
from enum import Enum, auto
from pathlib import Path
from typing import AsyncGenerator, Optional, Tuple

from loguru import logger
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from unified_search.config import DatabaseBackend, SearchConfig
from unified_search.models import Base
from unified_search.models.search import search_index_ddl
from unified_search.utils import fold_search_text

# Module level state
_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


class DatabaseType(Enum):
    """Types of supported databases."""

    FILESYSTEM = auto()
    POSTGRES = auto()

    @classmethod
    def get_db_url(
        cls, db_path: Optional[Path], db_type: "DatabaseType", config: Optional[SearchConfig] = None
    ) -> str:
        """Get SQLAlchemy URL for database path or configured Postgres URL."""
        if db_type == cls.POSTGRES:
            if config is None or not config.database_url:
                raise ValueError("database_url must be configured for the postgres backend")
            logger.info("Using Postgres database")
            return config.database_url

        logger.info(f"Using SQLite database at {db_path}")
        return f"sqlite+aiosqlite:///{db_path}"


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=10000")
    finally:
        cursor.close()
    dbapi_connection.create_function("search_fold", 1, fold_search_text, deterministic=True)


def _create_engine(
    db_url: str, db_type: DatabaseType, config: Optional[SearchConfig] = None
) -> AsyncEngine:
    if db_type == DatabaseType.POSTGRES:
        pool_size = config.db_pool_size if config else 20
        max_overflow = config.db_pool_overflow if config else 40
        pool_recycle = config.db_pool_recycle if config else 180
        return create_async_engine(
            db_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_recycle=pool_recycle,
            pool_pre_ping=True,
        )

    engine = create_async_engine(db_url, connect_args={"check_same_thread": False})

    event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
    return engine


def _create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def database_type_for(config: SearchConfig) -> DatabaseType:
    if config.database_backend == DatabaseBackend.POSTGRES:
        return DatabaseType.POSTGRES
    return DatabaseType.FILESYSTEM


@asynccontextmanager
async def scoped_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Provide a session that commits on success and rolls back on error."""
    session = session_maker()
    try:
        yield session
        await session.commit()
    except BaseException:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_schema(
    engine: AsyncEngine, backend: DatabaseBackend, language: str = "simple"
) -> None:
    """Create content tables and the backend-specific full-text index."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        # asyncpg cannot run several statements in one execute call
        for statement in search_index_ddl(backend, language):
            await conn.execute(statement)
    logger.info(f"Search schema initialized for {backend.value}")


@asynccontextmanager
async def engine_session_factory(
    db_path: Optional[Path],
    db_type: DatabaseType = DatabaseType.FILESYSTEM,
    config: Optional[SearchConfig] = None,
) -> AsyncGenerator[Tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Create an engine and session maker, disposing of the engine on exit."""
    global _engine, _session_maker

    db_url = DatabaseType.get_db_url(db_path, db_type, config)
    _engine = _create_engine(db_url, db_type, config)
    try:
        _session_maker = _create_session_maker(_engine)
        yield _engine, _session_maker
    finally:
        await _engine.dispose()
        _engine = None
        _session_maker = None


async def get_or_create_db(
    config: SearchConfig,
    init_tables: bool = False,
) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Return the module level engine and session maker, creating them on first use."""
    global _engine, _session_maker

    if _engine is None or _session_maker is None:
        db_type = database_type_for(config)
        db_path = config.database_path if db_type == DatabaseType.FILESYSTEM else None
        db_url = DatabaseType.get_db_url(db_path, db_type, config)
        _engine = _create_engine(db_url, db_type, config)
        _session_maker = _create_session_maker(_engine)

        if init_tables:
            await init_schema(_engine, config.database_backend, config.fts_language)

    return _engine, _session_maker


async def shutdown_db() -> None:  # pragma: no cover
    """Dispose of the module level engine."""
    global _engine, _session_maker

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_maker = None
