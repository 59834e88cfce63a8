"""
Engine, session factory and schema bootstrap.

SQLite (the default for local runs and tests) gets one connection per
session and foreign keys switched on; PostgreSQL gets a pre-pinged pool.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from taskgate.config import Settings, get_settings
from taskgate.logging_config import get_logger

logger = get_logger(__name__)

settings = get_settings()


def engine_options(database_url: str, config: Settings) -> Dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` by backend."""
    options: Dict[str, Any] = {"echo": config.db_echo}
    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        options["poolclass"] = NullPool
    else:
        options["pool_pre_ping"] = True
        options["pool_size"] = config.db_pool_size
        options["max_overflow"] = config.db_max_overflow
    return options


def _enable_sqlite_constraints(dbapi_conn, connection_record):
    # Cascades from organizations to roles and tasks depend on foreign_keys
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def build_engine(database_url: str, config: Settings) -> AsyncEngine:
    new_engine = create_async_engine(database_url, **engine_options(database_url, config))
    if new_engine.dialect.name == "sqlite":
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_constraints)
    return new_engine


engine = build_engine(settings.database_url, settings)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    One unit of work: commit if the block finishes, roll back if it raises.

    Audit entries are kept in memory, so a rollback here never erases the
    record of a denied or failed operation.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db() -> bool:
    """True when the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Database unreachable", extra={"database": engine.url.get_backend_name()})
        return False
    return True


async def init_db() -> None:
    """Create tables for organizations, roles, permissions, users and tasks."""
    from taskgate.kernel.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        "Database schema ready",
        extra={"database": engine.url.get_backend_name(), "tables": len(Base.metadata.tables)},
    )


async def close_db() -> None:
    """Dispose of pooled connections."""
    await engine.dispose()
    logger.debug("Database engine disposed")
