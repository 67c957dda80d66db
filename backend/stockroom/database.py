"""Database engine, session factory, and declarative base.

Two session entry points for FastAPI:
  - get_db()               → request-scoped session, commits on success
  - get_session_factory()  → the factory itself, for services that own
                             their transaction (the operation processor)

SQLite (local dev and the default test backend) ignores SELECT … FOR UPDATE,
and pysqlite does not emit BEGIN before a SELECT. configure_sqlite() takes
over transaction control so every transaction starts with an explicit BEGIN,
and a transaction opened with WRITE_TRANSACTION starts with BEGIN IMMEDIATE,
which holds the database write lock from its first read until commit.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from stockroom.config import settings

# Execution options for a session that reads then writes stock
WRITE_TRANSACTION = {"sqlite_begin": "IMMEDIATE"}

SQLITE_BUSY_TIMEOUT = 30


def engine_options(url: str) -> dict:
    # SQLite (local dev) has no connection pool sizing
    if url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT,
            },
        }
    return {"pool_size": 20, "max_overflow": 10, "pool_pre_ping": True}


def configure_sqlite(engine: AsyncEngine) -> None:
    """Emit BEGIN ourselves so SQLite transactions cover reads as well as writes."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own BEGIN handling
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # Readers never block the processor's commit
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        mode = conn.get_execution_options().get("sqlite_begin")
        conn.exec_driver_sql(f"BEGIN {mode}" if mode else "BEGIN")


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **engine_options(settings.database_url),
)
if engine.dialect.name == "sqlite":
    configure_sqlite(engine)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    """Declarative base for every Stockroom table."""
    pass


# ── Session dependencies ────────────────────────────────────

async def get_db() -> AsyncSession:
    """Yield a session; commit when the request succeeds, roll back otherwise."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory for callers that manage their own transaction."""
    return async_session
