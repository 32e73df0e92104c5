import logging, time
from typing import AsyncIterator
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy import text, event
from .config import Settings

log = logging.getLogger("seatkeeper.sql")


def make_engine(settings: Settings) -> AsyncEngine:
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        # file-backed SQLite: writers wait on the db lock instead of failing fast
        engine = create_async_engine(url, future=True, connect_args={"timeout": 30})
        _use_immediate_transactions(engine)
    else:
        engine = create_async_engine(url, future=True, pool_pre_ping=True)
    _install_slow_query_log(engine, settings.SLOW_QUERY_MS)
    return engine


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def _use_immediate_transactions(engine: AsyncEngine) -> None:
    # pysqlite defers BEGIN until the first write, which lets two readers race on
    # the same counters; take the write lock at transaction start instead.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _install_slow_query_log(engine: AsyncEngine, threshold_ms: int) -> None:
    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        if context is not None:
            context._query_start_time = time.perf_counter()

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        started = getattr(context, "_query_start_time", None)
        if started is None:
            return
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        if elapsed_ms >= threshold_ms:
            log.warning("slow_query", extra={"elapsed_ms": elapsed_ms, "sql": statement[:200]})


async def db_health(engine: AsyncEngine) -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        log.warning("db_health_failed", exc_info=True)
        return False


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    async with request.app.state.ctx.sessionmaker() as session:
        yield session
