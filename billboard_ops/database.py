import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import (
    DATABASE_URL,
    DB_LOG_SLOW_QUERIES,
    DB_MAX_OVERFLOW,
    DB_POOL_RECYCLE,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_SLOW_QUERY_THRESHOLD,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(url: str) -> Engine:
    """
    Engine for the document store.
    SQLite connections are shared with the gateway's worker threads and wait
    on locks instead of failing; other backends get a sized, pre-pinged pool.
    """
    if url.startswith("sqlite"):
        store_engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    else:
        store_engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=DB_POOL_RECYCLE,
            pool_size=DB_POOL_SIZE,
            max_overflow=DB_MAX_OVERFLOW,
            pool_timeout=DB_POOL_TIMEOUT,
        )
        logger.info(
            f"📊 Store pool: size={DB_POOL_SIZE} overflow={DB_MAX_OVERFLOW} timeout={DB_POOL_TIMEOUT}s"
        )

    if DB_LOG_SLOW_QUERIES:
        watch_slow_queries(store_engine, DB_SLOW_QUERY_THRESHOLD)
    return store_engine


def watch_slow_queries(target: Engine, threshold: float) -> None:
    """Log statements slower than threshold seconds"""

    @event.listens_for(target, "before_cursor_execute")
    def _started(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_started_at"] = time.perf_counter()

    @event.listens_for(target, "after_cursor_execute")
    def _finished(conn, cursor, statement, parameters, context, executemany):
        elapsed = time.perf_counter() - conn.info.pop("query_started_at", time.perf_counter())
        if elapsed > threshold:
            logger.warning(f"🐌 {elapsed:.2f}s: {statement[:200]}")


try:
    engine = build_engine(DATABASE_URL)
except Exception as e:
    logger.error(f"❌ Document store engine could not be created: {e}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
