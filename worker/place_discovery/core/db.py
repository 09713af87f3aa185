"""Database helpers for the worker."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2 import pool

from place_discovery.core.config import get_settings
from place_discovery.core.errors import PersistenceError

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.ThreadedConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 10) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool.

    Job runs execute on executor threads, so the pool must be the threaded
    variant.
    """
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise PersistenceError("DATABASE_URL is required for database connections")
        try:
            _connection_pool = pool.ThreadedConnectionPool(
                minconn,
                maxconn,
                dsn=settings.database_url,
                connect_timeout=10,
            )
        except psycopg2.Error as exc:
            raise PersistenceError(f"database unavailable: {exc.__class__.__name__}") from exc
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection() -> Iterator["psycopg2.extensions.connection"]:
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


@contextmanager
def transaction() -> Iterator["psycopg2.extensions.connection"]:
    """Pooled connection committed on success and rolled back on any error.

    psycopg2 failures surface as ``PersistenceError``.
    """
    with get_connection() as conn:
        try:
            yield conn
            conn.commit()
        except psycopg2.Error as exc:
            conn.rollback()
            logger.error("Database transaction rolled back: %s", exc)
            raise PersistenceError(f"database error: {exc.__class__.__name__}") from exc
        except Exception:
            conn.rollback()
            raise
