"""PostgreSQL connection pool helpers."""

import logging
from contextlib import contextmanager
from typing import Optional

from psycopg2 import pool

from bitebase.core.config import get_settings

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.AbstractConnectionPool] = None


def init_pool(minconn: int = 1, maxconn: int = 5, dsn: Optional[str] = None) -> pool.AbstractConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        dsn = dsn or get_settings().database_url
        if not dsn:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.ThreadedConnectionPool(
            minconn,
            maxconn,
            dsn=dsn,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection(pg_pool=None):
    """Context manager yielding a pooled connection."""
    pg_pool = pg_pool or init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)
