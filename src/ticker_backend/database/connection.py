"""
PostgreSQL connection pool for the direct-SQL dividend store.

One process-wide pool is built lazily from the DB_* settings. The helpers
below borrow a connection per statement and commit writes immediately.
"""

import atexit
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, Iterable, List, Optional, Sequence

from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from ticker_backend.exceptions import ConfigError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import config

logger = get_logger(__name__, utility="database")

POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 10

Params = Optional[Sequence[Any]]


class PostgresConnection:
    """Pool of psycopg connections built from libpq keyword settings"""

    def __init__(self, minconn: int, maxconn: int, **conn_kwargs: Any):
        if not conn_kwargs.get("password"):
            raise ConfigError("DB_PASSWORD is required for the postgres storage backend")

        settings = {k: v for k, v in conn_kwargs.items() if v not in (None, "")}
        # Looked up at call time so tests can swap in a fake pool
        self._pool = ThreadedConnectionPool(
            conninfo=make_conninfo("", **settings), min_size=minconn, max_size=maxconn
        )

    @contextmanager
    def connection(self, timeout: float = 5.0) -> Generator[Any, None, None]:
        """Borrow a connection, waiting at most `timeout` seconds for a free one"""
        with self._pool.connection(timeout=timeout) as conn:
            yield conn

    def close(self) -> None:
        if not self._pool.closed:
            self._pool.close()


_global_pool: Optional[PostgresConnection] = None
_global_lock = threading.Lock()


def get_global_pool() -> PostgresConnection:
    """Return the process-wide pool, creating it on first use"""
    global _global_pool
    with _global_lock:
        if _global_pool is None:
            _global_pool = PostgresConnection(
                POOL_MIN_SIZE,
                POOL_MAX_SIZE,
                host=config.DB_HOST,
                port=config.DB_PORT,
                dbname=config.DB_NAME,
                user=config.DB_USER,
                password=config.DB_PASSWORD,
            )
            logger.info(f"Connection pool opened for {config.DB_HOST}/{config.DB_NAME}")
        return _global_pool


def close_global_pool() -> None:
    global _global_pool
    with _global_lock:
        pool, _global_pool = _global_pool, None
    if pool is not None:
        pool.close()


def fetch_all(query: str, params: Params = None) -> List[Dict[str, Any]]:
    with get_global_pool().connection() as conn:
        return conn.cursor(row_factory=dict_row).execute(query, params or ()).fetchall()


def fetch_one(query: str, params: Params = None) -> Optional[Dict[str, Any]]:
    with get_global_pool().connection() as conn:
        return conn.cursor(row_factory=dict_row).execute(query, params or ()).fetchone()


def execute(query: str, params: Params = None) -> None:
    with get_global_pool().connection() as conn:
        conn.execute(query, params or ())
        conn.commit()


def execute_values(statement: str, rows: Iterable[Sequence[Any]]) -> int:
    """
    Run a multi-row INSERT as one statement and return the affected row count

    `statement` holds a single ``%s`` where the ``(...), (...)`` VALUES list goes.
    """
    rows = list(rows)
    if not rows:
        return 0
    row_template = "(" + ",".join(["%s"] * len(rows[0])) + ")"
    params = [value for row in rows for value in row]
    with get_global_pool().connection() as conn:
        cur = conn.execute(statement % ",".join([row_template] * len(rows)), params)
        conn.commit()
        return max(cur.rowcount, 0)


ThreadedConnectionPool = ConnectionPool

atexit.register(close_global_pool)
