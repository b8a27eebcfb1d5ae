"""DB test fakes: PoolFake, ConnectionFake and CursorFake.

The fakes record every executed statement so tests can assert on SQL and
parameters without a database. Rows returned by fetchone/fetchall are
queued by the test through `ConnectionFake.rows`.
"""

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Tuple


class CursorFake:
    def __init__(self, conn: "ConnectionFake", row_factory: Any = None):
        self._conn = conn
        self.row_factory = row_factory
        self.rowcount = -1

    def execute(self, sql: str, params: Optional[Tuple] = None):
        self._conn.executed.append((sql, params))
        if self._conn.fail_with is not None:
            raise self._conn.fail_with
        self.rowcount = self._conn.rowcount
        return self

    def fetchone(self):
        return self._conn.rows[0] if self._conn.rows else None

    def fetchall(self):
        return list(self._conn.rows)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class ConnectionFake:
    """Connection-like fake with canned rows and statement log."""

    def __init__(self):
        self.executed: List[Tuple[Any, Any]] = []
        self.rows: List[Dict[str, Any]] = []
        self.rowcount = 1
        self.fail_with: Optional[Exception] = None
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, row_factory: Any = None):
        return CursorFake(self, row_factory=row_factory)

    def execute(self, sql: str, params: Optional[Any] = None):
        return self.cursor().execute(sql, params)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        return None


class PoolFake:
    """Stand-in for PostgresConnection/ConnectionPool with a single shared connection."""

    def __init__(self, minconn: int = 1, maxconn: int = 10, **kwargs: Any):
        self.minconn = minconn
        self.maxconn = maxconn
        self.kwargs = kwargs
        self.conn = ConnectionFake()
        self.closed = False
        self.timeouts: List[float] = []

    @contextmanager
    def connection(self, timeout: float = 5.0):
        self.timeouts.append(timeout)
        yield self.conn

    def close(self):
        self.closed = True
