"""
Direct PostgreSQL storage for tickers and dividends
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

import psycopg
from psycopg import errors

from ticker_backend.exceptions import PersistenceError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.polygon_dividends.models import (
    DividendRecord,
    StoreResult,
    Ticker,
    normalize_symbol,
    utc_now,
)
from ticker_backend.database import connection
from ticker_backend.database.base import DividendStore

logger = get_logger(__name__, utility="database")

DIVIDEND_COLUMNS = (
    "ticker",
    "declaration_date",
    "record_date",
    "ex_dividend_date",
    "pay_date",
    "amount",
    "currency",
    "frequency",
    "type",
    "polygon_id",
    "data_source",
    "created_at",
)

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS tickers (
    symbol VARCHAR(20) PRIMARY KEY,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_dividend_update TIMESTAMPTZ,
    last_polygon_call TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS dividends (
    id BIGSERIAL PRIMARY KEY,
    ticker VARCHAR(20) NOT NULL REFERENCES tickers(symbol),
    declaration_date DATE,
    record_date DATE,
    ex_dividend_date DATE NOT NULL,
    pay_date DATE,
    amount NUMERIC(18, 6) NOT NULL DEFAULT 0,
    currency VARCHAR(10) NOT NULL DEFAULT 'USD',
    frequency INTEGER NOT NULL DEFAULT 4,
    type VARCHAR(20) NOT NULL DEFAULT 'Cash',
    polygon_id VARCHAR(100),
    data_source VARCHAR(20) NOT NULL DEFAULT 'polygon',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (ticker, polygon_id)
);

CREATE INDEX IF NOT EXISTS idx_dividends_ex_date ON dividends (ex_dividend_date DESC);
"""

UPSERT_TICKER_SQL = """
INSERT INTO tickers (symbol, is_active, created_at)
VALUES (%s, TRUE, %s)
ON CONFLICT (symbol) DO NOTHING
"""

UPSERT_DIVIDENDS_SQL = (
    f"INSERT INTO dividends ({', '.join(DIVIDEND_COLUMNS)}) VALUES %s "
    "ON CONFLICT (ticker, polygon_id) DO UPDATE SET "
    "declaration_date = EXCLUDED.declaration_date, "
    "record_date = EXCLUDED.record_date, "
    "ex_dividend_date = EXCLUDED.ex_dividend_date, "
    "pay_date = EXCLUDED.pay_date, "
    "amount = EXCLUDED.amount, "
    "currency = EXCLUDED.currency, "
    "frequency = EXCLUDED.frequency, "
    "type = EXCLUDED.type"
)

SELECT_DIVIDENDS_SQL = f"SELECT {', '.join(DIVIDEND_COLUMNS)} FROM dividends"


def _serialize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Render dates as ISO strings and numerics as floats"""
    out: Dict[str, Any] = {}
    for key, value in row.items():
        if isinstance(value, (date, datetime)):
            out[key] = value.isoformat()
        elif key == "amount" and value is not None:
            out[key] = float(value)
        else:
            out[key] = value
    return out


class PostgresDividendStore(DividendStore):
    """DividendStore that talks SQL through the shared connection pool"""

    backend_name = "postgres"

    def create_tables(self) -> None:
        """Create the tickers and dividends tables if they do not exist"""
        try:
            connection.execute(CREATE_TABLES_SQL)
        except psycopg.Error as e:
            raise PersistenceError("create_tables", status=e.sqlstate, detail=str(e)) from e
        logger.info("Dividend tables ensured")

    def upsert_ticker(self, symbol: str) -> None:
        symbol = normalize_symbol(symbol)
        try:
            connection.execute(UPSERT_TICKER_SQL, (symbol, utc_now()))
        except errors.UniqueViolation:
            logger.debug(f"Ticker {symbol} already exists")
        except psycopg.Error as e:
            raise PersistenceError("upsert_ticker", status=e.sqlstate, detail=str(e)) from e

    def get_ticker_info(self, symbol: str) -> Optional[Ticker]:
        symbol = normalize_symbol(symbol)
        try:
            row = connection.fetch_one(
                "SELECT symbol, is_active, created_at, last_dividend_update, last_polygon_call "
                "FROM tickers WHERE symbol = %s",
                (symbol,),
            )
        except psycopg.Error as e:
            raise PersistenceError("get_ticker_info", status=e.sqlstate, detail=str(e)) from e
        if not row:
            return None
        return Ticker.model_validate(dict(row))

    def store_dividends(self, symbol: str, records: Sequence[DividendRecord]) -> StoreResult:
        if not records:
            return StoreResult(inserted=0, errors=0)

        symbol = normalize_symbol(symbol)
        rows = []
        for record in records:
            row = record.to_row()
            row["ticker"] = symbol
            rows.append(tuple(row[column] for column in DIVIDEND_COLUMNS))

        try:
            connection.execute_values(UPSERT_DIVIDENDS_SQL, rows)
        except errors.UniqueViolation:
            logger.info(f"{symbol}: all {len(rows)} dividends already stored")
            return StoreResult(inserted=0, errors=0)
        except psycopg.Error as e:
            raise PersistenceError("store_dividends", status=e.sqlstate, detail=str(e)) from e
        return StoreResult(inserted=len(rows), errors=0)

    def update_ticker_timestamp(self, symbol: str) -> None:
        symbol = normalize_symbol(symbol)
        now = utc_now()
        try:
            connection.execute(
                "UPDATE tickers SET last_dividend_update = %s, last_polygon_call = %s "
                "WHERE symbol = %s",
                (now, now, symbol),
            )
        except psycopg.Error as e:
            raise PersistenceError(
                "update_ticker_timestamp", status=e.sqlstate, detail=str(e)
            ) from e

    def _select(self, operation: str, where: List[str], params: List[Any], tail: str = "") -> List[Dict[str, Any]]:
        query = SELECT_DIVIDENDS_SQL
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY ex_dividend_date DESC" + tail
        try:
            rows = connection.fetch_all(query, tuple(params))
        except psycopg.Error as e:
            raise PersistenceError(operation, status=e.sqlstate, detail=str(e)) from e
        return [_serialize_row(dict(row)) for row in rows]

    @staticmethod
    def _date_clauses(start_date: Optional[date], end_date: Optional[date]):
        where: List[str] = []
        params: List[Any] = []
        if start_date:
            where.append("ex_dividend_date >= %s")
            params.append(start_date)
        if end_date:
            where.append("ex_dividend_date <= %s")
            params.append(end_date)
        return where, params

    def get_dividends(
        self,
        symbol: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        where, params = self._date_clauses(start_date, end_date)
        where.insert(0, "ticker = %s")
        params.insert(0, normalize_symbol(symbol))
        return self._select("get_dividends", where, params)

    def get_all_dividends(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        where, params = self._date_clauses(start_date, end_date)
        tail = ""
        if limit:
            tail += " LIMIT %s"
            params.append(int(limit))
        if offset:
            tail += " OFFSET %s"
            params.append(int(offset))
        return self._select("get_all_dividends", where, params, tail)

    def close(self) -> None:
        connection.close_global_pool()
