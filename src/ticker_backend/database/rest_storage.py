"""
Supabase (PostgREST) storage for tickers and dividends over HTTP
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import requests

from ticker_backend.exceptions import ConfigError, PersistenceError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import config
from ticker_backend.data_collector.polygon_dividends.models import (
    DividendRecord,
    StoreResult,
    Ticker,
    normalize_symbol,
    utc_now,
)
from ticker_backend.database.base import DividendStore

logger = get_logger(__name__, utility="database")

# PostgREST answers a unique-key violation with 409 Conflict
DUPLICATE_KEY_STATUS = 409


class RestDividendStore(DividendStore):
    """
    DividendStore backed by the Supabase REST interface

    Tables: `tickers` keyed by symbol, `dividends` unique on (ticker, polygon_id).
    """

    backend_name = "rest"

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[int] = None,
    ) -> None:
        base_url = base_url or config.SUPABASE_URL
        api_key = api_key or config.SUPABASE_ANON_KEY
        if not base_url or not api_key:
            raise ConfigError("SUPABASE_URL and SUPABASE_ANON_KEY must be configured")

        self.rest_url: str = base_url.rstrip("/") + "/rest/v1"
        self.timeout: int = timeout or config.REQUEST_TIMEOUT
        self.session: requests.Session = session or requests.Session()
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Authorization": f"Bearer {api_key}",
                "apikey": api_key,
            }
        )

    def _request(self, operation: str, method: str, table: str, **kwargs: Any) -> requests.Response:
        try:
            return self.session.request(
                method, f"{self.rest_url}/{table}", timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise PersistenceError(operation, status=None, detail=str(e)) from e

    @staticmethod
    def _fail(operation: str, response: requests.Response) -> PersistenceError:
        return PersistenceError(operation, status=response.status_code, detail=response.text)

    def upsert_ticker(self, symbol: str) -> None:
        symbol = normalize_symbol(symbol)
        response = self._request(
            "upsert_ticker",
            "POST",
            "tickers",
            params={"on_conflict": "symbol"},
            headers={"Prefer": "resolution=ignore-duplicates"},
            json={"symbol": symbol, "is_active": True, "created_at": utc_now().isoformat()},
        )
        if response.ok or response.status_code == DUPLICATE_KEY_STATUS:
            return
        raise self._fail("upsert_ticker", response)

    def get_ticker_info(self, symbol: str) -> Optional[Ticker]:
        symbol = normalize_symbol(symbol)
        response = self._request(
            "get_ticker_info",
            "GET",
            "tickers",
            params={"symbol": f"eq.{symbol}", "select": "*"},
        )
        if not response.ok:
            raise self._fail("get_ticker_info", response)

        rows = response.json() or []
        if not rows:
            return None
        return Ticker.model_validate(rows[0])

    def store_dividends(self, symbol: str, records: Sequence[DividendRecord]) -> StoreResult:
        if not records:
            return StoreResult(inserted=0, errors=0)

        symbol = normalize_symbol(symbol)
        rows = []
        for record in records:
            row = record.to_row()
            row["ticker"] = symbol
            # merge-duplicates rewrites every sent column; the table default sets created_at
            row.pop("created_at", None)
            rows.append(row)

        response = self._request(
            "store_dividends",
            "POST",
            "dividends",
            params={"on_conflict": "ticker,polygon_id"},
            headers={"Prefer": "resolution=merge-duplicates"},
            json=rows,
        )
        if response.ok:
            return StoreResult(inserted=len(rows), errors=0)
        if response.status_code == DUPLICATE_KEY_STATUS:
            logger.info(f"{symbol}: all {len(rows)} dividends already stored")
            return StoreResult(inserted=0, errors=0)
        raise self._fail("store_dividends", response)

    def update_ticker_timestamp(self, symbol: str) -> None:
        symbol = normalize_symbol(symbol)
        now = utc_now().isoformat()
        response = self._request(
            "update_ticker_timestamp",
            "PATCH",
            "tickers",
            params={"symbol": f"eq.{symbol}"},
            json={"last_dividend_update": now, "last_polygon_call": now},
        )
        if not response.ok:
            raise self._fail("update_ticker_timestamp", response)

    def _select_dividends(self, operation: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        response = self._request(operation, "GET", "dividends", params=params)
        if not response.ok:
            raise self._fail(operation, response)
        return response.json() or []

    @staticmethod
    def _date_filter(start_date: Optional[date], end_date: Optional[date]) -> List[str]:
        filters = []
        if start_date:
            filters.append(f"gte.{start_date.isoformat()}")
        if end_date:
            filters.append(f"lte.{end_date.isoformat()}")
        return filters

    def get_dividends(
        self,
        symbol: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        params: List[tuple] = [
            ("ticker", f"eq.{normalize_symbol(symbol)}"),
            ("order", "ex_dividend_date.desc"),
        ]
        params += [("ex_dividend_date", f) for f in self._date_filter(start_date, end_date)]
        return self._select_dividends("get_dividends", params)

    def get_all_dividends(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params: List[tuple] = [("order", "ex_dividend_date.desc")]
        params += [("ex_dividend_date", f) for f in self._date_filter(start_date, end_date)]
        if limit:
            params.append(("limit", int(limit)))
        if offset:
            params.append(("offset", int(offset)))
        return self._select_dividends("get_all_dividends", params)

    def close(self) -> None:
        self.session.close()
