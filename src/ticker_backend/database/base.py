"""
Storage contract used by the ingestion pipeline
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from ticker_backend.data_collector.polygon_dividends.models import (
    DividendRecord,
    StoreResult,
    Ticker,
)


class DividendStore(ABC):
    """
    Ticker and dividend persistence

    Implementations must keep every write idempotent: a duplicate key is a
    success, never an error. Any other failure raises PersistenceError.
    Symbols are stored upper-cased.
    """

    backend_name: str = "abstract"

    @abstractmethod
    def upsert_ticker(self, symbol: str) -> None:
        """Insert the ticker if absent; existing rows are left untouched"""

    @abstractmethod
    def get_ticker_info(self, symbol: str) -> Optional[Ticker]:
        """Return the stored ticker or None"""

    @abstractmethod
    def store_dividends(self, symbol: str, records: Sequence[DividendRecord]) -> StoreResult:
        """Bulk upsert keyed by (ticker, polygon_id); empty input makes no call"""

    @abstractmethod
    def update_ticker_timestamp(self, symbol: str) -> None:
        """Set last_dividend_update and last_polygon_call to now"""

    @abstractmethod
    def get_dividends(
        self,
        symbol: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Stored dividends for one ticker, newest ex-dividend date first"""

    @abstractmethod
    def get_all_dividends(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Stored dividends across all tickers, newest ex-dividend date first"""

    def close(self) -> None:
        pass
