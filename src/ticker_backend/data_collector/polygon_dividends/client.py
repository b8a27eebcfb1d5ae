"""
Polygon.io dividends client with quota accounting and error classification
"""

import requests
from typing import Any, Dict, List, Optional, TypedDict, Union, cast
from urllib.parse import urljoin

from ticker_backend.exceptions import ConfigError, RateLimitExceeded, UpstreamError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import config
from ticker_backend.data_collector.polygon_dividends.models import FetchWindow, normalize_symbol
from ticker_backend.data_collector.polygon_dividends.rate_limiter import RateLimiter

logger = get_logger(__name__, utility="data_collector")


class RawDividend(TypedDict, total=False):
    """Dividend record structure from Polygon API"""
    id: str
    cash_amount: float
    currency: str
    declaration_date: str
    dividend_type: str
    ex_dividend_date: str
    frequency: int
    pay_date: str
    record_date: str
    ticker: str


class PolygonDividendClient:
    """Client for the Polygon.io reference dividends endpoint"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
    ) -> None:
        """
        Initialize the Polygon.io dividends client

        Args:
            api_key: Polygon.io API key (defaults to config)
            rate_limiter: Shared quota bucket (a fresh one per client if omitted)
            session: requests session to reuse
            base_url: API root (defaults to config)
        """
        self.api_key: Optional[str] = api_key or config.POLYGON_API_KEY
        self.base_url: str = base_url or config.POLYGON_BASE_URL
        self.rate_limiter: RateLimiter = rate_limiter or RateLimiter()
        self.session: requests.Session = session or requests.Session()

        self.session.headers.update(
            {"User-Agent": config.USER_AGENT, "Accept": "application/json"}
        )

    def fetch_dividends(
        self, ticker: str, window: FetchWindow
    ) -> List[Union[RawDividend, Dict[str, Any]]]:
        """
        Fetch raw dividend records with ex-dividend date inside `window`

        Args:
            ticker: Stock ticker symbol
            window: Inclusive ex-dividend date range

        Returns:
            List of dividend records as returned by Polygon

        Raises:
            ConfigError: API key is not configured
            RateLimitExceeded: local quota spent or HTTP 429 from Polygon
            UpstreamError: any other non-success response
        """
        if not self.api_key:
            raise ConfigError("POLYGON_API_KEY not configured")

        symbol = normalize_symbol(ticker)
        if not symbol:
            raise ValueError("ticker is required for fetch_dividends")

        # Counts the call before it is made; raises instead of waiting
        self.rate_limiter.acquire()

        url = urljoin(self.base_url, config.DIVIDENDS_ENDPOINT)
        params: Dict[str, Any] = {
            "ticker": symbol,
            "ex_dividend_date.gte": window.start_date.isoformat(),
            "ex_dividend_date.lte": window.end_date.isoformat(),
            "limit": config.MAX_RECORDS_PER_REQUEST,
            "apikey": self.api_key,
        }

        logger.info(
            f"Fetching dividends for {symbol} from {window.start_date} to {window.end_date}"
        )
        data = self._get_json(url, params)

        results = data.get("results") or []
        if data.get("next_url"):
            logger.warning(
                f"{symbol}: more than {config.MAX_RECORDS_PER_REQUEST} dividends in window, "
                "only the first page was fetched"
            )
        logger.info(f"Found {len(results)} dividend records for {symbol}")
        return cast(List[Union[RawDividend, Dict[str, Any]]], results)

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Issue a single GET and classify the response"""
        try:
            response = self.session.get(url, params=params, timeout=config.REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise UpstreamError(f"Polygon request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitExceeded("Polygon rate limit exceeded", source="provider")

        if not 200 <= response.status_code < 300:
            body = response.text
            raise UpstreamError(
                f"Polygon API error ({response.status_code}): {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                "Malformed JSON in Polygon response",
                status_code=response.status_code,
                body=response.text,
            ) from e

        if not isinstance(data, dict):
            raise UpstreamError(
                "Unexpected Polygon response shape", status_code=response.status_code, body=data
            )

        if data.get("status") == "ERROR":
            raise UpstreamError(
                f"API Error: {data.get('error', 'Unknown API error')}",
                status_code=response.status_code,
                body=data,
            )

        return data

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "PolygonDividendClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
