"""
Dividend pipeline: drives one ticker through staleness check, fetch,
normalization and storage.

`DividendIngestor.process_ticker` is the per-ticker error boundary. Whatever
goes wrong inside it comes back as a failed `ProcessingResult`; nothing
propagates to the caller, so a batch always continues with the next ticker.
"""

import time
from typing import Optional, Union

from ticker_backend.exceptions import IngestionError, ValidationError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import IngestionConfig, config as default_config
from ticker_backend.data_collector.ticker_manager import TickerManager
from ticker_backend.data_collector.polygon_dividends.client import PolygonDividendClient
from ticker_backend.data_collector.polygon_dividends.date_range import compute_fetch_window
from ticker_backend.data_collector.polygon_dividends.dividend_transform import normalize_dividends
from ticker_backend.data_collector.polygon_dividends.models import (
    DividendCounts,
    FetchMode,
    NormalizationPolicy,
    Outcome,
    ProcessingResult,
    normalize_symbol,
)
from ticker_backend.data_collector.polygon_dividends.rate_limiter import RateLimiter
from ticker_backend.database.base import DividendStore

logger = get_logger(__name__, utility="data_collector")


def _elapsed_ms(started: float) -> int:
    return int(round((time.time() - started) * 1000))


class DividendIngestor:
    """Single orchestrator for dividend ingestion; behaviour differences come from config"""

    def __init__(
        self,
        store: DividendStore,
        client: Optional[PolygonDividendClient] = None,
        ticker_manager: Optional[TickerManager] = None,
        cfg: Optional[IngestionConfig] = None,
    ) -> None:
        self.config = cfg or default_config
        self.store = store
        self.client = client or PolygonDividendClient(
            api_key=self.config.POLYGON_API_KEY,
            rate_limiter=RateLimiter(
                max_calls=self.config.REQUESTS_PER_WINDOW,
                window_seconds=self.config.RATE_WINDOW_SECONDS,
            ),
            base_url=self.config.POLYGON_BASE_URL,
        )
        self.ticker_manager = ticker_manager or TickerManager(store)
        self.policy = NormalizationPolicy(self.config.NORMALIZATION_POLICY)

    @property
    def rate_limiter(self) -> RateLimiter:
        return self.client.rate_limiter

    def process_ticker(
        self,
        ticker: str,
        force: bool = False,
        fetch_mode: Union[FetchMode, str, None] = None,
    ) -> ProcessingResult:
        """
        Process one ticker end to end

        Args:
            ticker: Ticker symbol, any case
            force: Skip the staleness check
            fetch_mode: 'historical' or 'incremental' (defaults to config)

        Returns:
            ProcessingResult with outcome processed, skipped or failed
        """
        started = time.time()
        symbol = normalize_symbol(ticker)
        mode: Optional[FetchMode] = None
        counts = DividendCounts()
        reason: Optional[str] = None

        try:
            if not symbol:
                raise ValidationError("Ticker symbol is required")
            mode = FetchMode(fetch_mode or self.config.DEFAULT_FETCH_MODE)

            decision = self.ticker_manager.should_process(symbol, force=force)
            reason = decision.reason
            if not decision.should_process:
                logger.info(f"Skipping {symbol}: {reason}")
                return ProcessingResult(
                    ticker=symbol,
                    outcome=Outcome.SKIPPED,
                    reason=reason,
                    fetch_mode=mode,
                    processing_time_ms=_elapsed_ms(started),
                )

            logger.info(f"Processing {symbol} ({reason}, {mode.value})")
            self.store.upsert_ticker(symbol)

            window = compute_fetch_window(mode)
            raws = self.client.fetch_dividends(symbol, window)
            counts.found = len(raws)

            records, rejected = normalize_dividends(
                raws, symbol, policy=self.policy, staging_path=self.config.DIVIDENDS_BAD_STAGING
            )
            counts.errors = rejected

            if records:
                stored = self.store.store_dividends(symbol, records)
                counts.stored = stored.inserted
                counts.errors += stored.errors
            else:
                logger.info(f"No dividend records to store for {symbol}")

            self.store.update_ticker_timestamp(symbol)

        except (IngestionError, ValueError) as e:
            category = getattr(e, "category", ValidationError.category)
            logger.error(f"Failed to process {symbol or ticker!r}: [{category}] {e}")
            return self._failed(symbol or str(ticker), mode, reason, counts, started, e, category)
        except Exception as e:
            logger.exception(f"Unexpected error processing {symbol or ticker!r}: {e}")
            return self._failed(
                symbol or str(ticker), mode, reason, counts, started, e, IngestionError.category
            )

        result = ProcessingResult(
            ticker=symbol,
            outcome=Outcome.PROCESSED,
            reason=reason,
            fetch_mode=mode,
            dividends=counts,
            processing_time_ms=_elapsed_ms(started),
        )
        logger.info(
            f"Processed {symbol}: found={counts.found} stored={counts.stored} "
            f"errors={counts.errors} in {result.processing_time_ms}ms"
        )
        return result

    @staticmethod
    def _failed(
        symbol: str,
        mode: Optional[FetchMode],
        reason: Optional[str],
        counts: DividendCounts,
        started: float,
        error: Exception,
        category: str,
    ) -> ProcessingResult:
        return ProcessingResult(
            ticker=symbol,
            outcome=Outcome.FAILED,
            reason=reason,
            fetch_mode=mode,
            dividends=counts,
            processing_time_ms=_elapsed_ms(started),
            error=str(error),
            error_category=category,
        )
