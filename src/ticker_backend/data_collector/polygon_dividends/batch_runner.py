"""
Sequential batch processing with provider-quota pacing
"""

import time
from typing import Callable, Iterable, List, Optional, Union

from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.polygon_dividends.dividend_pipeline import DividendIngestor
from ticker_backend.data_collector.polygon_dividends.models import (
    BatchResult,
    FetchMode,
    ProcessingResult,
)
from ticker_backend.data_collector.polygon_dividends.rate_limiter import RateLimiter

logger = get_logger(__name__, utility="data_collector")


class BatchScheduler:
    """
    Runs tickers through the ingestor one at a time, in input order

    Between consecutive tickers it sleeps for the rate limiter's pacing
    interval, so a batch of any length stays inside the provider quota. The
    limiter defaults to the one the ingestor's client counts against.
    """

    def __init__(
        self,
        ingestor: DividendIngestor,
        rate_limiter: Optional[RateLimiter] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.ingestor = ingestor
        self.rate_limiter = rate_limiter or ingestor.rate_limiter
        self._sleep = sleep

    def _pause(self, seconds: float) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        else:
            time.sleep(seconds)

    def process_batch(
        self,
        tickers: Iterable[str],
        force: bool = False,
        fetch_mode: Union[FetchMode, str, None] = None,
    ) -> BatchResult:
        """
        Process every ticker and aggregate the outcomes

        Per-ticker failures are part of the result; they never stop the batch.
        """
        tickers = list(tickers)
        interval = self.rate_limiter.pacing_interval
        results: List[ProcessingResult] = []

        logger.info(f"Starting batch of {len(tickers)} tickers (pacing {interval:.1f}s)")
        for index, ticker in enumerate(tickers):
            if index > 0:
                logger.debug(f"Pausing {interval:.1f}s before {ticker}")
                self._pause(interval)
            results.append(self.ingestor.process_ticker(ticker, force=force, fetch_mode=fetch_mode))

        batch = BatchResult.from_results(results)
        logger.info(
            f"Batch complete: {batch.summary.successful} successful, "
            f"{batch.summary.failed} failed, {batch.summary.skipped} skipped"
        )
        return batch
