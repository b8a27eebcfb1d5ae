"""
Ticker staleness tracking for dividend ingestion
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import config
from ticker_backend.data_collector.polygon_dividends.models import (
    StalenessDecision,
    Ticker,
    normalize_symbol,
    utc_now,
)
from ticker_backend.database.base import DividendStore

logger = get_logger(__name__, utility="data_collector")

FORCE_UPDATE = "force_update"
NEW_TICKER = "new_ticker"
NO_DIVIDEND_DATA = "no_dividend_data"
STALE_DATA = "stale_data"
RECENT_DATA = "recent_data"


class StalenessPolicy:
    """Decides whether a ticker needs (re)ingestion"""

    def __init__(self, max_age: timedelta = timedelta(hours=config.STALENESS_HOURS)):
        self.max_age = max_age

    def decide(
        self,
        ticker: Optional[Ticker],
        force: bool = False,
        now: Optional[datetime] = None,
    ) -> StalenessDecision:
        if force:
            return StalenessDecision(should_process=True, reason=FORCE_UPDATE)

        if ticker is None:
            return StalenessDecision(should_process=True, reason=NEW_TICKER)

        last_update = ticker.last_dividend_update
        if last_update is None:
            return StalenessDecision(should_process=True, reason=NO_DIVIDEND_DATA)

        # Stores without time zones hold UTC
        if last_update.tzinfo is None:
            last_update = last_update.replace(tzinfo=timezone.utc)

        now = now or utc_now()
        if last_update < now - self.max_age:
            return StalenessDecision(should_process=True, reason=STALE_DATA)

        return StalenessDecision(should_process=False, reason=RECENT_DATA)


class TickerManager:
    """
    Looks up stored ticker state and applies the staleness policy
    """

    def __init__(self, store: DividendStore, policy: Optional[StalenessPolicy] = None):
        self.store = store
        self.policy = policy or StalenessPolicy()

    def should_process(self, symbol: str, force: bool = False) -> StalenessDecision:
        """
        Evaluate whether `symbol` needs ingestion now

        A forced run never reads the store.
        """
        if force:
            return self.policy.decide(None, force=True)

        ticker = self.store.get_ticker_info(normalize_symbol(symbol))
        decision = self.policy.decide(ticker)
        logger.debug(f"Staleness for {symbol}: {decision.reason}")
        return decision
