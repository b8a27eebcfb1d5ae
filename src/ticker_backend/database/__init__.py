"""
Database Package

Storage backends for tickers and dividends.
"""

from typing import Optional

from ticker_backend.exceptions import ConfigError
from ticker_backend.data_collector.config import IngestionConfig, config as default_config
from ticker_backend.database.base import DividendStore


def get_dividend_store(cfg: Optional[IngestionConfig] = None) -> DividendStore:
    """Build the store selected by STORAGE_BACKEND (rest or postgres)"""
    cfg = cfg or default_config
    backend = (cfg.STORAGE_BACKEND or "rest").strip().lower()

    if backend == "rest":
        from ticker_backend.database.rest_storage import RestDividendStore

        return RestDividendStore(
            base_url=cfg.SUPABASE_URL,
            api_key=cfg.SUPABASE_ANON_KEY,
            timeout=cfg.REQUEST_TIMEOUT,
        )
    if backend == "postgres":
        from ticker_backend.database.postgres_storage import PostgresDividendStore

        return PostgresDividendStore()

    raise ConfigError(f"Unknown STORAGE_BACKEND: {cfg.STORAGE_BACKEND!r}")


__all__ = ["DividendStore", "get_dividend_store"]
