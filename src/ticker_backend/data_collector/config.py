"""
Configuration settings for Polygon.io dividend ingestion and storage
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv
load_dotenv()


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass
class IngestionConfig:
    """Configuration class for dividend ingestion settings"""

    # Polygon API Configuration
    POLYGON_API_KEY: Optional[str] = os.getenv("POLYGON_API_KEY")
    POLYGON_BASE_URL: str = os.getenv("POLYGON_BASE_URL", "https://api.polygon.io")
    DIVIDENDS_ENDPOINT: str = "/v3/reference/dividends"
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))
    MAX_RECORDS_PER_REQUEST: int = 1000
    USER_AGENT: str = "ticker-backend/1.0"

    # Rate Limiting: fixed provider quota (free tier)
    REQUESTS_PER_WINDOW: int = 5
    RATE_WINDOW_SECONDS: float = 60.0

    # Staleness
    STALENESS_HOURS: int = 24

    # Ingestion behaviour
    DEFAULT_FETCH_MODE: str = os.getenv("DEFAULT_FETCH_MODE", "historical")
    NORMALIZATION_POLICY: str = os.getenv("NORMALIZATION_POLICY", "coerce")  # coerce, reject
    DIVIDENDS_BAD_STAGING: Optional[str] = os.getenv("DIVIDENDS_BAD_STAGING")

    # Storage backend: rest (Supabase/PostgREST) or postgres
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "rest")
    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = os.getenv("SUPABASE_ANON_KEY")

    # Queue: memory (in-process queue drained after each send) or none
    QUEUE_BACKEND: str = os.getenv("QUEUE_BACKEND", "memory")
    QUEUE_MAX_RETRIES: int = int(os.getenv("QUEUE_MAX_RETRIES", "3"))

    # Database Configuration
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
    DB_NAME: str = os.getenv("DB_NAME", "ticker_backend")
    DB_USER: str = os.getenv("DB_USER", "postgres")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")

    # Logging
    LOG_TO_FILE: bool = _env_flag("LOG_TO_FILE")

    @property
    def database_url(self) -> str:
        """Generate PostgreSQL connection URL"""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @property
    def pacing_interval(self) -> float:
        """Seconds between provider calls that keeps a batch inside the quota"""
        return self.RATE_WINDOW_SECONDS / self.REQUESTS_PER_WINDOW

    @classmethod
    def from_env(cls) -> "IngestionConfig":
        """Create configuration from environment variables"""
        return cls(
            POLYGON_API_KEY=os.getenv("POLYGON_API_KEY", cls.POLYGON_API_KEY),
            POLYGON_BASE_URL=os.getenv("POLYGON_BASE_URL", cls.POLYGON_BASE_URL),
            REQUEST_TIMEOUT=int(os.getenv("REQUEST_TIMEOUT", str(cls.REQUEST_TIMEOUT))),
            DEFAULT_FETCH_MODE=os.getenv("DEFAULT_FETCH_MODE", cls.DEFAULT_FETCH_MODE),
            NORMALIZATION_POLICY=os.getenv("NORMALIZATION_POLICY", cls.NORMALIZATION_POLICY),
            DIVIDENDS_BAD_STAGING=os.getenv("DIVIDENDS_BAD_STAGING", cls.DIVIDENDS_BAD_STAGING),
            STORAGE_BACKEND=os.getenv("STORAGE_BACKEND", cls.STORAGE_BACKEND).strip().lower(),
            SUPABASE_URL=os.getenv("SUPABASE_URL", cls.SUPABASE_URL),
            SUPABASE_ANON_KEY=os.getenv("SUPABASE_ANON_KEY", cls.SUPABASE_ANON_KEY),
            QUEUE_BACKEND=os.getenv("QUEUE_BACKEND", cls.QUEUE_BACKEND).strip().lower(),
            QUEUE_MAX_RETRIES=int(os.getenv("QUEUE_MAX_RETRIES", str(cls.QUEUE_MAX_RETRIES))),
            DB_HOST=os.getenv("DB_HOST", cls.DB_HOST),
            DB_PORT=int(os.getenv("DB_PORT", str(cls.DB_PORT))),
            DB_NAME=os.getenv("DB_NAME", cls.DB_NAME),
            DB_USER=os.getenv("DB_USER", cls.DB_USER),
            DB_PASSWORD=os.getenv("DB_PASSWORD", cls.DB_PASSWORD),
            LOG_TO_FILE=_env_flag("LOG_TO_FILE"),
        )


# Global configuration instance
config = IngestionConfig.from_env()
