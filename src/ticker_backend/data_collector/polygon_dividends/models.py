"""
Data models for tickers, dividend records and ingestion results
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_symbol(symbol: str) -> str:
    """Canonical form of a ticker symbol: stripped and upper-cased"""
    return (symbol or "").strip().upper()


class FetchMode(str, Enum):
    """Date window requested from the provider"""
    HISTORICAL = "historical"
    INCREMENTAL = "incremental"


class Outcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


class NormalizationPolicy(str, Enum):
    """How malformed provider records are handled"""
    COERCE = "coerce"
    REJECT = "reject"


class Ticker(BaseModel):
    """Stored ticker row with staleness timestamps"""

    model_config = ConfigDict(extra="ignore")

    symbol: str = Field(..., min_length=1, description="Upper-case ticker symbol")
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_dividend_update: Optional[datetime] = Field(None, description="Last successful ingestion")
    last_polygon_call: Optional[datetime] = Field(None, description="Last provider call")

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        symbol = normalize_symbol(v)
        if not symbol:
            raise ValueError("Ticker symbol cannot be empty")
        return symbol


class DividendRecord(BaseModel):
    """
    Canonical dividend record

    Dates are kept as the ISO strings the provider sent. The natural key for
    idempotent storage is (ticker, polygon_id).
    """

    model_config = ConfigDict(extra="ignore")

    ticker: str
    declaration_date: Optional[str] = None
    record_date: Optional[str] = None
    ex_dividend_date: str
    pay_date: Optional[str] = None
    amount: float = 0.0
    currency: str = "USD"
    frequency: int = 4
    type: str = "Cash"
    polygon_id: Optional[str] = None
    data_source: str = "polygon"
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("ticker")
    @classmethod
    def validate_ticker(cls, v: str) -> str:
        return normalize_symbol(v)

    def to_row(self) -> dict:
        """Row dict in the persisted dividends table layout"""
        return self.model_dump(mode="json")


class FetchWindow(BaseModel):
    """Inclusive ex-dividend date range requested from the provider"""

    start_date: date
    end_date: date
    fetch_mode: FetchMode


class StalenessDecision(BaseModel):
    should_process: bool
    reason: str


class StoreResult(BaseModel):
    inserted: int = 0
    errors: int = 0


class DividendCounts(BaseModel):
    found: int = 0
    stored: int = 0
    errors: int = 0


class ProcessingResult(BaseModel):
    """Outcome of driving one ticker through the ingestion pipeline"""

    ticker: str
    outcome: Outcome
    reason: Optional[str] = None
    fetch_mode: Optional[FetchMode] = None
    dividends: DividendCounts = Field(default_factory=DividendCounts)
    processing_time_ms: int = 0
    error: Optional[str] = None
    error_category: Optional[str] = None

    @computed_field
    @property
    def success(self) -> bool:
        return self.outcome != Outcome.FAILED


class BatchSummary(BaseModel):
    successful: int = 0
    failed: int = 0
    skipped: int = 0


class BatchResult(BaseModel):
    """Ordered per-ticker results plus aggregate counts"""

    total_tickers: int
    results: List[ProcessingResult] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)

    @classmethod
    def from_results(cls, results: List[ProcessingResult]) -> "BatchResult":
        summary = BatchSummary(
            successful=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if r.outcome == Outcome.FAILED),
            skipped=sum(1 for r in results if r.outcome == Outcome.SKIPPED),
        )
        return cls(total_tickers=len(results), results=list(results), summary=summary)
