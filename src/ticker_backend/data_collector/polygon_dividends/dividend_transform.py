"""
Dividend record normalization.

Maps raw Polygon dividend entries to `DividendRecord`. Under the default
`coerce` policy malformed values fall back to defaults (amount 0.0, missing
dates None). Under `reject` they raise `TransformError` and the raw entry is
appended to a JSONL staging file for review.
"""

import json
import math
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from dateutil.parser import isoparse

from ticker_backend.exceptions import TransformError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import config
from ticker_backend.data_collector.polygon_dividends.models import (
    DividendRecord,
    NormalizationPolicy,
)

logger = get_logger(__name__, utility="data_collector")

OPTIONAL_DATE_FIELDS = ("declaration_date", "record_date", "pay_date")

DEFAULT_CURRENCY = "USD"
DEFAULT_FREQUENCY = 4
DEFAULT_TYPE = "Cash"
DATA_SOURCE = "polygon"


def _write_bad_record(raw: Dict[str, Any], reason: str, staging_path: Optional[str]) -> None:
    if not staging_path:
        return
    try:
        with open(staging_path, "a", encoding="utf-8") as fh:
            fh.write(json.dumps({"reason": reason, "payload": raw}, default=str) + "\n")
    except OSError as e:
        logger.error(f"Failed to write bad record to staging: {e}")


def _parse_amount(value: Any) -> Optional[float]:
    """Return the amount as a finite float, or None when it cannot be parsed"""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None
    return amount


def _parse_frequency(value: Any) -> int:
    try:
        frequency = int(value)
    except (TypeError, ValueError):
        return DEFAULT_FREQUENCY
    return frequency or DEFAULT_FREQUENCY


def _is_iso_date(value: Any) -> bool:
    try:
        isoparse(str(value))
    except (TypeError, ValueError, OverflowError):
        return False
    return True


def transform_dividend_record(
    raw: Dict[str, Any],
    ticker: str,
    policy: Union[NormalizationPolicy, str] = NormalizationPolicy.COERCE,
    staging_path: Optional[str] = None,
) -> DividendRecord:
    """
    Transform one raw Polygon dividend entry into a DividendRecord

    Rules:
        - `ex_dividend_date` is copied verbatim and is required under every policy
        - declaration/record/pay dates default to None when missing
        - `cash_amount` parsed as float, 0.0 when unparsable (coerce)
        - currency/frequency/type default to USD/4/Cash
        - `id` carried through as `polygon_id`; required under every policy since
          it is half of the storage key

    Raises:
        TransformError: record rejected (missing ex-dividend date or id, or any
            malformed value under the reject policy)
    """
    policy = NormalizationPolicy(policy)
    strict = policy == NormalizationPolicy.REJECT

    def _reject(reason: str) -> TransformError:
        _write_bad_record(raw, reason, staging_path)
        return TransformError(f"{ticker}: {reason}")

    ex_dividend_date = raw.get("ex_dividend_date")
    if not ex_dividend_date:
        raise _reject("missing_ex_dividend_date")

    # A NULL polygon_id never matches the (ticker, polygon_id) unique key
    polygon_id = raw.get("id")
    if not polygon_id:
        raise _reject("missing_id")

    amount = _parse_amount(raw.get("cash_amount"))
    if amount is None:
        if strict:
            raise _reject("invalid_cash_amount")
        logger.debug(f"{ticker}: unparsable cash_amount {raw.get('cash_amount')!r}, using 0.0")
        amount = 0.0

    dates = {
        field: str(raw[field]) if raw.get(field) else None for field in OPTIONAL_DATE_FIELDS
    }
    if strict:
        for field, value in {"ex_dividend_date": ex_dividend_date, **dates}.items():
            if value is not None and not _is_iso_date(value):
                raise _reject(f"invalid_{field}")

    return DividendRecord(
        ticker=ticker,
        ex_dividend_date=str(ex_dividend_date),
        declaration_date=dates["declaration_date"],
        record_date=dates["record_date"],
        pay_date=dates["pay_date"],
        amount=amount,
        currency=str(raw.get("currency") or DEFAULT_CURRENCY),
        frequency=_parse_frequency(raw.get("frequency")),
        type=str(raw.get("dividend_type") or DEFAULT_TYPE),
        polygon_id=str(polygon_id),
        data_source=DATA_SOURCE,
    )


def normalize_dividends(
    raws: Iterable[Dict[str, Any]],
    ticker: str,
    policy: Union[NormalizationPolicy, str, None] = None,
    staging_path: Optional[str] = None,
) -> Tuple[List[DividendRecord], int]:
    """
    Normalize every raw entry for one ticker

    Returns:
        (records, rejected_count)
    """
    policy = policy or config.NORMALIZATION_POLICY
    staging_path = staging_path or config.DIVIDENDS_BAD_STAGING

    records: List[DividendRecord] = []
    rejected = 0
    for raw in raws:
        try:
            records.append(transform_dividend_record(raw, ticker, policy, staging_path))
        except TransformError as e:
            rejected += 1
            logger.warning(f"Dividend record rejected: {e}")

    if rejected:
        logger.info(f"{ticker}: normalized {len(records)} records, rejected {rejected}")
    return records, rejected
