"""
Fetch window computation for dividend requests
"""

from datetime import date, datetime
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from ticker_backend.data_collector.polygon_dividends.models import FetchMode, FetchWindow, utc_now

# (lookback, lookahead) per fetch mode
WINDOW_OFFSETS = {
    # Two years of history plus announced future dividends
    FetchMode.HISTORICAL: (relativedelta(years=2), relativedelta(months=6)),
    # Recent updates only
    FetchMode.INCREMENTAL: (relativedelta(days=2), relativedelta(months=3)),
}


def compute_fetch_window(
    mode: Union[FetchMode, str] = FetchMode.HISTORICAL,
    now: Optional[Union[date, datetime]] = None,
) -> FetchWindow:
    """
    Map a fetch mode to an inclusive, day-granular date window

    Args:
        mode: 'historical' or 'incremental'
        now: Reference instant (defaults to the current UTC time)

    Returns:
        FetchWindow with start_date and end_date
    """
    fetch_mode = FetchMode(mode)
    if now is None:
        now = utc_now()
    today = now.date() if isinstance(now, datetime) else now

    lookback, lookahead = WINDOW_OFFSETS[fetch_mode]
    return FetchWindow(
        start_date=today - lookback,
        end_date=today + lookahead,
        fetch_mode=fetch_mode,
    )
