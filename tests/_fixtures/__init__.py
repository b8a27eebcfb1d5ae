"""Fixtures package for tests.

Re-export commonly used fakes and factories for convenient imports from the
`tests._fixtures` package.
"""

from .remote_api_responses import (
    FakeResponse,
    canned_api_factory,
    SAMPLE_DIVIDENDS,
)
from .db import CursorFake, ConnectionFake, PoolFake
from .stores import InMemoryDividendStore
from .frozen_time import FrozenClock

__all__ = [
    "FakeResponse",
    "canned_api_factory",
    "SAMPLE_DIVIDENDS",
    "CursorFake",
    "ConnectionFake",
    "PoolFake",
    "InMemoryDividendStore",
    "FrozenClock",
]
