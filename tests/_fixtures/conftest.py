import pytest

from tests._fixtures import InMemoryDividendStore, PoolFake
from tests._fixtures.factories import set_factory_seed


@pytest.fixture(scope="session", autouse=True)
def factory_seed():
    """Seed Faker, polyfactory and `random` once per session for deterministic data."""
    seed = 42
    set_factory_seed(seed)
    return seed


@pytest.fixture
def memory_store():
    """Fresh in-memory DividendStore per test."""
    return InMemoryDividendStore()


@pytest.fixture
def pool_fake():
    return PoolFake()
