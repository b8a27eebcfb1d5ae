import time
import pytest
import sys
from pathlib import Path

# Load shared fixtures from tests._fixtures so pytest discovers them
pytest_plugins = [
    "tests._fixtures.conftest",
    "tests._fixtures.frozen_time",
]

# Ensure the project `src` package is importable during pytest collection.
# This mirrors editable installs by adding the repository `src/` to sys.path.
root = Path(__file__).resolve().parent.parent
src_path = str(root / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)


@pytest.fixture(autouse=True)
def no_sleep(mocker):
    """Prevent actual sleeping in tests; batch pacing would otherwise take 12s per ticker."""
    mocker.patch.object(time, "sleep", lambda s: None)


@pytest.fixture(autouse=True)
def patch_global_db_pool(mocker):
    """Point the global pool helpers at a fake pool so no test touches a real database."""
    from tests._fixtures import PoolFake

    pool_ref = {"pool": None}

    def get_global_pool_fake():
        if pool_ref["pool"] is None:
            pool_ref["pool"] = PoolFake()
        return pool_ref["pool"]

    def close_global_pool_fake():
        pool_ref["pool"] = None

    mocker.patch("ticker_backend.database.connection.get_global_pool", get_global_pool_fake)
    mocker.patch("ticker_backend.database.connection.close_global_pool", close_global_pool_fake)
    yield pool_ref


@pytest.fixture(autouse=True)
def block_network(mocker):
    """Autouse fixture: prevent any test from performing real network calls"""
    from tests._fixtures.remote_api_responses import canned_api_factory

    mocker.patch("requests.Session.get", return_value=canned_api_factory("empty"))
    mocker.patch("requests.Session.request", return_value=canned_api_factory("empty"))
    yield
