from datetime import date
from unittest.mock import MagicMock

import pytest
import requests

from ticker_backend.exceptions import ConfigError, PersistenceError
from ticker_backend.database.rest_storage import RestDividendStore
from tests._fixtures import FakeResponse
from tests._fixtures.factories import DividendRecordFactory


@pytest.fixture
def session():
    fake = MagicMock(spec=requests.Session)
    fake.headers = {}
    fake.request.return_value = FakeResponse(status=201, payload=[])
    return fake


@pytest.fixture
def store(session):
    return RestDividendStore(base_url="https://db.example.supabase.co/", api_key="anon", session=session)


@pytest.mark.unit
def test_headers_carry_bearer_and_apikey(store, session):
    assert session.headers["Authorization"] == "Bearer anon"
    assert session.headers["apikey"] == "anon"
    assert store.rest_url == "https://db.example.supabase.co/rest/v1"


@pytest.mark.unit
def test_missing_credentials_raise_config_error(mocker):
    from ticker_backend.data_collector.config import config

    mocker.patch.object(config, "SUPABASE_URL", None)
    with pytest.raises(ConfigError):
        RestDividendStore(base_url=None, api_key="anon")


@pytest.mark.unit
def test_upsert_ticker_uppercases_and_ignores_duplicates(store, session):
    store.upsert_ticker("aapl")

    method, url = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert (method, url) == ("POST", "https://db.example.supabase.co/rest/v1/tickers")
    assert kwargs["json"]["symbol"] == "AAPL"
    assert kwargs["headers"] == {"Prefer": "resolution=ignore-duplicates"}
    assert kwargs["params"] == {"on_conflict": "symbol"}


@pytest.mark.unit
def test_upsert_ticker_conflict_is_success(store, session):
    session.request.return_value = FakeResponse(status=409, payload={"code": "23505"})
    store.upsert_ticker("AAPL")


@pytest.mark.unit
def test_upsert_ticker_server_error_raises(store, session):
    session.request.return_value = FakeResponse(status=500, payload={}, text="db down")
    with pytest.raises(PersistenceError) as exc:
        store.upsert_ticker("AAPL")
    assert exc.value.operation == "upsert_ticker"
    assert exc.value.status == 500


@pytest.mark.unit
def test_get_ticker_info_returns_model(store, session):
    session.request.return_value = FakeResponse(
        status=200,
        payload=[{"symbol": "AAPL", "is_active": True, "last_dividend_update": "2024-06-14T10:00:00+00:00"}],
    )

    ticker = store.get_ticker_info("aapl")

    assert ticker.symbol == "AAPL"
    assert ticker.last_dividend_update.year == 2024
    assert session.request.call_args.kwargs["params"]["symbol"] == "eq.AAPL"


@pytest.mark.unit
def test_get_ticker_info_missing_returns_none(store, session):
    session.request.return_value = FakeResponse(status=200, payload=[])
    assert store.get_ticker_info("ZZZZ") is None


@pytest.mark.unit
def test_store_empty_list_makes_no_call(store, session):
    result = store.store_dividends("AAPL", [])
    assert (result.inserted, result.errors) == (0, 0)
    session.request.assert_not_called()


@pytest.mark.unit
def test_store_dividends_bulk_upsert(store, session):
    records = DividendRecordFactory.batch(3, ticker="aapl")

    result = store.store_dividends("aapl", records)

    assert result.inserted == 3
    kwargs = session.request.call_args.kwargs
    assert kwargs["params"] == {"on_conflict": "ticker,polygon_id"}
    assert kwargs["headers"] == {"Prefer": "resolution=merge-duplicates"}
    assert {row["ticker"] for row in kwargs["json"]} == {"AAPL"}


@pytest.mark.unit
def test_store_dividends_keeps_stored_creation_time(store, session):
    store.store_dividends("AAPL", DividendRecordFactory.batch(2))

    for row in session.request.call_args.kwargs["json"]:
        if "created_at" in row:
            raise AssertionError("redelivery must not overwrite created_at")
        assert row["polygon_id"]


@pytest.mark.unit
def test_store_dividends_duplicate_batch_is_success(store, session):
    session.request.return_value = FakeResponse(status=409, payload={})
    result = store.store_dividends("AAPL", DividendRecordFactory.batch(2))
    assert (result.inserted, result.errors) == (0, 0)


@pytest.mark.unit
def test_store_dividends_server_error_raises(store, session):
    session.request.return_value = FakeResponse(status=500, payload={})
    with pytest.raises(PersistenceError) as exc:
        store.store_dividends("AAPL", DividendRecordFactory.batch(1))
    assert exc.value.category == "persistence_error"


@pytest.mark.unit
def test_transport_failure_becomes_persistence_error(store, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(PersistenceError) as exc:
        store.update_ticker_timestamp("AAPL")
    assert exc.value.status is None


@pytest.mark.unit
def test_update_ticker_timestamp_patches_both_fields(store, session):
    session.request.return_value = FakeResponse(status=204, payload={})

    store.update_ticker_timestamp("aapl")

    method = session.request.call_args.args[0]
    body = session.request.call_args.kwargs["json"]
    assert method == "PATCH"
    assert body["last_dividend_update"] == body["last_polygon_call"]


@pytest.mark.unit
def test_get_dividends_filters_and_orders(store, session):
    session.request.return_value = FakeResponse(status=200, payload=[{"ticker": "AAPL"}])

    rows = store.get_dividends("aapl", date(2024, 1, 1), date(2024, 12, 31))

    assert rows == [{"ticker": "AAPL"}]
    params = session.request.call_args.kwargs["params"]
    assert ("ticker", "eq.AAPL") in params
    assert ("order", "ex_dividend_date.desc") in params
    assert ("ex_dividend_date", "gte.2024-01-01") in params
    assert ("ex_dividend_date", "lte.2024-12-31") in params


@pytest.mark.unit
def test_get_all_dividends_paginates(store, session):
    session.request.return_value = FakeResponse(status=200, payload=[])

    store.get_all_dividends(limit=50, offset=100)

    params = session.request.call_args.kwargs["params"]
    assert ("limit", 50) in params
    assert ("offset", 100) in params
