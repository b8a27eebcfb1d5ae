from datetime import datetime, timedelta, timezone

import pytest

from ticker_backend.exceptions import RateLimitExceeded
from ticker_backend.data_collector.config import IngestionConfig
from ticker_backend.data_collector.polygon_dividends.client import PolygonDividendClient
from ticker_backend.data_collector.polygon_dividends.dividend_pipeline import DividendIngestor
from ticker_backend.data_collector.polygon_dividends.models import FetchMode, Outcome
from ticker_backend.data_collector.polygon_dividends.rate_limiter import RateLimiter
from tests._fixtures.factories import build_raw_dividend


@pytest.fixture
def cfg(tmp_path):
    return IngestionConfig(
        POLYGON_API_KEY="TEST",
        NORMALIZATION_POLICY="coerce",
        DEFAULT_FETCH_MODE="historical",
        DIVIDENDS_BAD_STAGING=str(tmp_path / "bad.jsonl"),
    )


@pytest.fixture
def client():
    return PolygonDividendClient(api_key="TEST", rate_limiter=RateLimiter(max_calls=5, window_seconds=60))


@pytest.fixture
def ingestor(memory_store, client, cfg):
    return DividendIngestor(memory_store, client=client, cfg=cfg)


def _raws():
    return [build_raw_dividend(id="d-1"), build_raw_dividend(id="d-2", cash_amount="0.26")]


@pytest.mark.unit
def test_new_ticker_is_processed_end_to_end(mocker, ingestor, memory_store, client):
    fetch = mocker.patch.object(client, "fetch_dividends", return_value=_raws())

    result = ingestor.process_ticker("aapl")

    assert result.outcome == Outcome.PROCESSED
    assert result.success is True
    assert result.ticker == "AAPL"
    assert result.reason == "new_ticker"
    assert result.fetch_mode == FetchMode.HISTORICAL
    assert (result.dividends.found, result.dividends.stored, result.dividends.errors) == (2, 2, 0)

    assert [op for op, _ in memory_store.calls] == [
        "get_ticker_info",
        "upsert_ticker",
        "store_dividends",
        "update_ticker_timestamp",
    ]
    assert memory_store.tickers["AAPL"].last_dividend_update is not None
    window = fetch.call_args.args[1]
    assert window.fetch_mode == FetchMode.HISTORICAL


@pytest.mark.unit
def test_recent_ticker_is_skipped_without_fetch(mocker, ingestor, memory_store, client):
    memory_store.seed_ticker("MSFT", last_dividend_update=datetime.now(timezone.utc) - timedelta(hours=1))
    fetch = mocker.patch.object(client, "fetch_dividends")

    result = ingestor.process_ticker("MSFT")

    assert result.outcome == Outcome.SKIPPED
    assert result.reason == "recent_data"
    assert result.success is True
    fetch.assert_not_called()
    assert memory_store.calls == [("get_ticker_info", "MSFT")]


@pytest.mark.unit
def test_force_processes_recent_ticker(mocker, ingestor, memory_store, client):
    memory_store.seed_ticker("MSFT", last_dividend_update=datetime.now(timezone.utc))
    mocker.patch.object(client, "fetch_dividends", return_value=[])

    result = ingestor.process_ticker("MSFT", force=True, fetch_mode="incremental")

    assert result.outcome == Outcome.PROCESSED
    assert result.reason == "force_update"
    assert result.fetch_mode == FetchMode.INCREMENTAL


@pytest.mark.unit
def test_upsert_failure_aborts_before_fetch(mocker, ingestor, memory_store, client):
    memory_store.fail_on["upsert_ticker"] = 500
    fetch = mocker.patch.object(client, "fetch_dividends")

    result = ingestor.process_ticker("AAPL")

    assert result.outcome == Outcome.FAILED
    assert result.success is False
    assert result.error_category == "persistence_error"
    assert "upsert_ticker failed with status 500" in result.error
    fetch.assert_not_called()


@pytest.mark.unit
def test_store_failure_leaves_timestamp_untouched(mocker, ingestor, memory_store, client):
    memory_store.fail_on["store_dividends"] = 500
    mocker.patch.object(client, "fetch_dividends", return_value=_raws())

    result = ingestor.process_ticker("AAPL")

    assert result.outcome == Outcome.FAILED
    assert result.dividends.found == 2
    assert ("update_ticker_timestamp", "AAPL") not in memory_store.calls


@pytest.mark.unit
def test_empty_fetch_is_zero_insert_success(mocker, ingestor, memory_store, client):
    mocker.patch.object(client, "fetch_dividends", return_value=[])

    result = ingestor.process_ticker("BRK.A")

    assert result.outcome == Outcome.PROCESSED
    assert result.dividends.stored == 0
    ops = [op for op, _ in memory_store.calls]
    assert "store_dividends" not in ops
    assert ops[-1] == "update_ticker_timestamp"


@pytest.mark.unit
def test_rate_limit_becomes_failed_result(mocker, ingestor, client):
    mocker.patch.object(client, "fetch_dividends", side_effect=RateLimitExceeded(source="local"))

    result = ingestor.process_ticker("AAPL")

    assert result.outcome == Outcome.FAILED
    assert result.error_category == "rate_limit_exceeded"


@pytest.mark.unit
def test_staleness_lookup_failure_is_contained(ingestor, memory_store):
    memory_store.fail_on["get_ticker_info"] = 503

    result = ingestor.process_ticker("AAPL")

    assert result.outcome == Outcome.FAILED
    assert result.error_category == "persistence_error"


@pytest.mark.unit
@pytest.mark.parametrize("ticker", ["", "   "])
def test_blank_ticker_fails_validation(ingestor, memory_store, ticker):
    result = ingestor.process_ticker(ticker)

    assert result.outcome == Outcome.FAILED
    assert result.error_category == "validation_error"
    assert memory_store.calls == []


@pytest.mark.unit
def test_unexpected_error_is_internal_error(mocker, ingestor, client):
    mocker.patch.object(client, "fetch_dividends", side_effect=RuntimeError("kaput"))

    result = ingestor.process_ticker("AAPL")

    assert result.outcome == Outcome.FAILED
    assert result.error_category == "internal_error"
    assert result.error == "kaput"


@pytest.mark.unit
def test_processing_time_is_wall_clock(mocker, frozen_time, ingestor, client):
    clock = frozen_time(start=1000.0)

    def slow_fetch(ticker, window):
        clock.advance(1.5)
        return []

    mocker.patch.object(client, "fetch_dividends", side_effect=slow_fetch)

    assert ingestor.process_ticker("AAPL").processing_time_ms == 1500


@pytest.mark.unit
def test_reject_policy_counts_malformed_records(mocker, memory_store, client, cfg):
    cfg.NORMALIZATION_POLICY = "reject"
    ingestor = DividendIngestor(memory_store, client=client, cfg=cfg)
    raws = _raws() + [build_raw_dividend(id="d-3", cash_amount="bogus")]
    mocker.patch.object(client, "fetch_dividends", return_value=raws)

    result = ingestor.process_ticker("AAPL")

    assert result.outcome == Outcome.PROCESSED
    assert (result.dividends.found, result.dividends.stored, result.dividends.errors) == (3, 2, 1)


@pytest.mark.unit
def test_ingestor_exposes_client_rate_limiter(ingestor, client):
    assert ingestor.rate_limiter is client.rate_limiter


@pytest.mark.unit
def test_redelivery_with_id_less_record_stores_no_duplicates(mocker, ingestor, memory_store, client):
    raws = _raws() + [{"ex_dividend_date": "2024-08-09", "cash_amount": 0.25}]
    mocker.patch.object(client, "fetch_dividends", return_value=raws)

    first = ingestor.process_ticker("AAPL", force=True)
    second = ingestor.process_ticker("AAPL", force=True)

    assert (first.dividends.found, first.dividends.stored, first.dividends.errors) == (3, 2, 1)
    assert second.dividends.errors == 1
    assert len(memory_store.dividends) == 2
    assert all(polygon_id for _, polygon_id in memory_store.dividends)
