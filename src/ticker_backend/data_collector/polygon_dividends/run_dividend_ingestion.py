#!/usr/bin/env python3
"""
Dividend Ingestion Runner

Command-line entry point (`ticker-backend-ingest`) that processes a ticker
list through the batch scheduler and prints the summary.
"""

import argparse
import json
import sys
from typing import List, Optional

from ticker_backend.exceptions import IngestionError
from ticker_backend.utils.logger import get_logger, set_console_level
from ticker_backend.data_collector.config import config
from ticker_backend.data_collector.polygon_dividends.batch_runner import BatchScheduler
from ticker_backend.data_collector.polygon_dividends.dividend_pipeline import DividendIngestor
from ticker_backend.data_collector.polygon_dividends.models import BatchResult, FetchMode
from ticker_backend.database import get_dividend_store

logger = get_logger(__name__, utility="data_collector")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticker-backend-ingest",
        description="Dividend ingestion runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
            Examples:
            # Ingest stale or new tickers only
            ticker-backend-ingest --tickers AAPL MSFT KO

            # Re-ingest recent dividends regardless of staleness
            ticker-backend-ingest --tickers AAPL --force --fetch-mode incremental

            # Create tables first when using the postgres backend
            ticker-backend-ingest --create-tables --tickers AAPL
    """,
    )
    parser.add_argument("--tickers", nargs="+", required=True, help="Ticker symbols to process")
    parser.add_argument(
        "--force", action="store_true", help="Process even when stored data is recent"
    )
    parser.add_argument(
        "--fetch-mode",
        choices=[mode.value for mode in FetchMode],
        default=None,
        help=f"Date window to request (default: {config.DEFAULT_FETCH_MODE})",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tickers/dividends tables (postgres backend only)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full batch result as JSON")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def print_results(batch: BatchResult) -> None:
    """Print batch results in a formatted way"""
    print("\n" + "=" * 60)
    print("DIVIDEND INGESTION RESULTS")
    print("=" * 60)
    print(f"   Total tickers: {batch.total_tickers}")
    print(f"   Successful: {batch.summary.successful}")
    print(f"   Failed: {batch.summary.failed}")
    print(f"   Skipped: {batch.summary.skipped}")

    for result in batch.results:
        line = f"   {result.ticker:<8} {result.outcome.value:<10} {result.reason or ''}"
        if result.error:
            line += f" [{result.error_category}] {result.error}"
        else:
            line += f" found={result.dividends.found} stored={result.dividends.stored}"
        print(line)
    print("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI; returns 0 when no ticker failed"""
    args = build_parser().parse_args(argv)

    if args.verbose:
        set_console_level("DEBUG")

    try:
        store = get_dividend_store(config)
    except IngestionError as e:
        logger.error(f"Startup failed: [{e.category}] {e}")
        return 2

    try:
        if args.create_tables:
            if not hasattr(store, "create_tables"):
                logger.error("--create-tables requires STORAGE_BACKEND=postgres")
                return 2
            store.create_tables()
        scheduler = BatchScheduler(DividendIngestor(store))
        batch = scheduler.process_batch(args.tickers, force=args.force, fetch_mode=args.fetch_mode)
    except IngestionError as e:
        logger.error(f"Startup failed: [{e.category}] {e}")
        return 2
    finally:
        store.close()

    if args.json:
        print(json.dumps(batch.model_dump(mode="json"), indent=2))
    else:
        print_results(batch)
    return 1 if batch.summary.failed else 0


if __name__ == "__main__":
    sys.exit(main())
