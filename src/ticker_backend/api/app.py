"""
Ticker Backend - FastAPI Application

Thin HTTP surface over the ingestion engine and the stored dividends.
"""

from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import BackgroundTasks, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from ticker_backend.exceptions import (
    IngestionError,
    PersistenceError,
    UpstreamError,
    ValidationError,
)
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import IngestionConfig, config as default_config
from ticker_backend.data_collector.polygon_dividends.batch_runner import BatchScheduler
from ticker_backend.data_collector.polygon_dividends.dividend_pipeline import DividendIngestor
from ticker_backend.data_collector.polygon_dividends.models import FetchMode, normalize_symbol, utc_now
from ticker_backend.data_collector.polygon_dividends.queue_consumer import (
    InProcessQueue,
    QueueConsumer,
    parse_message_body,
)
from ticker_backend.database import DividendStore, get_dividend_store

logger = get_logger(__name__, utility="api")

SERVICE_NAME = "ticker-backend"

# Stored column -> CSV header
CSV_COLUMNS = {
    "ticker": "Ticker",
    "declaration_date": "Declaration Date",
    "record_date": "Record Date",
    "ex_dividend_date": "Ex-Dividend Date",
    "pay_date": "Pay Date",
    "amount": "Amount",
    "currency": "Currency",
    "frequency": "Frequency",
    "type": "Type",
}

ERROR_STATUS = {
    ValidationError: 400,
    PersistenceError: 502,
    UpstreamError: 502,
}


class ProcessRequest(BaseModel):
    """Body of POST /process: one ticker or a list"""

    model_config = ConfigDict(populate_by_name=True)

    ticker: Optional[str] = None
    tickers: Optional[List[str]] = None
    force: bool = False
    fetch_mode: Optional[FetchMode] = Field(None, alias="fetchMode")


def render_csv(rows: List[Dict[str, Any]]) -> str:
    """Render stored dividend rows with the export column headers"""
    frame = pd.DataFrame(rows, columns=list(CSV_COLUMNS))
    frame = frame.rename(columns=CSV_COLUMNS)
    return frame.to_csv(index=False, lineterminator="\n")


def _csv_response(rows: List[Dict[str, Any]], filename: str) -> Response:
    return Response(
        content=render_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _error_body(category: str, message: str) -> Dict[str, Any]:
    return {"success": False, "error": category, "message": message}


def create_app(
    cfg: Optional[IngestionConfig] = None,
    store: Optional[DividendStore] = None,
    ingestor: Optional[DividendIngestor] = None,
    scheduler: Optional[BatchScheduler] = None,
    queue: Optional[InProcessQueue] = None,
    consumer: Optional[QueueConsumer] = None,
) -> FastAPI:
    """
    Build the application

    Collaborators default to the configured store, a fresh ingestor and a
    scheduler sharing the ingestor's rate limiter. With QUEUE_BACKEND=memory
    an in-process queue is created and drained by a background task after
    every send. With QUEUE_BACKEND=none and no queue passed in,
    POST /queue/send answers 500 queue_unavailable.
    """
    cfg = cfg or default_config
    store = store or get_dividend_store(cfg)
    ingestor = ingestor or DividendIngestor(store, cfg=cfg)
    scheduler = scheduler or BatchScheduler(ingestor)
    if queue is None and cfg.QUEUE_BACKEND == "memory":
        queue = InProcessQueue(max_retries=cfg.QUEUE_MAX_RETRIES)
    consumer = consumer or QueueConsumer(scheduler)

    app = FastAPI(
        title=SERVICE_NAME,
        description="Dividend ingestion and lookup for stock tickers",
    )
    app.state.store = store
    app.state.queue = queue
    app.state.consumer = consumer

    @app.exception_handler(IngestionError)
    async def ingestion_error_handler(request: Request, exc: IngestionError):
        status = next(
            (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500
        )
        logger.error(f"{request.method} {request.url.path} -> {status}: {exc}")
        return JSONResponse(status_code=status, content=_error_body(exc.category, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(
            status_code=400, content=_error_body(ValidationError.category, str(message))
        )

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "timestamp": utc_now().isoformat(),
            "service": SERVICE_NAME,
            "environment": {
                "has_supabase_url": bool(cfg.SUPABASE_URL),
                "has_supabase_key": bool(cfg.SUPABASE_ANON_KEY),
                "has_polygon_key": bool(cfg.POLYGON_API_KEY),
                "has_queue": app.state.queue is not None,
                "storage_backend": cfg.STORAGE_BACKEND,
            },
        }

    @app.post("/process")
    def process(request: ProcessRequest):
        """
        Process one ticker or a batch.

        A single `ticker` returns a ProcessingResult, `tickers` a BatchResult.
        """
        if request.ticker:
            result = ingestor.process_ticker(
                request.ticker, force=request.force, fetch_mode=request.fetch_mode
            )
            return result.model_dump(mode="json")
        if request.tickers:
            batch = scheduler.process_batch(
                request.tickers, force=request.force, fetch_mode=request.fetch_mode
            )
            return batch.model_dump(mode="json")
        raise ValidationError('Invalid request: provide either "ticker" or "tickers" array')

    @app.post("/queue/send")
    def queue_send(body: Dict[str, Any], background_tasks: BackgroundTasks):
        """Validate a queue message, enqueue it and drain the queue after responding"""
        queue = app.state.queue
        if queue is None:
            return JSONResponse(
                status_code=500,
                content=_error_body("queue_unavailable", "No queue is configured"),
            )
        message = parse_message_body(body)
        queue.send(message.model_dump(mode="json", by_alias=True))
        background_tasks.add_task(queue.drain, app.state.consumer)
        logger.info(f"Queued {len(message.tickers)} tickers ({message.type})")
        return {"success": True, "queued": len(message.tickers), "requestId": message.request_id}

    @app.get("/dividends/all")
    def all_dividends(
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        limit: Optional[int] = Query(None, ge=1),
        offset: Optional[int] = Query(None, ge=0),
        format: Optional[str] = None,
    ):
        """Stored dividends across tickers, newest first"""
        rows = app.state.store.get_all_dividends(start_date, end_date, limit, offset)
        if format == "csv":
            return _csv_response(rows, "all_dividends.csv")
        return {"ticker": "ALL", "dividends": rows, "total_records": len(rows)}

    @app.get("/dividends/{ticker}")
    def ticker_dividends(
        ticker: str,
        start_date: Optional[date] = Query(None, alias="startDate"),
        end_date: Optional[date] = Query(None, alias="endDate"),
        format: Optional[str] = None,
    ):
        """Stored dividends for one ticker, newest first"""
        symbol = normalize_symbol(ticker)
        rows = app.state.store.get_dividends(symbol, start_date, end_date)
        if format == "csv":
            return _csv_response(rows, f"{symbol.lower()}_dividends.csv")
        return {"ticker": symbol, "dividends": rows, "total_records": len(rows)}

    return app
