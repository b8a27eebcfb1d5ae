"""
Queue adapter: maps inbound messages to batch runs and ack/retry decisions
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from ticker_backend.exceptions import ValidationError
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.polygon_dividends.batch_runner import BatchScheduler
from ticker_backend.data_collector.polygon_dividends.models import FetchMode

logger = get_logger(__name__, utility="data_collector")

NEW_TICKER_PROCESSING = "new_ticker_processing"


class QueueMessage(Protocol):
    body: Any

    def ack(self) -> None: ...

    def retry(self) -> None: ...


class TickerQueueMessage(BaseModel):
    """Body of a `new_ticker_processing` message"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    tickers: List[str]
    force: bool = False
    fetch_mode: Optional[FetchMode] = Field(None, alias="fetchMode")
    request_id: Optional[str] = Field(None, alias="requestId")


class ConsumeReport(BaseModel):
    acked: int = 0
    retried: int = 0
    dropped: int = 0


def parse_message_body(body: Any) -> TickerQueueMessage:
    """Validate a message body, raising ValidationError when malformed"""
    if not isinstance(body, dict):
        raise ValidationError("Queue message body must be an object")
    try:
        return TickerQueueMessage.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid queue message: {e.errors()[0].get('msg')}") from e


class QueueConsumer:
    """
    Processes delivered messages

    A message is acked once its batch returns, whatever the per-ticker
    outcomes were. Only failures outside the per-ticker boundary (a malformed
    body, a scheduler error) ask the queue to redeliver.
    """

    def __init__(self, scheduler: BatchScheduler) -> None:
        self.scheduler = scheduler

    def handle(self, message: QueueMessage) -> str:
        """Handle one message and return 'acked', 'retried' or 'dropped'"""
        body = message.body
        message_type = body.get("type") if isinstance(body, dict) else None

        if message_type != NEW_TICKER_PROCESSING:
            logger.warning(f"Dropping message with unknown type {message_type!r}")
            message.ack()
            return "dropped"

        try:
            payload = parse_message_body(body)
            # Queue deliveries always re-ingest full history
            batch = self.scheduler.process_batch(
                payload.tickers, force=True, fetch_mode=FetchMode.HISTORICAL
            )
        except Exception as e:
            logger.error(f"Queue message failed, marking for retry: {e}")
            message.retry()
            return "retried"

        logger.info(
            f"Queue batch {payload.request_id or '-'} done: "
            f"{batch.summary.successful}/{batch.total_tickers} successful"
        )
        message.ack()
        return "acked"

    def consume(self, messages: Iterable[QueueMessage]) -> ConsumeReport:
        report = ConsumeReport()
        for message in messages:
            status = self.handle(message)
            setattr(report, status, getattr(report, status) + 1)
        return report


class InProcessMessage:
    """Message held by InProcessQueue"""

    def __init__(self, body: Dict[str, Any], attempts: int = 0) -> None:
        self.body = body
        self.attempts = attempts
        self.state: Optional[str] = None

    def ack(self) -> None:
        self.state = "acked"

    def retry(self) -> None:
        self.state = "retry"


class InProcessQueue:
    """
    Minimal in-memory queue with redelivery

    Retried messages go back on the queue until they have been delivered
    `max_retries + 1` times, after which they are dead-lettered. `send` may be
    called while another thread drains; only one drain runs at a time.
    """

    def __init__(self, max_retries: int = 3) -> None:
        self.max_retries = max_retries
        self._pending: Deque[InProcessMessage] = deque()
        self._drain_lock = threading.Lock()
        self.dead_letters: List[InProcessMessage] = []

    def __len__(self) -> int:
        return len(self._pending)

    def send(self, body: Dict[str, Any]) -> None:
        self._pending.append(InProcessMessage(body))

    def _take_pending(self) -> List[InProcessMessage]:
        batch = []
        while self._pending:
            batch.append(self._pending.popleft())
        return batch

    def drain(self, consumer: QueueConsumer) -> ConsumeReport:
        """Deliver messages until the queue is empty"""
        total = ConsumeReport()
        with self._drain_lock:
            while self._pending:
                batch = self._take_pending()
                for message in batch:
                    message.attempts += 1
                    message.state = None

                report = consumer.consume(batch)
                total.acked += report.acked
                total.retried += report.retried
                total.dropped += report.dropped

                for message in batch:
                    if message.state != "retry":
                        continue
                    if message.attempts > self.max_retries:
                        logger.error(f"Message dead-lettered after {message.attempts} attempts")
                        self.dead_letters.append(message)
                    else:
                        self._pending.append(message)
        return total
