"""
Error taxonomy for dividend ingestion.

Every error carries a machine-readable `category` that the orchestrator copies
into failed processing results and the HTTP adapter copies into error bodies.
"""

from typing import Any, Optional


class IngestionError(Exception):
    """Base class for all errors raised by the ingestion engine"""

    category: str = "internal_error"

    def __init__(self, message: str) -> None:
        self.message: str = message
        super().__init__(message)


class ConfigError(IngestionError):
    """A required credential or setting is missing"""

    category = "config_error"


class RateLimitExceeded(IngestionError):
    """Provider quota exhausted, either locally counted or signalled by the provider"""

    category = "rate_limit_exceeded"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        source: str = "local",
        retry_after: Optional[float] = None,
    ) -> None:
        self.source: str = source
        self.retry_after: Optional[float] = retry_after
        super().__init__(message)


class UpstreamError(IngestionError):
    """Non-success response from the market-data provider"""

    category = "upstream_error"

    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None) -> None:
        self.status_code: Optional[int] = status_code
        self.body: Any = body
        super().__init__(message)


class PersistenceError(IngestionError):
    """Non-success, non-duplicate response from the data store"""

    category = "persistence_error"

    def __init__(
        self,
        operation: str,
        status: Any = None,
        detail: Optional[str] = None,
    ) -> None:
        self.operation: str = operation
        self.status: Any = status
        self.detail: Optional[str] = detail
        message = f"{operation} failed with status {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ValidationError(IngestionError):
    """Malformed inbound request or queue payload"""

    category = "validation_error"


class TransformError(IngestionError):
    """A raw provider record was rejected by the normalization policy"""

    category = "transform_error"
