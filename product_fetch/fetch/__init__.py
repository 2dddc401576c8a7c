"""Transport layer for the product API.

This module provides async HTTP GET operations with:
- Default headers and an optional Cache-Control directive
- Retry of transient failures with exponential backoff and jitter
- Explicit, passable cancellation tokens
- 304 Not Modified passthrough for conditional requests
- Header redaction and metrics for observability
"""

from product_fetch.fetch.cancellation import CancellationToken, cancellable_sleep
from product_fetch.fetch.client import TransportClient, parse_retry_after
from product_fetch.fetch.config import RequestOptions, TransportConfig
from product_fetch.fetch.constants import (
    HTTP_STATUS_NOT_MODIFIED,
    MAX_RETRY_AFTER_SECONDS,
    TRANSIENT_STATUS_CODES,
)
from product_fetch.fetch.metrics import TransportMetrics
from product_fetch.fetch.models import (
    RequestCancelledError,
    RetryPolicy,
    TransportError,
    TransportErrorClass,
)
from product_fetch.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    # Client
    "TransportClient",
    "parse_retry_after",
    # Cancellation
    "CancellationToken",
    "cancellable_sleep",
    # Config
    "TransportConfig",
    "RequestOptions",
    # Models
    "TransportError",
    "TransportErrorClass",
    "RequestCancelledError",
    "RetryPolicy",
    # Constants
    "HTTP_STATUS_NOT_MODIFIED",
    "MAX_RETRY_AFTER_SECONDS",
    "TRANSIENT_STATUS_CODES",
    # Metrics
    "TransportMetrics",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
