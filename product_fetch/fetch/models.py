"""Data models and errors for the transport layer."""

import random
from enum import Enum
from typing import Annotated

import httpx
from pydantic import BaseModel, ConfigDict, Field

from product_fetch.fetch.constants import TRANSIENT_STATUS_CODES


class TransportErrorClass(str, Enum):
    """Classification of transport errors for retry decisions.

    - TIMEOUT: Request exceeded its deadline
    - CONNECTION_ERROR: Request was sent but no response arrived
    - HTTP_STATUS: Server answered with a non-success status
    - CANCELLED: Caller cancelled the request
    - UNKNOWN: Unclassified error
    """

    TIMEOUT = "TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    HTTP_STATUS = "HTTP_STATUS"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


class TransportError(Exception):
    """Base exception for transport failures.

    Carries enough structure for the error classifier to map it into the
    product error taxonomy without inspecting message text.
    """

    def __init__(
        self,
        error_class: TransportErrorClass,
        message: str,
        response: httpx.Response | None = None,
        url: str | None = None,
        attempts: int = 0,
        retry_after: int | None = None,
    ) -> None:
        """Initialize the transport error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            response: HTTP response, when the server answered.
            url: Requested URL.
            attempts: Number of attempts made before giving up.
            retry_after: Retry-After seconds (for 429).
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.response = response
        self.url = url
        self.attempts = attempts
        self.retry_after = retry_after

    @property
    def status_code(self) -> int | None:
        """Get the HTTP status code, if a response was received."""
        return self.response.status_code if self.response is not None else None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "status_code": self.status_code,
            "url": self.url,
            "attempts": self.attempts,
        }


class RequestCancelledError(TransportError):
    """Raised when a request or backoff wait is cancelled by its caller."""

    def __init__(self, reason: str = "cancelled", url: str | None = None) -> None:
        """Initialize the cancellation error.

        Args:
            reason: Why the request was cancelled.
            url: Requested URL, if known.
        """
        super().__init__(
            error_class=TransportErrorClass.CANCELLED,
            message=f"Request cancelled: {reason}",
            url=url,
        )
        self.reason = reason


class RetryPolicy(BaseModel):
    """Configuration for transport-level retry behavior.

    Uses exponential backoff with additive jitter:
    delay = base_delay_ms * 2^attempt + uniform(0, max_jitter_ms)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: Annotated[int, Field(ge=0, le=10)] = 3
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    max_jitter_ms: Annotated[int, Field(ge=0, le=10000)] = 100
    retry_status_codes: frozenset[int] = TRANSIENT_STATUS_CODES
    retry_connection_errors: bool = True

    def should_retry(self, error: TransportError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            error: The error that occurred.
            attempt: Current attempt number (0-indexed).

        Returns:
            True if the request should be retried.
        """
        if attempt >= self.max_retries:
            return False

        if error.error_class == TransportErrorClass.CONNECTION_ERROR:
            return self.retry_connection_errors

        if error.error_class == TransportErrorClass.HTTP_STATUS:
            return error.status_code in self.retry_status_codes

        return False

    def get_delay_ms(self, attempt: int) -> float:
        """Calculate delay before the next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (2**attempt)
        jitter = random.uniform(0, self.max_jitter_ms)  # noqa: S311
        return delay + jitter
