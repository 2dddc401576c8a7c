"""Error types and taxonomy for product data acquisition."""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ErrorCode(str, Enum):
    """Closed taxonomy of product fetch failures.

    - TIMEOUT: Request exceeded its deadline
    - NETWORK_ERROR: Request was sent but no response reached us
    - INVALID_RESPONSE: Server answered with a malformed payload
    - VALIDATION_ERROR: Malformed request or input
    - NOT_FOUND: Product does not exist
    - SERVER_ERROR: Server-side 5xx failure
    - TRANSFORM_ERROR: Payload could not be normalized
    - REQUEST_CANCELLED: Superseded or torn-down request
    - UNAUTHORIZED: Authentication required
    - FORBIDDEN: Access denied
    - RATE_LIMIT: Throttled by the server
    - UNKNOWN_ERROR: Unclassified failure
    """

    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    SERVER_ERROR = "SERVER_ERROR"
    TRANSFORM_ERROR = "TRANSFORM_ERROR"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMIT = "RATE_LIMIT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


LogLevel = Literal["info", "warning", "error"]


class ErrorDefinition(BaseModel):
    """Fixed metadata attached to one taxonomy entry."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: Annotated[int, Field(ge=0, le=599)]
    message: Annotated[str, Field(min_length=1)]
    retryable: bool
    retry_delay_ms: Annotated[int, Field(ge=0)] = 1000
    log_level: LogLevel = "error"


ERROR_CATALOG: dict[ErrorCode, ErrorDefinition] = {
    ErrorCode.TIMEOUT: ErrorDefinition(
        status=408,
        message="Request timed out",
        retryable=True,
        retry_delay_ms=1000,
    ),
    ErrorCode.NETWORK_ERROR: ErrorDefinition(
        status=0,
        message="Network error",
        retryable=True,
        retry_delay_ms=2000,
    ),
    ErrorCode.INVALID_RESPONSE: ErrorDefinition(
        status=500,
        message="Server returned an invalid or malformed response",
        retryable=False,
    ),
    ErrorCode.VALIDATION_ERROR: ErrorDefinition(
        status=400,
        message="Invalid product information or parameters provided",
        retryable=False,
        log_level="warning",
    ),
    ErrorCode.NOT_FOUND: ErrorDefinition(
        status=404,
        message="Requested product could not be found",
        retryable=False,
        log_level="warning",
    ),
    ErrorCode.SERVER_ERROR: ErrorDefinition(
        status=500,
        message="Internal Server Error",
        retryable=True,
        retry_delay_ms=3000,
    ),
    ErrorCode.TRANSFORM_ERROR: ErrorDefinition(
        status=422,
        message="Failed to process or transform product data",
        retryable=False,
    ),
    ErrorCode.REQUEST_CANCELLED: ErrorDefinition(
        status=499,
        message="Product data request was cancelled",
        retryable=False,
        log_level="info",
    ),
    ErrorCode.UNAUTHORIZED: ErrorDefinition(
        status=401,
        message="Unauthorized access to product data",
        retryable=False,
        log_level="warning",
    ),
    ErrorCode.FORBIDDEN: ErrorDefinition(
        status=403,
        message="Access forbidden to product data",
        retryable=False,
        log_level="warning",
    ),
    ErrorCode.RATE_LIMIT: ErrorDefinition(
        status=429,
        message="Too many requests to product service",
        retryable=True,
        retry_delay_ms=5000,
    ),
    ErrorCode.UNKNOWN_ERROR: ErrorDefinition(
        status=500,
        message="An unexpected error occurred while processing product data",
        retryable=True,
        retry_delay_ms=2000,
    ),
}


class TransformError(Exception):
    """Raised when a raw record cannot be normalized.

    Provides the offending field and value so callers can report which part
    of the payload was unusable.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        step: str | None = None,
    ) -> None:
        """Initialize the transform error.

        Args:
            message: Human-readable error message.
            field: Name of the field that failed.
            value: The offending value.
            step: Transformation step that failed.
        """
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value
        self.step = step

    def to_dict(self) -> dict[str, str | None]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "message": self.message,
            "field": self.field,
            "value": repr(self.value),
            "step": self.step,
        }


class ResponseValidationError(Exception):
    """Raised when a response does not have the expected shape."""

    def __init__(
        self,
        message: str,
        validation_type: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the validation error.

        Args:
            message: Human-readable error message.
            validation_type: Machine-readable reason (e.g. "null_data").
            details: Additional structured error details.
        """
        super().__init__(message)
        self.message = message
        self.validation_type = validation_type
        self.details = details or {}


class ClassifiedError(Exception):
    """A failure mapped into the product error taxonomy.

    Created by the error classifier and raised by the fetch service. Carries
    retry metadata for the request lifecycle coordinator and a standardized
    message for display.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        http_status: int,
        retryable: bool,
        retry_delay_hint_ms: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the classified error.

        Args:
            code: Taxonomy code.
            message: Standardized, user-presentable message.
            http_status: Response status, or the catalog status without one.
            retryable: Whether retrying may succeed.
            retry_delay_hint_ms: Suggested delay before retrying.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.retryable = retryable
        self.retry_delay_hint_ms = retry_delay_hint_ms
        self.details = details or {}

    @property
    def is_cancellation(self) -> bool:
        """Check if this error represents a cancelled request."""
        return self.code == ErrorCode.REQUEST_CANCELLED

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "http_status": self.http_status,
            "retryable": self.retryable,
            "retry_delay_hint_ms": self.retry_delay_hint_ms,
            "details": self.details,
        }
