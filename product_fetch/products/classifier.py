"""Error classification for product fetch failures.

Maps any failure raised by the transport, the response validator or the
record normalizer into the closed taxonomy defined in
:mod:`product_fetch.products.errors`. Classification never raises; the
caller decides whether to raise the returned error.
"""

from typing import Any

import httpx
import structlog

from product_fetch.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
    HTTP_STATUS_UNPROCESSABLE,
)
from product_fetch.fetch.models import TransportError, TransportErrorClass
from product_fetch.products.errors import (
    ERROR_CATALOG,
    ClassifiedError,
    ErrorCode,
    ResponseValidationError,
    TransformError,
)


logger = structlog.get_logger()

_STATUS_CODES: dict[int, ErrorCode] = {
    HTTP_STATUS_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    HTTP_STATUS_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    HTTP_STATUS_FORBIDDEN: ErrorCode.FORBIDDEN,
    HTTP_STATUS_NOT_FOUND: ErrorCode.NOT_FOUND,
    HTTP_STATUS_UNPROCESSABLE: ErrorCode.TRANSFORM_ERROR,
    HTTP_STATUS_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMIT,
    500: ErrorCode.SERVER_ERROR,
    502: ErrorCode.SERVER_ERROR,
    503: ErrorCode.SERVER_ERROR,
    504: ErrorCode.SERVER_ERROR,
}


def map_status_to_error_code(status_code: int) -> ErrorCode:
    """Map an HTTP status code to a taxonomy code.

    Args:
        status_code: HTTP status code of the failed response.

    Returns:
        Taxonomy code; UNKNOWN_ERROR for unmapped statuses.
    """
    return _STATUS_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR)


def is_cancellation(error: BaseException) -> bool:
    """Check if ``error`` represents a cancelled request."""
    if isinstance(error, ClassifiedError):
        return error.is_cancellation
    return (
        isinstance(error, TransportError)
        and error.error_class == TransportErrorClass.CANCELLED
    )


def make_error(
    code: ErrorCode,
    message: str | None = None,
    details: dict[str, Any] | None = None,
    http_status: int | None = None,
    original: BaseException | None = None,
) -> ClassifiedError:
    """Build a ClassifiedError for ``code`` and log it.

    Args:
        code: Taxonomy code.
        message: Message override; defaults to the catalog message.
        details: Structured details to attach.
        http_status: Response status override.
        original: The underlying exception, for logging.

    Returns:
        The classified error (not raised).
    """
    definition = ERROR_CATALOG[code]
    details = dict(details or {})
    details["retry_info"] = {
        "retryable": definition.retryable,
        "retry_delay_ms": definition.retry_delay_ms,
        "current_attempt": details.get("attempt", 0),
    }

    error = ClassifiedError(
        code=code,
        message=message or definition.message,
        http_status=http_status if http_status is not None else definition.status,
        retryable=definition.retryable,
        retry_delay_hint_ms=definition.retry_delay_ms,
        details=details,
    )

    log_method = getattr(logger.bind(component="classifier"), definition.log_level)
    log_method(
        "error_classified",
        error_code=code.value,
        http_status=error.http_status,
        retryable=error.retryable,
        message=error.message,
        original_error=_describe(original) if original is not None else None,
        context={k: v for k, v in details.items() if k != "retry_info"},
    )
    return error


def classify_error(
    error: BaseException | None,
    context: dict[str, Any] | None = None,
) -> ClassifiedError:
    """Classify a raw failure into the product error taxonomy.

    Priority order:
    1. Already classified errors are returned unchanged
    2. Cancellations become REQUEST_CANCELLED
    3. Normalizer failures become TRANSFORM_ERROR
    4. Transport timeouts become TIMEOUT
    5. Failures carrying an HTTP response are mapped by status
    6. Sent-but-unanswered requests become NETWORK_ERROR
    7. Malformed payloads become INVALID_RESPONSE
    8. Anything else becomes UNKNOWN_ERROR

    Args:
        error: The exception to classify (None is tolerated).
        context: Request context to attach to the error details.

    Returns:
        The classified error. Never raises.
    """
    if isinstance(error, ClassifiedError):
        return error

    details: dict[str, Any] = dict(context or {})
    if error is None:
        details["error"] = "Error object is missing"
        return make_error(ErrorCode.UNKNOWN_ERROR, details=details)

    details["original_error"] = _describe(error)

    if is_cancellation(error):
        return make_error(ErrorCode.REQUEST_CANCELLED, details=details, original=error)

    if isinstance(error, TransformError):
        details.update(
            field=error.field or "unknown",
            value=repr(error.value),
            transformation_step=error.step or "unknown",
        )
        return make_error(ErrorCode.TRANSFORM_ERROR, details=details, original=error)

    if _is_timeout(error):
        return make_error(ErrorCode.TIMEOUT, details=details, original=error)

    response = _response_of(error)
    if response is not None:
        details.update(_response_details(response))
        return make_error(
            map_status_to_error_code(response.status_code),
            details=details,
            http_status=response.status_code,
            original=error,
        )

    if _is_unanswered(error):
        return make_error(ErrorCode.NETWORK_ERROR, details=details, original=error)

    if isinstance(error, ResponseValidationError):
        details.update(error.details)
        details["validation_type"] = error.validation_type
        return make_error(ErrorCode.INVALID_RESPONSE, details=details, original=error)

    return make_error(ErrorCode.UNKNOWN_ERROR, details=details, original=error)


def _describe(error: BaseException) -> dict[str, str]:
    return {
        "type": type(error).__name__,
        "message": str(error) or "Unknown error occurred",
    }


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, TransportError):
        return error.error_class == TransportErrorClass.TIMEOUT
    return isinstance(error, httpx.TimeoutException)


def _is_unanswered(error: BaseException) -> bool:
    if isinstance(error, TransportError):
        return error.error_class == TransportErrorClass.CONNECTION_ERROR
    return isinstance(error, httpx.RequestError)


def _response_of(error: BaseException) -> httpx.Response | None:
    if isinstance(error, TransportError):
        return error.response
    if isinstance(error, httpx.HTTPStatusError):
        return error.response
    return None


def _response_details(response: httpx.Response) -> dict[str, Any]:
    """Extract loggable details from a failed response."""
    server_message = "No server message"
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        server_message = str(body["message"])

    try:
        request = response.request
    except RuntimeError:
        endpoint, method = "unknown", "unknown"
    else:
        endpoint, method = str(request.url), request.method

    return {
        "status_code": response.status_code,
        "status_text": response.reason_phrase or "No status text",
        "server_message": server_message,
        "endpoint": endpoint,
        "method": method,
        "request_id": response.headers.get("x-request-id", "unknown"),
    }
