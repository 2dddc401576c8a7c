"""Unit tests for error classification."""

import httpx
import pytest

from product_fetch.fetch.models import (
    RequestCancelledError,
    TransportError,
    TransportErrorClass,
)
from product_fetch.products.classifier import (
    classify_error,
    is_cancellation,
    make_error,
    map_status_to_error_code,
)
from product_fetch.products.errors import (
    ERROR_CATALOG,
    ErrorCode,
    ResponseValidationError,
    TransformError,
)


def _http_error(status_code: int, body: object = None) -> TransportError:
    request = httpx.Request("GET", "https://api.example.test/api/products/1")
    response = httpx.Response(
        status_code,
        json=body,
        headers={"X-Request-Id": "req-123"},
        request=request,
    )
    return TransportError(
        error_class=TransportErrorClass.HTTP_STATUS,
        message=f"Server responded with status {status_code}",
        response=response,
    )


class TestErrorCatalog:
    """Tests for the taxonomy metadata."""

    def test_every_code_has_an_entry(self) -> None:
        """Test that the catalog covers the whole taxonomy."""
        assert set(ERROR_CATALOG) == set(ErrorCode)

    @pytest.mark.parametrize(
        ("code", "retryable"),
        [
            (ErrorCode.TIMEOUT, True),
            (ErrorCode.NETWORK_ERROR, True),
            (ErrorCode.SERVER_ERROR, True),
            (ErrorCode.RATE_LIMIT, True),
            (ErrorCode.UNKNOWN_ERROR, True),
            (ErrorCode.NOT_FOUND, False),
            (ErrorCode.VALIDATION_ERROR, False),
            (ErrorCode.TRANSFORM_ERROR, False),
            (ErrorCode.REQUEST_CANCELLED, False),
            (ErrorCode.INVALID_RESPONSE, False),
        ],
    )
    def test_retryability(self, code: ErrorCode, retryable: bool) -> None:
        """Test which failures are worth retrying."""
        assert ERROR_CATALOG[code].retryable is retryable


class TestStatusMapping:
    """Tests for HTTP status mapping."""

    @pytest.mark.parametrize(
        ("status_code", "code"),
        [
            (400, ErrorCode.VALIDATION_ERROR),
            (401, ErrorCode.UNAUTHORIZED),
            (403, ErrorCode.FORBIDDEN),
            (404, ErrorCode.NOT_FOUND),
            (422, ErrorCode.TRANSFORM_ERROR),
            (429, ErrorCode.RATE_LIMIT),
            (500, ErrorCode.SERVER_ERROR),
            (502, ErrorCode.SERVER_ERROR),
            (503, ErrorCode.SERVER_ERROR),
            (504, ErrorCode.SERVER_ERROR),
            (418, ErrorCode.UNKNOWN_ERROR),
            (501, ErrorCode.UNKNOWN_ERROR),
        ],
    )
    def test_map_status(self, status_code: int, code: ErrorCode) -> None:
        """Test status to taxonomy code mapping."""
        assert map_status_to_error_code(status_code) == code


class TestClassifyError:
    """Tests for classify_error priority rules."""

    def test_already_classified_passes_through(self) -> None:
        """Test that a classified error is returned as-is."""
        error = make_error(ErrorCode.NOT_FOUND)

        assert classify_error(error) is error

    def test_missing_error(self) -> None:
        """Test that None is classified as unknown."""
        result = classify_error(None)

        assert result.code == ErrorCode.UNKNOWN_ERROR
        assert result.details["error"] == "Error object is missing"

    def test_cancellation(self) -> None:
        """Test that cancellations map to REQUEST_CANCELLED."""
        result = classify_error(RequestCancelledError("superseded"))

        assert result.code == ErrorCode.REQUEST_CANCELLED
        assert result.is_cancellation is True
        assert result.retryable is False
        assert result.http_status == 499

    def test_transform_error(self) -> None:
        """Test that normalizer failures keep their field and step."""
        error = TransformError("bad", field="data", value=None, step="validate_input")

        result = classify_error(error, {"index": 3})

        assert result.code == ErrorCode.TRANSFORM_ERROR
        assert result.details["field"] == "data"
        assert result.details["transformation_step"] == "validate_input"
        assert result.details["index"] == 3

    def test_timeout(self) -> None:
        """Test transport and raw httpx timeouts."""
        transport_timeout = TransportError(
            error_class=TransportErrorClass.TIMEOUT, message="timed out"
        )

        assert classify_error(transport_timeout).code == ErrorCode.TIMEOUT
        assert classify_error(httpx.ReadTimeout("slow")).code == ErrorCode.TIMEOUT

    def test_http_status_details(self) -> None:
        """Test that a failed response contributes its details."""
        result = classify_error(_http_error(404, {"message": "no such product"}))

        assert result.code == ErrorCode.NOT_FOUND
        assert result.message == "Requested product could not be found"
        assert result.http_status == 404
        assert result.details["server_message"] == "no such product"
        assert result.details["request_id"] == "req-123"
        assert result.details["method"] == "GET"
        assert result.details["endpoint"].endswith("/products/1")

    def test_unmapped_status_keeps_response_status(self) -> None:
        """Test that unknown statuses keep the real HTTP status."""
        result = classify_error(_http_error(418))

        assert result.code == ErrorCode.UNKNOWN_ERROR
        assert result.http_status == 418

    def test_network_error(self) -> None:
        """Test that unanswered requests map to NETWORK_ERROR."""
        connection = TransportError(
            error_class=TransportErrorClass.CONNECTION_ERROR, message="refused"
        )

        assert classify_error(connection).code == ErrorCode.NETWORK_ERROR
        assert classify_error(httpx.ConnectError("refused")).code == (
            ErrorCode.NETWORK_ERROR
        )

    def test_invalid_response(self) -> None:
        """Test that malformed payloads map to INVALID_RESPONSE."""
        error = ResponseValidationError(
            "expected array",
            validation_type="type_mismatch",
            details={"expected_type": "array"},
        )

        result = classify_error(error)

        assert result.code == ErrorCode.INVALID_RESPONSE
        assert result.retryable is False
        assert result.details["validation_type"] == "type_mismatch"
        assert result.details["expected_type"] == "array"

    def test_anything_else_is_unknown(self) -> None:
        """Test the fallback classification."""
        result = classify_error(KeyError("price"), {"product_id": "1"})

        assert result.code == ErrorCode.UNKNOWN_ERROR
        assert result.details["original_error"]["type"] == "KeyError"
        assert result.details["product_id"] == "1"

    def test_retry_info_attached(self) -> None:
        """Test that retry metadata is always present."""
        result = classify_error(_http_error(503), {"attempt": 2})

        assert result.retry_delay_hint_ms == 3000
        assert result.details["retry_info"] == {
            "retryable": True,
            "retry_delay_ms": 3000,
            "current_attempt": 2,
        }

    def test_to_dict(self) -> None:
        """Test serialization."""
        data = make_error(ErrorCode.RATE_LIMIT).to_dict()

        assert data["code"] == "RATE_LIMIT"
        assert data["http_status"] == 429
        assert data["retryable"] is True


class TestIsCancellation:
    """Tests for cancellation detection."""

    def test_detects_cancellations(self) -> None:
        """Test raw and classified cancellations."""
        assert is_cancellation(RequestCancelledError()) is True
        assert is_cancellation(make_error(ErrorCode.REQUEST_CANCELLED)) is True

    def test_other_errors(self) -> None:
        """Test that ordinary failures are not cancellations."""
        assert is_cancellation(ValueError("x")) is False
        assert is_cancellation(make_error(ErrorCode.TIMEOUT)) is False
