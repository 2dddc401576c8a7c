"""Unit tests for transport configuration models."""

import pytest

from product_fetch.fetch.config import RequestOptions, TransportConfig
from product_fetch.fetch.metrics import TransportMetrics
from product_fetch.fetch.models import TransportErrorClass


class TestTransportConfig:
    """Tests for TransportConfig."""

    def test_defaults(self) -> None:
        """Test default configuration values."""
        config = TransportConfig()

        assert config.base_url == "http://localhost:8000/api"
        assert config.default_timeout_ms == 5000
        assert config.cache_control() == "max-age=300, stale-while-revalidate=60"

    def test_trailing_slash_stripped(self) -> None:
        """Test that base_url is normalized."""
        config = TransportConfig(base_url="https://api.example.test/api/")

        assert config.base_url == "https://api.example.test/api"

    def test_default_headers(self) -> None:
        """Test the headers attached to every request."""
        headers = TransportConfig(user_agent="tests/1.0").default_headers()

        assert headers == {
            "User-Agent": "tests/1.0",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def test_is_frozen(self) -> None:
        """Test that configuration cannot be mutated."""
        config = TransportConfig()

        with pytest.raises(ValueError):
            config.default_timeout_ms = 1  # type: ignore[misc]

    def test_rejects_unknown_fields(self) -> None:
        """Test that typos in configuration are caught."""
        with pytest.raises(ValueError):
            TransportConfig(timeout=5)  # type: ignore[call-arg]


class TestRequestOptions:
    """Tests for RequestOptions."""

    def test_defaults(self) -> None:
        """Test default per-request options."""
        options = RequestOptions()

        assert options.timeout_ms is None
        assert options.cancellation is None
        assert options.cache_directive is True

    @pytest.mark.parametrize("timeout_ms", [0, -1, 300001])
    def test_timeout_bounds(self, timeout_ms: int) -> None:
        """Test that timeouts outside 1..300000 ms are rejected."""
        with pytest.raises(ValueError):
            RequestOptions(timeout_ms=timeout_ms)


class TestTransportMetrics:
    """Tests for the metrics singleton."""

    def test_singleton(self) -> None:
        """Test that get_instance returns the same object until reset."""
        first = TransportMetrics.get_instance()

        assert TransportMetrics.get_instance() is first
        TransportMetrics.reset()
        assert TransportMetrics.get_instance() is not first

    def test_records(self) -> None:
        """Test counters and the duration summary."""
        metrics = TransportMetrics.get_instance()
        metrics.record_request(200, 10.0)
        metrics.record_request(500, 30.0)
        metrics.record_retry(TransportErrorClass.HTTP_STATUS, retry_after=True)
        metrics.record_retry(TransportErrorClass.CONNECTION_ERROR)
        metrics.record_failure(TransportErrorClass.TIMEOUT)

        data = metrics.to_dict()
        assert data["http_requests_total"] == {200: 1, 500: 1}
        assert data["http_request_count"] == 2
        assert data["http_retry_total"] == 2
        assert data["http_retries_by_class"] == {
            "HTTP_STATUS": 1,
            "CONNECTION_ERROR": 1,
        }
        assert data["retry_after_honoured_total"] == 1
        assert data["http_failures_total"] == {"TIMEOUT": 1}
        assert data["avg_duration_ms"] == 20.0
        assert data["max_duration_ms"] == 30.0
