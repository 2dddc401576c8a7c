"""Unit tests for the product-fetch CLI."""

import json
import logging
from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest
import structlog
from click.testing import CliRunner

from product_fetch.cli import main
from product_fetch.fetch.client import TransportClient
from product_fetch.fetch.config import TransportConfig
from tests.helpers.http import BASE_URL, json_response


LAMP = {"id": 1, "title": "Lamp", "price": "$12.5"}

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def quiet_logging(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[list[dict[str, Any]], None, None]:
    """Keep log lines out of command output and record logging setup."""
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        main, "configure_logging", lambda **kwargs: calls.append(kwargs)
    )
    structlog.configure(
        processors=[],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        logger_factory=structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield calls
    structlog.reset_defaults()


@pytest.fixture
def mock_api(
    monkeypatch: pytest.MonkeyPatch,
) -> Callable[[Handler], list[httpx.Request]]:
    """Route CLI transports to a mock handler; returns the seen requests."""

    def install(handler: Handler) -> list[httpx.Request]:
        seen: list[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        def factory(config: TransportConfig) -> TransportClient:
            return TransportClient(config, transport=httpx.MockTransport(recording))

        monkeypatch.setattr(main, "TransportClient", factory)
        return seen

    return install


def _invoke(*args: str) -> Any:
    return CliRunner().invoke(main.cli, ["--base-url", BASE_URL, *args])


class TestGetCommand:
    """Tests for `product-fetch get`."""

    def test_prints_record(
        self, mock_api: Callable[[Handler], list[httpx.Request]]
    ) -> None:
        """Test that a product is printed as JSON."""
        seen = mock_api(lambda _request: json_response(200, LAMP, {"ETag": '"v1"'}))

        result = _invoke("get", "1")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["id"] == "1"
        assert data["price"] == "12.50"
        assert data["etag"] == '"v1"'
        assert data["cached"] is False
        assert seen[0].url == httpx.URL(f"{BASE_URL}/products/1")

    def test_conditional_flags(
        self, mock_api: Callable[[Handler], list[httpx.Request]]
    ) -> None:
        """Test --etag and --no-cache."""
        seen = mock_api(lambda _request: httpx.Response(304))

        result = _invoke("get", "1", "--etag", '"v1"', "--no-cache")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["not_modified"] is True
        assert seen[0].headers["If-None-Match"] == '"v1"'
        assert "Cache-Control" not in seen[0].headers

    def test_error_exit_code(
        self, mock_api: Callable[[Handler], list[httpx.Request]]
    ) -> None:
        """Test that a classified error exits non-zero."""
        mock_api(lambda _request: json_response(404, {"message": "gone"}))

        result = _invoke("get", "missing")

        assert result.exit_code == 1
        assert "NOT_FOUND" in result.output


class TestListCommand:
    """Tests for `product-fetch list`."""

    def test_prints_records_and_item_errors(
        self, mock_api: Callable[[Handler], list[httpx.Request]]
    ) -> None:
        """Test listing output and filters."""
        seen = mock_api(lambda _request: json_response(200, [LAMP, None]))

        result = _invoke("list", "--filter", "category=lamps")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [record["id"] for record in data["records"]] == ["1"]
        assert data["item_errors"][0]["index"] == 1
        assert data["metadata"]["failed"] == 1
        assert seen[0].url.params["category"] == "lamps"

    def test_malformed_filter(self) -> None:
        """Test that filters must be key=value."""
        result = _invoke("list", "--filter", "lamps")

        assert result.exit_code == 2
        assert "key=value" in result.output


class TestWatchCommand:
    """Tests for `product-fetch watch`."""

    def test_prints_state_changes(
        self, mock_api: Callable[[Handler], list[httpx.Request]]
    ) -> None:
        """Test that every view is printed as a JSON line."""
        mock_api(lambda _request: json_response(200, LAMP))

        result = _invoke("watch", "1", "--duration", "0.2")

        assert result.exit_code == 0, result.output
        views = [json.loads(line) for line in result.output.splitlines() if line]
        assert [view["status"] for view in views] == ["LOADING", "SUCCESS"]
        assert views[-1]["record"]["title"] == "Lamp"


class TestGlobalOptions:
    """Tests for settings and logging setup."""

    def test_base_url_from_environment(
        self,
        monkeypatch: pytest.MonkeyPatch,
        mock_api: Callable[[Handler], list[httpx.Request]],
    ) -> None:
        """Test that PRODUCT_API_BASE_URL is used without --base-url."""
        monkeypatch.setenv("PRODUCT_API_BASE_URL", "https://env.example.test/v2/")
        seen = mock_api(lambda _request: json_response(200, LAMP))

        result = CliRunner().invoke(main.cli, ["get", "1"])

        assert result.exit_code == 0, result.output
        assert seen[0].url == httpx.URL("https://env.example.test/v2/products/1")

    def test_logging_options(
        self,
        quiet_logging: list[dict[str, Any]],
        mock_api: Callable[[Handler], list[httpx.Request]],
    ) -> None:
        """Test that --verbose and --no-json-logs reach the logging setup."""
        mock_api(lambda _request: json_response(200, LAMP))

        result = _invoke("--verbose", "--no-json-logs", "get", "1")

        assert result.exit_code == 0, result.output
        assert quiet_logging == [{"level": logging.DEBUG, "json_format": False}]

    def test_invalid_log_level(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an unknown PRODUCT_API_LOG_LEVEL is rejected."""
        monkeypatch.setenv("PRODUCT_API_LOG_LEVEL", "chatty")

        result = _invoke("get", "1")

        assert result.exit_code == 2
        assert "Unknown log level" in result.output
