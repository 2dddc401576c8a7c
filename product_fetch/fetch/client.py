"""Async HTTP client with default headers, retries, and cancellation."""

import asyncio
import time
from collections.abc import Coroutine
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from types import TracebackType
from typing import Any

import httpx
import structlog

from product_fetch.fetch.cancellation import CancellationToken, cancellable_sleep
from product_fetch.fetch.config import RequestOptions, TransportConfig
from product_fetch.fetch.constants import (
    HTTP_STATUS_NOT_MODIFIED,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from product_fetch.fetch.metrics import TransportMetrics
from product_fetch.fetch.models import (
    RequestCancelledError,
    TransportError,
    TransportErrorClass,
)
from product_fetch.fetch.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()


class TransportClient:
    """HTTP client for the product API.

    Provides GET operations with:
    - Default Accept/Content-Type headers and an optional Cache-Control directive
    - Retry of transient failures with exponential backoff and jitter
    - Explicit cancellation through a CancellationToken
    - 304 Not Modified passthrough for conditional requests
    - Metrics collection
    """

    def __init__(
        self,
        config: TransportConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            config: Transport configuration.
            transport: Optional httpx transport (tests pass httpx.MockTransport).
        """
        self._config = config
        self._metrics = TransportMetrics.get_instance()
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            transport=transport,
            follow_redirects=True,
        )
        self._log = logger.bind(
            component="transport",
            base_url=redact_url_credentials(config.base_url),
        )

    @property
    def config(self) -> TransportConfig:
        """Get the transport configuration."""
        return self._config

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def send(
        self,
        path: str,
        options: RequestOptions | None = None,
    ) -> httpx.Response:
        """Send a GET request, retrying transient failures.

        Args:
            path: Path relative to the configured base URL.
            options: Per-request options.

        Returns:
            The 2xx or 304 response.

        Raises:
            RequestCancelledError: If the cancellation token fires.
            TransportError: If the request fails for good.
        """
        options = options or RequestOptions()
        token = options.cancellation
        headers = self._build_headers(options)
        timeout_s = (options.timeout_ms or self._config.default_timeout_ms) / 1000.0
        policy = self._config.retry_policy

        log = self._log.bind(path=path, headers=redact_headers(headers))

        if token is not None and token.is_cancelled():
            self._metrics.record_cancelled()
            log.debug("request_cancelled_before_send", reason=token.reason)
            raise RequestCancelledError(token.reason or "cancelled", url=path)

        attempt = 0
        while True:
            try:
                return await self._send_once(
                    path=path,
                    headers=headers,
                    params=options.params,
                    timeout_s=timeout_s,
                    token=token,
                    log=log.bind(attempt=attempt),
                )
            except RequestCancelledError:
                self._metrics.record_cancelled()
                log.debug("request_cancelled", attempt=attempt)
                raise
            except TransportError as error:
                error.attempts = attempt + 1
                if not policy.should_retry(error, attempt):
                    self._metrics.record_failure(error.error_class)
                    log.warning(
                        "request_failed",
                        attempt=attempt,
                        error_class=error.error_class.value,
                        status_code=error.status_code,
                    )
                    raise

                delay_ms = policy.get_delay_ms(attempt)
                honour_retry_after = (
                    error.retry_after is not None and error.retry_after > 0
                )
                if honour_retry_after:
                    delay_ms = min(error.retry_after, MAX_RETRY_AFTER_SECONDS) * 1000.0

                self._metrics.record_retry(
                    error.error_class, retry_after=honour_retry_after
                )
                log.info(
                    "retry_attempt",
                    attempt=attempt + 1,
                    delay_ms=round(delay_ms, 2),
                    max_retries=policy.max_retries,
                    error_class=error.error_class.value,
                    status_code=error.status_code,
                )

            try:
                await cancellable_sleep(delay_ms / 1000.0, token)
            except RequestCancelledError:
                self._metrics.record_cancelled()
                log.debug("request_cancelled_during_backoff", attempt=attempt)
                raise
            attempt += 1

    def _build_headers(self, options: RequestOptions) -> dict[str, str]:
        """Build request headers.

        Args:
            options: Per-request options.

        Returns:
            Complete headers dictionary.
        """
        headers = self._config.default_headers()

        if options.cache_directive:
            headers["Cache-Control"] = self._config.cache_control()

        # Unset conditional headers arrive as empty strings
        headers.update({key: value for key, value in options.headers.items() if value})

        return headers

    async def _send_once(
        self,
        path: str,
        headers: dict[str, str],
        params: dict[str, object],
        timeout_s: float,
        token: CancellationToken | None,
        log: structlog.stdlib.BoundLogger,
    ) -> httpx.Response:
        """Execute a single HTTP request.

        Returns:
            The response when its status is 2xx or 304.

        Raises:
            RequestCancelledError: If the token fires while in flight.
            TransportError: On any other failure.
        """
        start_ns = time.perf_counter_ns()

        try:
            response = await self._await_unless_cancelled(
                self._client.get(
                    path,
                    headers=headers,
                    params=params or None,
                    timeout=timeout_s,
                ),
                token=token,
                path=path,
            )
        except RequestCancelledError:
            raise
        except httpx.TimeoutException as e:
            msg = f"Request timed out after {int(timeout_s * 1000)}ms"
            raise TransportError(
                error_class=TransportErrorClass.TIMEOUT, message=msg, url=path
            ) from e
        except httpx.RequestError as e:
            msg = f"No response received from server: {e}"
            raise TransportError(
                error_class=TransportErrorClass.CONNECTION_ERROR, message=msg, url=path
            ) from e
        except Exception as e:  # noqa: BLE001
            msg = f"Unexpected error: {e}"
            raise TransportError(
                error_class=TransportErrorClass.UNKNOWN, message=msg, url=path
            ) from e

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_request(response.status_code, duration_ms)
        log.debug(
            "request_complete",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )

        if response.status_code == HTTP_STATUS_NOT_MODIFIED:
            self._metrics.record_not_modified()
            return response

        if HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_OK_MAX:
            return response

        retry_after = None
        if response.status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            retry_after = parse_retry_after(response.headers.get("retry-after"))

        raise TransportError(
            error_class=TransportErrorClass.HTTP_STATUS,
            message=f"Server responded with status {response.status_code}",
            response=response,
            url=path,
            retry_after=retry_after,
        )

    async def _await_unless_cancelled(
        self,
        request: Coroutine[Any, Any, httpx.Response],
        token: CancellationToken | None,
        path: str,
    ) -> httpx.Response:
        """Await ``request``, abandoning it as soon as ``token`` fires."""
        request_task = asyncio.ensure_future(request)
        if token is None:
            return await request_task

        cancel_task = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait(
                {request_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
            if not request_task.done():
                request_task.cancel()

        if token.is_cancelled():
            if request_task.done() and not request_task.cancelled():
                request_task.exception()
            raise RequestCancelledError(token.reason or "cancelled", url=path)
        return request_task.result()


def parse_retry_after(value: str | None) -> int | None:
    """Parse a Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    try:
        return max(0, int(value))
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
        delta = dt - datetime.now(UTC)
    except (ValueError, TypeError):
        return None
    return max(0, int(delta.total_seconds()))
