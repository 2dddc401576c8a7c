"""Integration tests for conditional requests through the whole stack."""

import asyncio
from collections.abc import Awaitable, Callable

import httpx

from product_fetch.fetch.client import TransportClient
from product_fetch.fetch.metrics import TransportMetrics
from product_fetch.lifecycle.coordinator import ProductCoordinator
from product_fetch.lifecycle.models import CoordinatorConfig, ViewState
from product_fetch.lifecycle.state_machine import LoadState
from product_fetch.products.service import ProductService
from tests.helpers.http import json_response, make_client
from tests.helpers.time import FakeClock, wait_until


ETAG = '"abc123"'
LAST_MODIFIED = "Mon, 01 Jan 2024 00:00:00 GMT"
LAMP = {"id": 7, "title": "Desk Lamp", "price": "$1,234.567", "rating": 4.5}

FAST = CoordinatorConfig(
    revalidate_interval_ms=1,
    retry_base_delay_ms=1,
    retry_max_delay_ms=5,
)


class CachingProductApi:
    """MockTransport handler that honours ETag/Last-Modified validators."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.not_modified_count = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if (
            request.headers.get("If-None-Match") == ETAG
            or request.headers.get("If-Modified-Since") == LAST_MODIFIED
        ):
            self.not_modified_count += 1
            return httpx.Response(
                304, headers={"ETag": ETAG, "Last-Modified": LAST_MODIFIED}
            )
        return json_response(
            200, LAMP, headers={"ETag": ETAG, "Last-Modified": LAST_MODIFIED}
        )


async def _watch(
    client: TransportClient,
    scenario_steps: Callable[[ProductCoordinator], Awaitable[None]],
    clock: FakeClock | None = None,
    config: CoordinatorConfig = FAST,
) -> list[ViewState]:
    views: list[ViewState] = []
    async with client, ProductCoordinator(
        ProductService(client),
        listener=views.append,
        config=config,
        clock=clock or FakeClock(),
    ) as coordinator:
        await scenario_steps(coordinator)
    return views


class TestConditionalRevalidation:
    """Tests for ETag/Last-Modified revalidation."""

    def test_revalidation_uses_validators(self) -> None:
        """Test that expiry sends validators and a 304 keeps the record."""
        api = CachingProductApi()
        clock = FakeClock()

        async def steps(coordinator: ProductCoordinator) -> None:
            coordinator.load_subject("7", cache_timeout_ms=1000)
            first = await coordinator.wait_for(LoadState.SUCCESS, timeout=1.0)
            assert first.record is not None
            assert first.record["price"] == "1234.57"
            assert first.record["rating"] == 4.5

            clock.advance(1.0)
            await wait_until(lambda: len(api.requests) == 2)
            second = await coordinator.wait_for(LoadState.SUCCESS, timeout=1.0)
            assert second.record == first.record

        asyncio.run(_watch(make_client(api), steps, clock=clock))

        initial, revalidation = api.requests
        assert "If-None-Match" not in initial.headers
        assert revalidation.headers["If-None-Match"] == ETAG
        assert revalidation.headers["If-Modified-Since"] == LAST_MODIFIED
        assert "Cache-Control" not in revalidation.headers
        assert api.not_modified_count == 1
        assert TransportMetrics.get_instance().http_not_modified_total == 1


class TestRecovery:
    """Tests for failures surfacing through the coordinator."""

    def test_transient_errors_never_reach_the_view(self) -> None:
        """Test that 500, 500, 200 is absorbed by the transport."""
        responses = iter(
            [json_response(500), json_response(500), json_response(200, LAMP)]
        )
        api_calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            api_calls.append(request)
            return next(responses)

        async def steps(coordinator: ProductCoordinator) -> None:
            coordinator.load_subject("7")
            await coordinator.wait_for(LoadState.SUCCESS, timeout=1.0)

        views = asyncio.run(_watch(make_client(handler), steps))

        assert [v.status for v in views] == [LoadState.LOADING, LoadState.SUCCESS]
        assert len(api_calls) == 3

    def test_recovers_after_two_server_errors(self) -> None:
        """Test 500, 500, 200 for product 123 ending in SUCCESS at 10.00."""
        responses = iter(
            [
                json_response(500),
                json_response(500),
                json_response(200, {"id": "123", "price": "9.999"}),
            ]
        )
        api_calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            api_calls.append(request)
            return next(responses)

        async def steps(coordinator: ProductCoordinator) -> None:
            coordinator.load_subject("123")
            await coordinator.wait_for(LoadState.SUCCESS, timeout=1.0)

        views = asyncio.run(_watch(make_client(handler), steps))

        final = views[-1]
        assert final.status == LoadState.SUCCESS
        assert final.record is not None
        assert final.record["id"] == "123"
        assert final.record["price"] == "10.00"
        assert final.retry_count == 0
        assert all(call.url.path.endswith("/products/123") for call in api_calls)
        assert len(api_calls) == 3
        assert TransportMetrics.get_instance().http_retry_total == 2

    def test_not_found_is_shown_then_retried(self) -> None:
        """Test that a 404 becomes an ERROR view with the catalog message."""
        api_calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            api_calls.append(request)
            return json_response(404, {"message": "no such product"})

        async def steps(coordinator: ProductCoordinator) -> None:
            coordinator.load_subject("404")
            await wait_until(lambda: len(api_calls) == 3)
            await coordinator.wait_for(LoadState.ERROR, timeout=1.0)
            await asyncio.sleep(0.03)

        views = asyncio.run(_watch(make_client(handler), steps))

        errors = [v for v in views if v.status == LoadState.ERROR]
        assert len(errors) == 3
        assert errors[-1].error_code == "NOT_FOUND"
        assert errors[-1].message == "Requested product could not be found"
        assert errors[-1].retryable is False
        assert len(api_calls) == 3

    def test_invalid_subject_id(self) -> None:
        """Test that an empty ID fails without touching the network."""
        api_calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            api_calls.append(request)
            return json_response(200, LAMP)

        config = CoordinatorConfig(revalidate_interval_ms=1, max_auto_retries=0)

        async def steps(coordinator: ProductCoordinator) -> None:
            coordinator.load_subject("")
            await coordinator.wait_for(LoadState.ERROR, timeout=1.0)

        views = asyncio.run(_watch(make_client(handler), steps, config=config))

        assert views[-1].error_code == "VALIDATION_ERROR"
        assert views[-1].message == "Invalid or missing product ID"
        assert api_calls == []
