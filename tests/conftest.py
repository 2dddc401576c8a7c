"""Shared pytest fixtures."""

from collections.abc import Generator

import pytest

from product_fetch.fetch.metrics import TransportMetrics


@pytest.fixture(autouse=True)
def reset_transport_metrics() -> Generator[None, None, None]:
    """Give every test a fresh metrics singleton."""
    TransportMetrics.reset()
    yield
    TransportMetrics.reset()
