"""Request lifecycle coordination for a displayed product."""

from product_fetch.lifecycle.boundary import DEFAULT_FALLBACK_MESSAGE, RenderBoundary
from product_fetch.lifecycle.coordinator import (
    NOT_FOUND_MESSAGE,
    ProductCoordinator,
    ProductFetcher,
)
from product_fetch.lifecycle.models import (
    DEFAULT_CACHE_TIMEOUT_MS,
    CoordinatorConfig,
    FetchContext,
    ViewState,
)
from product_fetch.lifecycle.state_machine import (
    LoadState,
    LoadStateMachine,
    StateTransitionError,
)


__all__ = [
    # Coordinator
    "NOT_FOUND_MESSAGE",
    "ProductCoordinator",
    "ProductFetcher",
    # Models
    "DEFAULT_CACHE_TIMEOUT_MS",
    "CoordinatorConfig",
    "FetchContext",
    "ViewState",
    # State machine
    "LoadState",
    "LoadStateMachine",
    "StateTransitionError",
    # Rendering
    "DEFAULT_FALLBACK_MESSAGE",
    "RenderBoundary",
]
