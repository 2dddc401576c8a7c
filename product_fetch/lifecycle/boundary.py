"""Crash containment for view rendering."""

from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

from product_fetch.lifecycle.models import ViewState


logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_FALLBACK_MESSAGE = "Something went wrong while displaying this product."


class RenderBoundary(Generic[T]):
    """Wraps a render callable so a rendering failure shows a static fallback.

    The coordinator does not handle exceptions raised by its listener; wrap
    the listener in a boundary when rendering code may fail.

    Usage::

        boundary = RenderBoundary(render_product_card, fallback=ERROR_CARD)
        coordinator = ProductCoordinator(service, listener=boundary)
    """

    def __init__(self, render: Callable[[ViewState], T], fallback: T) -> None:
        """Initialize the boundary.

        Args:
            render: Function turning a view snapshot into output.
            fallback: Output used when ``render`` raises.
        """
        self._render = render
        self._fallback = fallback
        self._failures = 0
        self._last_output: T | None = None
        self._log = logger.bind(component="boundary")

    @property
    def failures(self) -> int:
        """Get the number of contained render failures."""
        return self._failures

    @property
    def last_output(self) -> T | None:
        """Get the most recent render output (or fallback)."""
        return self._last_output

    def render(self, view: ViewState) -> T:
        """Render ``view``, returning the fallback if rendering raises."""
        try:
            output = self._render(view)
        except Exception as e:  # noqa: BLE001
            self._failures += 1
            self._log.exception(
                "render_failed",
                status=view.status.value,
                subject_id=view.subject_id,
                error=str(e),
            )
            output = self._fallback
        self._last_output = output
        return output

    def __call__(self, view: ViewState) -> None:
        self.render(view)
