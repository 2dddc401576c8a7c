"""Cooperative cancellation for in-flight requests and backoff waits.

A :class:`CancellationToken` is passed explicitly down the call chain
(coordinator -> service -> transport) instead of relying on shared state.
Tokens can be chained: a child token is cancelled whenever its parent is,
which lets a coordinator tear down every attempt it ever started with a
single call.
"""

import asyncio

from product_fetch.fetch.models import RequestCancelledError


class CancellationToken:
    """Cancellation signal for work running on a single event loop.

    Examples:
        >>> token = CancellationToken()
        >>> token.is_cancelled()
        False
        >>> token.cancel("superseded")
        >>> token.is_cancelled()
        True
    """

    def __init__(self, parent: "CancellationToken | None" = None) -> None:
        """Initialize a new cancellation token.

        Args:
            parent: Optional parent token; cancelling it cancels this token.
        """
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._parent: CancellationToken | None = None
        self._children: set[CancellationToken] = set()
        if parent is not None:
            if parent.is_cancelled():
                self.cancel(parent.reason)
            else:
                self._parent = parent
                parent._children.add(self)

    @property
    def reason(self) -> str | None:
        """Get the reason passed to :meth:`cancel`, if any."""
        return self._reason

    @property
    def child_count(self) -> int:
        """Get the number of children not yet cancelled."""
        return len(self._children)

    def cancel(self, reason: str | None = None) -> None:
        """Signal cancellation to this token and all of its children.

        Idempotent: the first reason wins. A cancelled child detaches from
        its parent, so the parent only holds live children.
        """
        if self._event.is_set():
            return
        self._reason = reason or "cancelled"
        self._event.set()
        children, self._children = self._children, set()
        for child in children:
            child.cancel(self._reason)
        if self._parent is not None:
            self._parent._children.discard(self)
            self._parent = None

    def is_cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._event.is_set()

    def child(self) -> "CancellationToken":
        """Create a token that is cancelled together with this one."""
        return CancellationToken(parent=self)

    def raise_if_cancelled(self) -> None:
        """Raise RequestCancelledError if cancellation has been requested."""
        if self.is_cancelled():
            raise RequestCancelledError(self._reason or "cancelled")

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds`` unless cancelled first.

        Raises:
            RequestCancelledError: If the token is or becomes cancelled.
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except TimeoutError:
            return
        self.raise_if_cancelled()


async def cancellable_sleep(
    seconds: float, token: CancellationToken | None = None
) -> None:
    """Sleep, aborting early if ``token`` is cancelled."""
    if token is None:
        await asyncio.sleep(max(0.0, seconds))
        return
    await token.sleep(seconds)
