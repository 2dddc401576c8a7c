"""Request lifecycle coordination for a single product subject.

The coordinator owns the consumer-facing LOADING/SUCCESS/ERROR state of one
product slot. It issues fetches through the product service and guarantees
that only the most recently authorized request can change that state:

- Every fetch attempt mints a request token from a counter that is never
  reset. A response or failure is applied only if its token still equals
  ``current_token``; anything else is dropped without touching state.
- Every attempt also gets its own cancellation token, a child of the
  subject's lifetime token. Superseding an attempt, changing the subject or
  closing the coordinator cancels it synchronously.
- A revalidation task polls the soft cache and a retry task backs off after
  failures. Both are scoped to the subject and torn down together.

Everything runs as tasks on one asyncio event loop; no locks are involved.
"""

import asyncio
import time
from collections.abc import Callable
from types import TracebackType
from typing import Any, Protocol

import structlog

from product_fetch.fetch.cancellation import CancellationToken, cancellable_sleep
from product_fetch.fetch.models import RequestCancelledError
from product_fetch.lifecycle.models import (
    CoordinatorConfig,
    FetchContext,
    ViewState,
)
from product_fetch.lifecycle.state_machine import LoadState, LoadStateMachine
from product_fetch.products.classifier import classify_error, make_error
from product_fetch.products.errors import ClassifiedError, ErrorCode
from product_fetch.products.models import FetchOptions, NotModified, ProductResult


logger = structlog.get_logger()

NOT_FOUND_MESSAGE = "Product not found"

ViewListener = Callable[[ViewState], None]


class ProductFetcher(Protocol):
    """The part of ProductService the coordinator depends on."""

    async def fetch_by_id(
        self,
        product_id: Any,
        options: FetchOptions | None = None,
    ) -> ProductResult | NotModified:
        """Fetch one product by ID."""
        ...


class ProductCoordinator:
    """Consumer-side state machine for one product subject.

    Usage::

        async with ProductCoordinator(service, listener=render) as coordinator:
            coordinator.load_subject("123")
            view = await coordinator.wait_for(LoadState.SUCCESS, LoadState.ERROR)

    Must be driven from inside a running event loop.
    """

    def __init__(
        self,
        service: ProductFetcher,
        listener: ViewListener | None = None,
        config: CoordinatorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the coordinator.

        Args:
            service: Product service used for every fetch.
            listener: Receives a ViewState snapshot on every change. Wrap
                rendering code in a RenderBoundary; listener exceptions are
                not handled here.
            config: Timing and retry configuration.
            clock: Monotonic clock in seconds (tests inject a fake one).
        """
        self._service = service
        self._listener = listener
        self._config = config or CoordinatorConfig()
        self._clock = clock

        self._machine = LoadStateMachine()
        self._context: FetchContext | None = None
        self._token_counter = 0
        self._current_token = 0

        self._lifetime = CancellationToken()
        self._request_cancel: CancellationToken | None = None
        self._fetch_task: asyncio.Task[None] | None = None
        self._retry_task: asyncio.Task[None] | None = None
        self._revalidate_task: asyncio.Task[None] | None = None

        self._changed = asyncio.Event()
        self._closed = False
        self._log = logger.bind(component="coordinator")

    @property
    def state(self) -> LoadState:
        """Get the current load state."""
        return self._machine.state

    @property
    def context(self) -> FetchContext | None:
        """Get the current fetch context."""
        return self._context

    @property
    def current_token(self) -> int:
        """Get the token of the most recently authorized request."""
        return self._current_token

    @property
    def closed(self) -> bool:
        """Check if the coordinator has been torn down."""
        return self._closed

    @property
    def view(self) -> ViewState:
        """Get a snapshot of what the consumer should display."""
        return self._build_view()

    def load_subject(
        self,
        subject_id: Any,
        cache_timeout_ms: int | None = None,
    ) -> None:
        """Point the coordinator at a subject and start loading it.

        A new subject (or cache timeout) discards the current context,
        cancels in-flight work and timers, re-enters LOADING and issues a
        cache-bypassing fetch. Reloading the same subject is a no-op.

        Args:
            subject_id: Product identifier.
            cache_timeout_ms: Soft cache lifetime; defaults to the config value.
        """
        self._ensure_open()
        timeout_ms = (
            self._config.cache_timeout_ms if cache_timeout_ms is None else cache_timeout_ms
        )
        current = self._context
        if (
            current is not None
            and current.target_id == subject_id
            and current.cache_timeout_ms == timeout_ms
        ):
            return

        # Validate first: a rejected subject leaves the current one running
        context = FetchContext(target_id=subject_id, cache_timeout_ms=timeout_ms)

        self._teardown("subject_changed")
        self._lifetime = CancellationToken()
        self._context = context
        self._machine.reset(subject_id, LoadState.LOADING)
        self._log = logger.bind(component="coordinator", subject_id=subject_id)
        self._log.info("subject_loaded", cache_timeout_ms=timeout_ms)

        self._start_fetch(force=True, reason="subject_changed")
        self._revalidate_task = asyncio.create_task(
            self._revalidate_loop(self._lifetime)
        )

    def retry(self) -> None:
        """Manually retry the current subject.

        Allowed at any time, including after automatic retries are
        exhausted. Supersedes any in-flight request and pending retry.
        """
        self._ensure_open()
        if self._context is None:
            self._log.warning("retry_without_subject")
            return

        self._cancel_retry_timer()
        self._log.info("manual_retry", retry_count=self._context.retry_count)
        self._start_fetch(force=False, reason="manual_retry")

    def close(self) -> None:
        """Tear down the subject: cancel in-flight work and both timers.

        Takes effect synchronously; no state transition happens afterwards.
        """
        if self._closed:
            return
        self._closed = True
        self._teardown("closed")
        self._log.info("coordinator_closed")

    async def aclose(self) -> None:
        """Close and wait for cancelled tasks to unwind."""
        tasks = [
            task
            for task in (self._fetch_task, self._retry_task, self._revalidate_task)
            if task is not None
        ]
        self.close()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def __aenter__(self) -> "ProductCoordinator":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def wait_for(
        self,
        *states: LoadState,
        timeout: float | None = None,
    ) -> ViewState:
        """Wait until the coordinator is in one of ``states``.

        Args:
            states: Acceptable states.
            timeout: Maximum seconds to wait.

        Returns:
            The view at the time the state was reached.

        Raises:
            TimeoutError: If the timeout expires first.
        """
        async with asyncio.timeout(timeout):
            while self._machine.state not in states:
                await self._changed.wait()
        return self._build_view()

    def _ensure_open(self) -> None:
        if self._closed:
            msg = "ProductCoordinator is closed"
            raise RuntimeError(msg)

    def _mint_token(self) -> int:
        self._token_counter += 1
        self._current_token = self._token_counter
        return self._current_token

    def _start_fetch(self, force: bool, reason: str) -> None:
        """Authorize a new fetch attempt and supersede the previous one."""
        token = self._mint_token()

        if self._request_cancel is not None:
            self._request_cancel.cancel("superseded")
        _cancel_task(self._fetch_task)

        cancel = self._lifetime.child()
        self._request_cancel = cancel

        self._machine.to_loading()
        self._log.debug("fetch_started", token=token, force=force, reason=reason)
        self._emit()

        self._fetch_task = asyncio.create_task(self._run_fetch(token, cancel, force))

    async def _run_fetch(
        self,
        token: int,
        cancel: CancellationToken,
        force: bool,
    ) -> None:
        context = self._context
        if context is None:
            return

        options = FetchOptions(
            cancellation=cancel,
            timeout_ms=self._config.fetch_timeout_ms,
            retries=self._config.service_retries,
            retry_delay_ms=self._config.service_retry_delay_ms,
            cache=not force,
            etag=context.etag,
            last_modified=context.last_modified,
        )

        try:
            result = await self._service.fetch_by_id(context.target_id, options)
        except Exception as e:  # noqa: BLE001
            error = classify_error(e, {"subject_id": context.target_id, "token": token})
            if error.is_cancellation or cancel.is_cancelled():
                self._log.debug("fetch_cancelled", token=token)
                return
            self._apply_failure(token, error)
            return

        if cancel.is_cancelled():
            self._log.debug("fetch_cancelled", token=token)
            return
        self._apply_result(token, result)

    def _is_current(self, token: int) -> bool:
        if self._closed or token != self._current_token:
            self._log.debug(
                "stale_result_dropped",
                token=token,
                current_token=self._current_token,
            )
            return False
        return True

    def _apply_result(self, token: int, result: ProductResult | NotModified) -> None:
        if not self._is_current(token) or self._context is None:
            return

        context = self._context
        if isinstance(result, NotModified):
            if context.record is None:
                self._apply_failure(
                    token,
                    make_error(ErrorCode.NOT_FOUND, message=NOT_FOUND_MESSAGE),
                )
                return
            record = context.record
        else:
            record = result.record

        self._context = context.model_copy(
            update={
                "record": record,
                "retry_count": 0,
                "last_fetch_time": self._clock(),
                "etag": result.etag or context.etag,
                "last_modified": result.last_modified or context.last_modified,
                "error_message": None,
                "error_code": None,
            }
        )
        self._cancel_retry_timer()
        self._machine.to_success()
        self._log.info(
            "fetch_succeeded",
            token=token,
            not_modified=isinstance(result, NotModified),
        )
        self._emit()

    def _apply_failure(self, token: int, error: ClassifiedError) -> None:
        if not self._is_current(token) or self._context is None:
            return

        retry_count = self._context.retry_count + 1
        self._context = self._context.model_copy(
            update={
                "retry_count": retry_count,
                "error_message": error.message,
                "error_code": error.code.value,
            }
        )
        self._machine.to_error()
        self._log.warning(
            "fetch_failed",
            token=token,
            retry_count=retry_count,
            error_code=self._context.error_code,
        )
        self._emit()

        if retry_count < self._config.max_auto_retries:
            self._schedule_retry(self._config.retry_delay_ms(retry_count), token)
        else:
            self._log.warning("auto_retry_exhausted", retry_count=retry_count)

    def _schedule_retry(self, delay_ms: int, token: int) -> None:
        self._cancel_retry_timer()
        self._log.info("retry_scheduled", delay_ms=delay_ms, token=token)
        self._retry_task = asyncio.create_task(
            self._retry_after(delay_ms, token, self._lifetime)
        )

    async def _retry_after(
        self,
        delay_ms: int,
        token: int,
        lifetime: CancellationToken,
    ) -> None:
        try:
            await cancellable_sleep(delay_ms / 1000.0, lifetime)
        except RequestCancelledError:
            return

        # Anything that happened meanwhile (manual retry, new subject) wins
        if self._closed or token != self._current_token:
            return
        if self._machine.state != LoadState.ERROR:
            return
        self._start_fetch(force=False, reason="auto_retry")

    async def _revalidate_loop(self, lifetime: CancellationToken) -> None:
        interval_s = self._config.revalidate_interval_ms / 1000.0
        while True:
            try:
                await cancellable_sleep(interval_s, lifetime)
            except RequestCancelledError:
                return
            self._check_revalidation()

    def _check_revalidation(self) -> None:
        """Issue one forced fetch once the held record has expired."""
        if self._closed or self._context is None:
            return
        if self._machine.state != LoadState.SUCCESS:
            return
        if not self._context.is_expired(self._clock()):
            return

        self._log.info(
            "cache_expired",
            cache_timeout_ms=self._context.cache_timeout_ms,
        )
        self._start_fetch(force=True, reason="revalidate")

    def _cancel_retry_timer(self) -> None:
        _cancel_task(self._retry_task)
        self._retry_task = None

    def _teardown(self, reason: str) -> None:
        """Cancel the subject's in-flight request and both timers."""
        self._lifetime.cancel(reason)
        if self._request_cancel is not None:
            self._request_cancel.cancel(reason)
            self._request_cancel = None

        for task in (self._fetch_task, self._retry_task, self._revalidate_task):
            _cancel_task(task)
        self._fetch_task = None
        self._retry_task = None
        self._revalidate_task = None

    def _build_view(self) -> ViewState:
        context = self._context
        state = self._machine.state
        if context is None:
            return ViewState(status=state, token=self._current_token)

        view = ViewState(
            status=state,
            subject_id=context.target_id,
            retry_count=context.retry_count,
            token=self._current_token,
        )
        if state == LoadState.SUCCESS:
            return view.model_copy(update={"record": context.record})
        if state == LoadState.ERROR:
            return view.model_copy(
                update={
                    "message": context.error_message,
                    "error_code": context.error_code,
                    "retryable": context.retry_count < self._config.max_auto_retries,
                }
            )
        # LOADING keeps the previous record available for stale display
        return view.model_copy(
            update={"record": context.record, "stale": context.record is not None}
        )

    def _emit(self) -> None:
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()
        if self._listener is not None:
            self._listener(self._build_view())


def _cancel_task(task: "asyncio.Task[None] | None") -> None:
    """Cancel ``task`` unless it is finished or is the caller itself."""
    if task is None or task.done():
        return
    try:
        current = asyncio.current_task()
    except RuntimeError:
        current = None
    if task is not current:
        task.cancel()
