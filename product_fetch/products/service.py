"""Product fetch operations built on the transport client."""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from product_fetch.fetch.cancellation import cancellable_sleep
from product_fetch.fetch.client import TransportClient
from product_fetch.fetch.config import RequestOptions
from product_fetch.fetch.constants import HTTP_STATUS_NOT_MODIFIED
from product_fetch.fetch.models import RequestCancelledError
from product_fetch.products.classifier import classify_error, make_error
from product_fetch.products.errors import (
    ClassifiedError,
    ErrorCode,
    ResponseValidationError,
    TransformError,
)
from product_fetch.products.models import (
    CollectionMetadata,
    CollectionOptions,
    CollectionResult,
    FetchOptions,
    ItemError,
    NotModified,
    ProductResult,
)
from product_fetch.products.normalizer import CanonicalRecord, normalize_product
from product_fetch.products.validator import validate_response


logger = structlog.get_logger()

PRODUCTS_PATH = "/products"


class ProductService:
    """Fetches products and product listings from the remote API.

    Every failure leaves this class as a :class:`ClassifiedError`:
    - ``fetch_by_id`` supports ETag/Last-Modified conditional requests and a
      bounded retry loop driven by the error taxonomy
    - ``fetch_collection`` tolerates per-item normalization failures
    """

    def __init__(self, transport: TransportClient) -> None:
        """Initialize the product service.

        Args:
            transport: Transport client bound to the product API base URL.
        """
        self._transport = transport
        self._log = logger.bind(component="service")

    async def fetch_by_id(
        self,
        product_id: Any,
        options: FetchOptions | None = None,
    ) -> ProductResult | NotModified:
        """Fetch one product by ID.

        Args:
            product_id: Product identifier; must be a non-empty string.
            options: Fetch options (cancellation, retries, validators, ...).

        Returns:
            ProductResult with the canonical record, or NotModified on 304.

        Raises:
            ClassifiedError: On invalid input or when all attempts fail.
        """
        options = options or FetchOptions()

        if not isinstance(product_id, str) or not product_id:
            raise make_error(
                ErrorCode.VALIDATION_ERROR,
                message="Invalid or missing product ID",
                details={
                    "field": "product_id",
                    "value": repr(product_id),
                    "expected_type": "str",
                    "received_type": type(product_id).__name__,
                },
            )

        path = f"{PRODUCTS_PATH}/{quote(product_id, safe='')}"
        request = RequestOptions(
            timeout_ms=options.timeout_ms,
            cancellation=options.cancellation,
            cache_directive=options.cache,
            headers={
                "If-None-Match": options.etag or "",
                "If-Modified-Since": options.last_modified or "",
            },
        )
        log = self._log.bind(product_id=product_id)
        total_attempts = options.retries + 1

        for attempt in range(total_attempts):
            context = {
                "product_id": product_id,
                "attempt": attempt,
                "total_attempts": total_attempts,
            }
            try:
                response = await self._transport.send(path, request)
                return self._build_product_result(response, options)
            except Exception as e:  # noqa: BLE001
                error = classify_error(e, context)
                if error.is_cancellation or not error.retryable:
                    raise error from e
                if attempt >= options.retries:
                    log.warning(
                        "product_fetch_exhausted",
                        attempts=total_attempts,
                        error_code=error.code.value,
                    )
                    raise error from e

            delay_ms = options.retry_delay_ms * (2**attempt)
            log.info(
                "retrying_product_request",
                attempt=attempt + 1,
                total_attempts=total_attempts,
                delay_ms=delay_ms,
                error_code=error.code.value,
            )
            try:
                await cancellable_sleep(delay_ms / 1000.0, options.cancellation)
            except RequestCancelledError as e:
                raise classify_error(e, context) from e

        # range() always yields at least once; the loop returns or raises
        raise make_error(ErrorCode.UNKNOWN_ERROR, details={"product_id": product_id})

    def _build_product_result(
        self,
        response: httpx.Response,
        options: FetchOptions,
    ) -> ProductResult | NotModified:
        etag = response.headers.get("etag")
        last_modified = response.headers.get("last-modified")

        if response.status_code == HTTP_STATUS_NOT_MODIFIED:
            self._log.debug("product_not_modified", etag=etag or options.etag)
            return NotModified(
                etag=etag or options.etag,
                last_modified=last_modified or options.last_modified,
            )

        data = validate_response(response, allow_empty=False)
        # Arrays are malformed records, rejected by the normalizer
        if not isinstance(data, Mapping | list):
            raise ResponseValidationError(
                "Invalid product data format",
                validation_type="type_mismatch",
                details={"expected_type": "object", "received_type": type(data).__name__},
            )

        return ProductResult(
            record=normalize_product(data),
            cached=False,
            etag=etag,
            last_modified=last_modified,
        )

    async def fetch_collection(
        self,
        filters: Any = None,
        options: CollectionOptions | None = None,
    ) -> CollectionResult:
        """Fetch a product listing.

        Elements that fail normalization are recorded in ``item_errors`` and
        left out of ``records``; they never fail the whole listing.

        Args:
            filters: Query filters; entries whose value is None are dropped.
            options: Collection options.

        Returns:
            CollectionResult with records, per-item errors and metadata.

        Raises:
            ClassifiedError: On invalid filters or network/validation failure.
        """
        options = options or CollectionOptions()
        if filters is None:
            filters = {}

        if not isinstance(filters, Mapping):
            raise make_error(
                ErrorCode.VALIDATION_ERROR,
                message="Invalid filters parameter",
                details={
                    "expected_type": "mapping",
                    "received_type": type(filters).__name__,
                },
            )

        params = {key: value for key, value in filters.items() if value is not None}
        request = RequestOptions(
            timeout_ms=options.timeout_ms,
            cancellation=options.cancellation,
            cache_directive=options.cache,
            params=params,
        )

        try:
            response = await self._transport.send(PRODUCTS_PATH, request)
            data = validate_response(
                response,
                require_collection=True,
                allow_empty=options.allow_empty,
            )
        except Exception as e:  # noqa: BLE001
            raise classify_error(e, {"filters": params}) from e

        records: list[CanonicalRecord] = []
        item_errors: list[ItemError] = []
        for index, raw in enumerate(data):
            product_id = raw.get("id") if isinstance(raw, Mapping) else None
            try:
                records.append(normalize_product(raw))
            except Exception as e:  # noqa: BLE001
                item_errors.append(
                    ItemError(
                        index=index,
                        product_id=product_id,
                        error=self._classify_item_error(e, index, product_id),
                    )
                )

        metadata = CollectionMetadata(
            total=len(data),
            transformed=len(records),
            failed=len(item_errors),
            filters=params,
            timestamp=datetime.now(UTC),
        )
        self._log.info(
            "collection_fetched",
            total=metadata.total,
            transformed=metadata.transformed,
            failed=metadata.failed,
        )
        return CollectionResult(
            records=records,
            item_errors=item_errors,
            metadata=metadata,
        )

    def _classify_item_error(
        self,
        error: Exception,
        index: int,
        product_id: Any,
    ) -> ClassifiedError:
        if not isinstance(error, TransformError):
            error = TransformError(
                "Product transformation failed",
                field="product",
                value=str(error),
                step="transform",
            )
        return classify_error(error, {"index": index, "product_id": product_id})
