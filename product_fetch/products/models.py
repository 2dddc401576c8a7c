"""Options and result models for the product fetch service."""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from product_fetch.fetch.cancellation import CancellationToken
from product_fetch.fetch.constants import DEFAULT_TIMEOUT_MS
from product_fetch.products.errors import ClassifiedError
from product_fetch.products.normalizer import CanonicalRecord


class FetchOptions(BaseModel):
    """Options for fetching a single product."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    cancellation: CancellationToken | None = None
    timeout_ms: Annotated[int, Field(ge=1, le=300000)] = DEFAULT_TIMEOUT_MS
    retries: Annotated[int, Field(ge=0, le=10)] = 2
    retry_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    cache: bool = True
    etag: str | None = None
    last_modified: str | None = None


class CollectionOptions(BaseModel):
    """Options for fetching a product listing."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    cancellation: CancellationToken | None = None
    timeout_ms: Annotated[int, Field(ge=1, le=300000)] = DEFAULT_TIMEOUT_MS
    allow_empty: bool = True
    cache: bool = True


class NotModified(BaseModel):
    """Result of a conditional fetch answered with 304 Not Modified.

    Carries only the fresh cache validators; the caller keeps its record.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cached: bool = True
    not_modified: bool = True
    etag: str | None = None
    last_modified: str | None = None


class ProductResult(BaseModel):
    """A freshly fetched canonical record plus its cache validators."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    record: CanonicalRecord
    cached: bool = False
    etag: str | None = None
    last_modified: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Flatten the record and its cache metadata into one dictionary."""
        return {
            **self.record,
            "cached": self.cached,
            "etag": self.etag,
            "last_modified": self.last_modified,
        }


class ItemError(BaseModel):
    """A collection element that failed normalization."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    index: Annotated[int, Field(ge=0)]
    product_id: Any = None
    error: ClassifiedError

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "index": self.index,
            "product_id": self.product_id,
            "error": self.error.to_dict(),
        }


class CollectionMetadata(BaseModel):
    """Summary of a collection fetch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: int
    transformed: int
    failed: int
    filters: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class CollectionResult(BaseModel):
    """Result of a collection fetch with per-item failures recorded."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    records: list[CanonicalRecord] = Field(default_factory=list)
    item_errors: list[ItemError] = Field(default_factory=list)
    metadata: CollectionMetadata

    @property
    def has_errors(self) -> bool:
        """Check if any element failed normalization."""
        return bool(self.item_errors)
