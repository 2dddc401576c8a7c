"""Models for the request lifecycle coordinator."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from product_fetch.lifecycle.state_machine import LoadState
from product_fetch.products.normalizer import CanonicalRecord


DEFAULT_CACHE_TIMEOUT_MS = 300_000


class CoordinatorConfig(BaseModel):
    """Timing and retry configuration for a ProductCoordinator.

    Automatic retries after a failure wait
    min(retry_base_delay_ms * 2^retry_count, retry_max_delay_ms).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cache_timeout_ms: Annotated[int, Field(ge=0)] = DEFAULT_CACHE_TIMEOUT_MS
    revalidate_interval_ms: Annotated[int, Field(ge=1, le=60000)] = 100
    max_auto_retries: Annotated[int, Field(ge=0, le=10)] = 3
    retry_base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    retry_max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 5000
    fetch_timeout_ms: Annotated[int, Field(ge=1, le=300000)] = 5000
    service_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Retries inside fetch_by_id; transport handles transient errors",
    )
    service_retry_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000

    def retry_delay_ms(self, retry_count: int) -> int:
        """Get the automatic retry delay after ``retry_count`` failures."""
        return min(self.retry_base_delay_ms * (2**retry_count), self.retry_max_delay_ms)


class FetchContext(BaseModel):
    """Everything the coordinator knows about its current subject.

    Immutable: every change produces a new instance, and a subject change
    replaces it wholesale.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    target_id: Any = None
    cache_timeout_ms: Annotated[int, Field(ge=0)] = DEFAULT_CACHE_TIMEOUT_MS
    last_fetch_time: float | None = None
    etag: str | None = None
    last_modified: str | None = None
    retry_count: Annotated[int, Field(ge=0)] = 0
    record: CanonicalRecord | None = None
    error_message: str | None = None
    error_code: str | None = None

    def is_expired(self, now: float) -> bool:
        """Check if the held record is older than the cache timeout.

        Args:
            now: Current clock reading in seconds.
        """
        if self.last_fetch_time is None:
            return False
        return (now - self.last_fetch_time) * 1000 >= self.cache_timeout_ms


class ViewState(BaseModel):
    """Snapshot emitted to the rendering collaborator on every change."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: LoadState
    subject_id: Any = None
    record: CanonicalRecord | None = None
    stale: bool = False
    message: str | None = None
    retryable: bool = False
    error_code: str | None = None
    retry_count: int = 0
    token: int = 0
