"""Configuration models for the transport layer."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from product_fetch.fetch.cancellation import CancellationToken
from product_fetch.fetch.constants import (
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_STALE_WHILE_REVALIDATE_SECONDS,
    DEFAULT_TIMEOUT_MS,
)
from product_fetch.fetch.models import RetryPolicy


class TransportConfig(BaseModel):
    """Configuration for the transport client.

    Central configuration for all requests made against the product API,
    including default headers, timeouts, cache directives and retry policy.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(min_length=1)] = "http://localhost:8000/api"
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        "product-fetch/0.1"
    )
    default_timeout_ms: Annotated[int, Field(ge=1, le=300000)] = DEFAULT_TIMEOUT_MS
    cache_max_age_seconds: Annotated[int, Field(ge=0)] = DEFAULT_CACHE_MAX_AGE_SECONDS
    stale_while_revalidate_seconds: Annotated[int, Field(ge=0)] = (
        DEFAULT_STALE_WHILE_REVALIDATE_SECONDS
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base_url so paths can always start with '/'."""
        return v.rstrip("/")

    def default_headers(self) -> dict[str, str]:
        """Get headers attached to every request."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def cache_control(self) -> str:
        """Get the Cache-Control directive for cacheable requests."""
        return (
            f"max-age={self.cache_max_age_seconds}, "
            f"stale-while-revalidate={self.stale_while_revalidate_seconds}"
        )


class RequestOptions(BaseModel):
    """Per-request options understood by the transport client."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    timeout_ms: int | None = Field(default=None, ge=1, le=300000)
    cancellation: CancellationToken | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    cache_directive: bool = True
