"""Process-wide counters for the transport layer."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, ClassVar

from product_fetch.fetch.models import TransportErrorClass


@dataclass
class TransportMetrics:
    """Counters shared by every TransportClient in the process.

    Status and error-class breakdowns are kept as Counters so the CLI can
    dump them next to a watch session.
    """

    http_requests_total: Counter[int] = field(default_factory=Counter)
    http_failures_total: Counter[str] = field(default_factory=Counter)
    http_retries_by_class: Counter[str] = field(default_factory=Counter)
    http_not_modified_total: int = 0
    http_cancelled_total: int = 0
    retry_after_honoured_total: int = 0
    http_duration_ms_total: float = 0.0
    http_duration_ms_max: float = 0.0

    _instance: ClassVar["TransportMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "TransportMetrics":
        """Get the shared instance, creating it on first use."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance."""
        cls._instance = None

    @property
    def http_request_count(self) -> int:
        """Total responses received, any status."""
        return sum(self.http_requests_total.values())

    @property
    def http_retry_total(self) -> int:
        """Total backoff-and-resend cycles."""
        return sum(self.http_retries_by_class.values())

    @property
    def avg_duration_ms(self) -> float:
        """Mean time to response."""
        count = self.http_request_count
        return self.http_duration_ms_total / count if count else 0.0

    def record_request(self, status_code: int, duration_ms: float) -> None:
        """Record a received response.

        Args:
            status_code: HTTP status code.
            duration_ms: Time spent waiting for the response.
        """
        self.http_requests_total[status_code] += 1
        self.http_duration_ms_total += duration_ms
        self.http_duration_ms_max = max(self.http_duration_ms_max, duration_ms)

    def record_not_modified(self) -> None:
        self.http_not_modified_total += 1

    def record_retry(
        self, error_class: TransportErrorClass, *, retry_after: bool = False
    ) -> None:
        """Record a retry scheduled after a transient failure.

        Args:
            error_class: Class of the failure being retried.
            retry_after: Whether the delay came from a Retry-After header.
        """
        self.http_retries_by_class[error_class.value] += 1
        if retry_after:
            self.retry_after_honoured_total += 1

    def record_cancelled(self) -> None:
        self.http_cancelled_total += 1

    def record_failure(self, error_class: TransportErrorClass) -> None:
        """Record a request that failed for good."""
        self.http_failures_total[error_class.value] += 1

    def to_dict(self) -> dict[str, Any]:
        """Snapshot the counters as plain JSON-friendly values."""
        return {
            "http_requests_total": dict(self.http_requests_total),
            "http_request_count": self.http_request_count,
            "http_not_modified_total": self.http_not_modified_total,
            "http_retry_total": self.http_retry_total,
            "http_retries_by_class": dict(self.http_retries_by_class),
            "retry_after_honoured_total": self.retry_after_honoured_total,
            "http_cancelled_total": self.http_cancelled_total,
            "http_failures_total": dict(self.http_failures_total),
            "avg_duration_ms": round(self.avg_duration_ms, 2),
            "max_duration_ms": round(self.http_duration_ms_max, 2),
        }
