"""Metrics collection for the HTTP service layer."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class HttpMetrics:
    """Counters for requests handled by HttpService.

    Singleton; tests call ``reset()`` between cases.
    """

    http_requests_total: dict[int, int] = field(default_factory=dict)
    http_bytes_total: int = 0
    http_request_count: int = 0
    http_duration_ms_total: float = 0.0
    http_timeouts_total: int = 0
    http_requeues_total: int = 0
    http_auth_failures_total: int = 0
    http_network_failures_total: int = 0
    http_deserialization_failures_total: int = 0
    http_aborts_total: int = 0

    _instance: ClassVar["HttpMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "HttpMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_request(self, status_code: int, bytes_received: int) -> None:
        """Record a response received from the transport.

        Args:
            status_code: HTTP status code (0 for transport failures).
            bytes_received: Number of body bytes received.
        """
        self.http_requests_total[status_code] = (
            self.http_requests_total.get(status_code, 0) + 1
        )
        self.http_bytes_total += bytes_received
        self.http_request_count += 1

    def record_duration(self, duration_ms: float) -> None:
        """Record time spent waiting on the transport."""
        self.http_duration_ms_total += duration_ms

    def record_timeout(self) -> None:
        """Record a request that missed its deadline."""
        self.http_timeouts_total += 1

    def record_requeue(self) -> None:
        """Record a request parked until authentication is renegotiated."""
        self.http_requeues_total += 1

    def record_auth_failure(self) -> None:
        """Record a response that triggered renegotiation."""
        self.http_auth_failures_total += 1

    def record_network_failure(self) -> None:
        """Record a transport failure or a non-2xx response."""
        self.http_network_failures_total += 1

    def record_deserialization_failure(self) -> None:
        """Record a payload that did not match the expected type."""
        self.http_deserialization_failures_total += 1

    def record_abort(self) -> None:
        """Record an in-flight request cancelled by an abort."""
        self.http_aborts_total += 1

    def to_dict(self) -> dict[str, int | float | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "http_requests_total": dict(self.http_requests_total),
            "http_bytes_total": self.http_bytes_total,
            "http_request_count": self.http_request_count,
            "http_duration_ms_total": self.http_duration_ms_total,
            "http_timeouts_total": self.http_timeouts_total,
            "http_requeues_total": self.http_requeues_total,
            "http_auth_failures_total": self.http_auth_failures_total,
            "http_network_failures_total": self.http_network_failures_total,
            "http_deserialization_failures_total": (
                self.http_deserialization_failures_total
            ),
            "http_aborts_total": self.http_aborts_total,
        }

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average transport round-trip duration."""
        if self.http_request_count == 0:
            return 0.0
        return self.http_duration_ms_total / self.http_request_count
