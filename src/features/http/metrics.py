"""Metrics collection for the request engine."""

from dataclasses import dataclass, field
from typing import ClassVar

from src.features.core.errors import TransportErrorClass


@dataclass
class RequestMetrics:
    """Metrics for requests sent through the engine.

    Singleton class tracking completed requests by status, failures by
    class, aborts, bytes received and time spent in the transport.
    """

    requests_total: dict[int, int] = field(default_factory=dict)
    failures_total: dict[str, int] = field(default_factory=dict)
    verification_failures_total: int = 0
    aborted_total: int = 0
    bytes_received_total: int = 0
    duration_ms_total: float = 0.0
    request_count: int = 0

    _instance: ClassVar["RequestMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RequestMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_request(self, status: int, bytes_received: int, duration_ms: float) -> None:
        """Record a completed request.

        Args:
            status: HTTP status code.
            bytes_received: Response body size in bytes.
            duration_ms: Time spent waiting on the transport.
        """
        self.requests_total[status] = self.requests_total.get(status, 0) + 1
        self.bytes_received_total += bytes_received
        self.duration_ms_total += duration_ms
        self.request_count += 1

    def record_failure(self, error_class: TransportErrorClass) -> None:
        """Record a transport failure.

        Args:
            error_class: Classification of the failure.
        """
        key = error_class.value
        self.failures_total[key] = self.failures_total.get(key, 0) + 1
        if error_class == TransportErrorClass.ABORTED:
            self.aborted_total += 1

    def record_verification_failure(self) -> None:
        """Record a response rejected by signature verification."""
        self.verification_failures_total += 1

    @property
    def avg_duration_ms(self) -> float:
        """Average transport time of completed requests."""
        if self.request_count == 0:
            return 0.0
        return self.duration_ms_total / self.request_count

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "requests_total": dict(self.requests_total),
            "failures_total": dict(self.failures_total),
            "verification_failures_total": self.verification_failures_total,
            "aborted_total": self.aborted_total,
            "bytes_received_total": self.bytes_received_total,
            "duration_ms_total": self.duration_ms_total,
            "request_count": self.request_count,
        }
