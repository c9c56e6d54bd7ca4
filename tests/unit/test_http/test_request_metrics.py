"""Unit tests for request metrics."""

from src.features.core.errors import TransportErrorClass
from src.features.http.metrics import RequestMetrics


class TestRequestMetrics:
    """Tests for the metrics singleton."""

    def test_singleton(self) -> None:
        """Test that get_instance returns one shared object."""
        assert RequestMetrics.get_instance() is RequestMetrics.get_instance()

    def test_reset(self) -> None:
        """Test that reset discards recorded values."""
        RequestMetrics.get_instance().record_request(200, 10, 1.0)

        RequestMetrics.reset()

        assert RequestMetrics.get_instance().request_count == 0

    def test_record_request(self) -> None:
        """Test recording completed requests."""
        metrics = RequestMetrics.get_instance()

        metrics.record_request(200, 100, 10.0)
        metrics.record_request(200, 50, 30.0)
        metrics.record_request(404, 0, 20.0)

        assert metrics.requests_total == {200: 2, 404: 1}
        assert metrics.bytes_received_total == 150
        assert metrics.avg_duration_ms == 20.0

    def test_record_failure(self) -> None:
        """Test that failures are counted by class and aborts separately."""
        metrics = RequestMetrics.get_instance()

        metrics.record_failure(TransportErrorClass.NETWORK_TIMEOUT)
        metrics.record_failure(TransportErrorClass.ABORTED)
        metrics.record_verification_failure()

        assert metrics.failures_total == {"network_timeout": 1, "aborted": 1}
        assert metrics.aborted_total == 1
        assert metrics.verification_failures_total == 1

    def test_avg_duration_without_requests(self) -> None:
        """Test the average with no completed requests."""
        assert RequestMetrics.get_instance().avg_duration_ms == 0.0

    def test_to_dict(self) -> None:
        """Test the dictionary form."""
        metrics = RequestMetrics.get_instance()
        metrics.record_request(201, 5, 2.0)

        result = metrics.to_dict()

        assert result["requests_total"] == {201: 1}
        assert result["request_count"] == 1
        assert result["failures_total"] == {}
