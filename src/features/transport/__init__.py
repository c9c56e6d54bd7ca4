"""Transport strategies executing requests on the wire."""

from src.features.transport.base import Transport
from src.features.transport.httpx_transport import (
    HttpxTransport,
    classify_httpx_error,
    verify_integrity,
)
from src.features.transport.mock import (
    MockRoute,
    MockTransport,
    MockTransportStats,
    RequestRecord,
)


__all__ = [
    # Protocol
    "Transport",
    # Network
    "HttpxTransport",
    "classify_httpx_error",
    "verify_integrity",
    # Mock
    "MockRoute",
    "MockTransport",
    "MockTransportStats",
    "RequestRecord",
]
