"""Fixture-backed transport with network blocking.

Provides a transport that:
- Returns registered responses for known URLs
- Blocks every other request
- Records all request attempts for inspection
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import urlsplit, urlunsplit

import structlog

from src.features.core.errors import NetworkAccessBlockedError
from src.features.core.models import RequestDescriptor, Response


logger = structlog.get_logger()

Handler = Callable[[str, RequestDescriptor], "Response | Awaitable[Response]"]

_ANY_METHOD = "*"


@dataclass
class MockRoute:
    """Registered response for a URL.

    Attributes:
        status: Status code to return.
        body: Body to return.
        headers: Headers to return.
        handler: Callable building the response instead of the fields above.
    """

    status: int = 200
    body: str | bytes = ""
    headers: dict[str, str] = field(default_factory=dict)
    handler: Handler | None = None


@dataclass
class RequestRecord:
    """Record of a request attempt.

    Attributes:
        url: Requested URL.
        method: HTTP method.
        timestamp: When the request was made.
        headers: Headers sent.
        body: Body sent, if any.
        matched: Whether a registered route answered.
        blocked: Whether the request was blocked.
    """

    url: str
    method: str
    timestamp: datetime
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes | None = None
    matched: bool = False
    blocked: bool = False


@dataclass
class MockTransportStats:
    """Statistics for mock transport usage.

    Attributes:
        requests_total: Total requests made.
        requests_matched: Requests answered by a registered route.
        requests_blocked: Requests with no registered route.
    """

    requests_total: int = 0
    requests_matched: int = 0
    requests_blocked: int = 0
    request_log: list[RequestRecord] = field(default_factory=list)


def _strip_query(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


class MockTransport:
    """Transport answering from registered routes instead of the network.

    Routes are matched on the full URL first, then on the URL without its
    query string and fragment. A method-specific route beats a route
    registered for any method.
    """

    def __init__(self, allow_unmatched: bool = False, latency: float = 0.0) -> None:
        """Initialize the mock transport.

        Args:
            allow_unmatched: If True, return 404 instead of blocking.
            latency: Seconds to wait before answering.
        """
        self._routes: dict[tuple[str, str], MockRoute] = {}
        self._allow_unmatched = allow_unmatched
        self._latency = latency
        self._stats = MockTransportStats()
        self._log = logger.bind(component="transport", transport="mock")

    @property
    def stats(self) -> MockTransportStats:
        """Get transport statistics."""
        return self._stats

    @property
    def requests(self) -> list[RequestRecord]:
        """Every recorded request attempt."""
        return list(self._stats.request_log)

    @property
    def last_request(self) -> RequestRecord | None:
        """Most recent request attempt."""
        return self._stats.request_log[-1] if self._stats.request_log else None

    def register(
        self,
        url: str,
        status: int = 200,
        body: str | bytes = "",
        headers: dict[str, str] | None = None,
        method: str | None = None,
    ) -> None:
        """Register a fixed response.

        Args:
            url: URL to answer, with or without a query string.
            status: Status code.
            body: Response body.
            headers: Response headers.
            method: Only answer this method. Any method when omitted.
        """
        key = ((method or _ANY_METHOD).upper(), url)
        self._routes[key] = MockRoute(status=status, body=body, headers=dict(headers or {}))

    def register_handler(self, url: str, handler: Handler, method: str | None = None) -> None:
        """Register a callable that builds the response.

        Args:
            url: URL to answer.
            handler: ``handler(url, descriptor)`` returning a Response or
                an awaitable Response.
            method: Only answer this method. Any method when omitted.
        """
        key = ((method or _ANY_METHOD).upper(), url)
        self._routes[key] = MockRoute(handler=handler)

    def _find_route(self, method: str, url: str) -> MockRoute | None:
        for candidate in (url, _strip_query(url)):
            for key in ((method, candidate), (_ANY_METHOD, candidate)):
                route = self._routes.get(key)
                if route is not None:
                    return route
        return None

    async def send(self, url: str, descriptor: RequestDescriptor) -> Response:
        """Answer a request from the registered routes.

        Args:
            url: Requested URL.
            descriptor: Request description.

        Returns:
            Registered response, or a 404 when unmatched requests are allowed.

        Raises:
            NetworkAccessBlockedError: If no route matches and blocking is on.
        """
        self._stats.requests_total += 1
        record = RequestRecord(
            url=url,
            method=descriptor.method,
            timestamp=datetime.now(UTC),
            headers=dict(descriptor.headers),
            body=descriptor.body,
        )
        self._stats.request_log.append(record)

        if self._latency > 0:
            await asyncio.sleep(self._latency)

        route = self._find_route(descriptor.method, url)
        if route is None:
            return self._handle_unmatched(url, record)

        self._stats.requests_matched += 1
        record.matched = True
        self._log.debug("mock_request_matched", method=descriptor.method, url=url)

        if route.handler is not None:
            result = route.handler(url, descriptor)
            if inspect.isawaitable(result):
                result = await result
            return result

        return Response(
            status=route.status,
            status_text="OK" if 200 <= route.status < 300 else "",
            headers=dict(route.headers),
            url=url,
            body="" if descriptor.method == "HEAD" else route.body,
        )

    def _handle_unmatched(self, url: str, record: RequestRecord) -> Response:
        self._stats.requests_blocked += 1
        record.blocked = True
        self._log.warning("mock_request_blocked", method=record.method, url=url)

        if not self._allow_unmatched:
            raise NetworkAccessBlockedError(url)

        return Response(status=404, status_text="Not Found", url=url, body="")

    def get_request_log(self) -> list[dict[str, object]]:
        """Get the request log as a list of dictionaries.

        Returns:
            List of request records as dictionaries.
        """
        return [
            {
                "url": r.url,
                "method": r.method,
                "timestamp": r.timestamp.isoformat(),
                "matched": r.matched,
                "blocked": r.blocked,
            }
            for r in self._stats.request_log
        ]
