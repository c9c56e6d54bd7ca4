"""Transport strategy interface."""

from typing import Protocol, runtime_checkable

from src.features.core.models import RequestDescriptor, Response


@runtime_checkable
class Transport(Protocol):
    """Executes one request on the wire and returns a normalized response.

    Implementations must honor the descriptor's method, headers, body,
    timeout and redirect policy, and raise ``TransportError`` for network
    failures. Redirect, integrity and method restrictions are reported as
    ``TransportError`` with a matching ``TransportErrorClass``.
    """

    async def send(self, url: str, descriptor: RequestDescriptor) -> Response:
        """Send a request.

        Args:
            url: Fully resolved URL without credentials.
            descriptor: Transport-ready request description.

        Returns:
            Normalized response.
        """
        ...
