"""HTTP client exposing one coroutine per HTTP verb."""

from typing import Any

import pydantic
import structlog

from src.features.address.address import Address
from src.features.core.errors import ConfigurationError
from src.features.core.models import Response, RuntimeCapabilities
from src.features.events.emitter import EventEmitter
from src.features.http.callbacks import Callback, deliver
from src.features.http.crypto import CryptoProvider
from src.features.http.request import Request
from src.features.resource.config import CallConfig
from src.features.transport.base import Transport
from src.features.transport.httpx_transport import HttpxTransport
from src.settings.app import ClientSettings


logger = structlog.get_logger()

JSON_ACCEPT = (
    "application/json, application/ld+json, application/vnd.api+json, "
    "*/json, */*json;q=0.8"
)


class HttpClient(EventEmitter):
    """Issues single requests through a transport.

    Every verb validates its keyword configuration as a ``CallConfig``,
    builds a fresh :class:`Request`, runs :meth:`preflight` and awaits the
    send. Subclasses customize requests by overriding :meth:`preflight`.

    Each verb also accepts ``callback(error, response)``, called on
    success and on failure in addition to the awaited result.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        crypto: CryptoProvider | None = None,
        capabilities: RuntimeCapabilities | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            transport: Transport executing requests. Defaults to an
                httpx-backed transport.
            crypto: Crypto provider for encrypted or signed requests.
            capabilities: Runtime description. Defaults to the one derived
                from the settings.
            settings: Environment settings.
        """
        super().__init__()
        self._settings = settings or ClientSettings()
        self._capabilities = capabilities or self._settings.capabilities()
        self._transport = transport or HttpxTransport(max_redirects=self._settings.max_redirects)
        self._crypto = crypto
        self._log = logger.bind(component="client")

    @property
    def transport(self) -> Transport:
        """Transport shared by every request."""
        return self._transport

    @property
    def crypto(self) -> CryptoProvider | None:
        """Crypto provider shared by every request."""
        return self._crypto

    @property
    def capabilities(self) -> RuntimeCapabilities:
        """Runtime description."""
        return self._capabilities

    @property
    def settings(self) -> ClientSettings:
        """Environment settings."""
        return self._settings

    def normalize_url(self, url: str | None) -> str:
        """Resolve a URL against the current origin and clean its path.

        Args:
            url: Absolute or relative URL.

        Returns:
            Absolute URL without dot segments.
        """
        return Address(url, capabilities=self._capabilities).href

    def preflight(self, request: Request, config: CallConfig) -> None:
        """Adjust a request before it is sent. The base client changes nothing."""

    def _build_request(self, config: CallConfig) -> Request:
        options = config.request_options()
        options.setdefault("timeout", self._settings.default_timeout_seconds)
        return Request(
            **options,
            transport=self._transport,
            crypto=self._crypto,
            capabilities=self._capabilities,
        )

    async def _send(self, callback: Callback | None = None, **options: Any) -> Response:
        try:
            config = CallConfig(**options)
        except pydantic.ValidationError as e:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
            raise ConfigurationError(f"Invalid request configuration: {fields}") from e

        request = self._build_request(config)
        self.preflight(request, config)
        return await request.send(callback)

    async def request(
        self,
        url: str | None = None,
        method: str = "GET",
        callback: Callback | None = None,
        **config: Any,
    ) -> Response:
        """Send a request with any method.

        Args:
            url: Absolute or relative URL.
            method: HTTP method.
            callback: Optional ``callback(error, response)``.
            **config: Any ``CallConfig`` field.

        Returns:
            The response.

        Raises:
            ConfigurationError: If the configuration is invalid.
            TransportError: If the transport fails, times out or is aborted.
        """
        return await self._send(callback, url=url, method=method, **config)

    async def options(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send an OPTIONS request."""
        return await self.request(url, "OPTIONS", callback, **config)

    async def head(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send a HEAD request."""
        return await self.request(url, "HEAD", callback, **config)

    async def get(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send a GET request."""
        return await self.request(url, "GET", callback, **config)

    async def post(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send a POST request."""
        return await self.request(url, "POST", callback, **config)

    async def put(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send a PUT request."""
        return await self.request(url, "PUT", callback, **config)

    async def delete(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send a DELETE request."""
        return await self.request(url, "DELETE", callback, **config)

    async def trace(self, url: str, callback: Callback | None = None, **config: Any) -> Response:
        """Send a TRACE request.

        Every call logs a warning: TRACE echoes the request, credentials
        included.
        """
        self._log.warning(
            "trace_method_used",
            hint="TRACE can expose credentials and is often blocked by servers",
        )
        return await self.request(url, "TRACE", callback, **config)

    async def json(self, url: str, callback: Callback | None = None, **config: Any) -> Any:
        """GET a URL and return its parsed JSON body.

        Args:
            url: Absolute or relative URL.
            callback: Optional ``callback(error, data)``.
            **config: Any ``CallConfig`` field.

        Returns:
            Parsed JSON, or None when the body is not valid JSON.
        """
        headers = {"accept": JSON_ACCEPT, **config.pop("headers", {})}
        return await deliver(self._fetch_json(url, headers, config), callback)

    async def _fetch_json(self, url: str, headers: dict[str, str], config: dict[str, Any]) -> Any:
        response = await self.request(url, "GET", headers=headers, **config)
        return response.json

    OPTIONS = options
    HEAD = head
    GET = get
    POST = post
    PUT = put
    DELETE = delete
    TRACE = trace
    REQUEST = request
    JSON = json
