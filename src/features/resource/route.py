"""Path-scoped views of a Resource."""

from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from src.features.core.models import Response
from src.features.http.callbacks import Callback


if TYPE_CHECKING:
    from src.features.resource.resource import Resource


# Attributes read and written straight through to the origin resource
_FORWARDED = frozenset(
    {
        "headers",
        "query",
        "username",
        "password",
        "access_token",
        "access_token_type",
        "token_expiration",
        "set_access_token",
        "set_header",
        "remove_header",
        "clear_headers",
        "set_parameter",
        "remove_parameter",
        "clear_parameters",
        "cache",
        "mode",
        "credentials",
        "redirect",
        "referrer",
        "referrer_policy",
        "timeout",
        "https_only",
        "nocache",
        "unique",
        "user_agent",
        "unique_agent",
        "token_renewal_notice",
        "encryption_key",
        "decryption_key",
        "signing_key",
        "verification_key",
        "encrypt_all",
        "decrypt_all",
        "sign_all",
        "verify_all",
        "transport",
        "crypto",
        "capabilities",
        "settings",
        "normalize_url",
        "preflight",
        "clone",
        "close",
        "on",
        "once",
        "off",
        "emit",
        "relay",
        "unrelay",
        "listener_count",
    }
)


class RouteView:
    """A Resource seen through a path prefix.

    HTTP verbs, ``request``, ``json``, ``base_url`` and ``prepare_url``
    apply the prefix. Every other attribute in the forwarding table reads
    from and writes to the origin resource, so the view shares all of its
    state.
    """

    def __init__(self, origin: "Resource", path: str) -> None:
        """Initialize the view.

        Args:
            origin: Resource receiving every call.
            path: Path prefix such as ``/v1``.
        """
        object.__setattr__(self, "_origin", origin)
        object.__setattr__(self, "_path", path or "")

    def __getattr__(self, name: str) -> Any:
        if name in _FORWARDED:
            return getattr(self._origin, name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __setattr__(self, name: str, value: Any) -> None:
        if name not in _FORWARDED:
            raise AttributeError(f"Cannot set {name!r} on a route view")
        setattr(self._origin, name, value)

    @property
    def origin(self) -> "Resource":
        """Resource behind the view."""
        return self._origin

    @property
    def path(self) -> str:
        """Path prefix."""
        return self._path

    def _join(self, url: str | None) -> str:
        if url and urlsplit(url.strip()).netloc:
            return url
        return f"{self._path.rstrip('/')}/{(url or '').lstrip('/')}"

    @property
    def base_url(self) -> str:
        """Origin base URL with the route path applied."""
        return self._origin.prepare_url(self._path)

    def prepare_url(self, uri: str | None = None) -> str:
        """Resolve a URL under the route path."""
        return self._origin.prepare_url(self._join(uri))

    def route(self, path: str) -> "RouteView":
        """Nested view adding another path segment."""
        return RouteView(self._origin, self._join(path))

    async def request(
        self,
        url: str | None = None,
        method: str = "GET",
        callback: Callback | None = None,
        **config: Any,
    ) -> Response:
        """Send a request with any method under the route path."""
        return await self._origin.request(self._join(url), method, callback, **config)

    async def options(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.options(self._join(url), callback, **config)

    async def head(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.head(self._join(url), callback, **config)

    async def get(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.get(self._join(url), callback, **config)

    async def post(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.post(self._join(url), callback, **config)

    async def put(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.put(self._join(url), callback, **config)

    async def delete(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.delete(self._join(url), callback, **config)

    async def trace(self, url: str = "", callback: Callback | None = None, **config: Any) -> Response:
        return await self._origin.trace(self._join(url), callback, **config)

    async def json(self, url: str = "", callback: Callback | None = None, **config: Any) -> Any:
        return await self._origin.json(self._join(url), callback, **config)

    OPTIONS = options
    HEAD = head
    GET = get
    POST = post
    PUT = put
    DELETE = delete
    TRACE = trace
    REQUEST = request
    JSON = json

    def __repr__(self) -> str:
        return f"RouteView({self.base_url!r})"
