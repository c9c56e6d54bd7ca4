"""URL value object with typed query parameters and change events."""

import re
import socket
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote, unquote, urljoin, urlsplit

import structlog

from src.features.address.query import (
    QueryParameters,
    bare_value,
    parse_query,
    serialize_query,
)
from src.features.core.constants import (
    DEFAULT_PORTS,
    FALLBACK_PORT,
    MAX_PORT,
    MIN_PORT,
    PORTLESS_PROTOCOLS,
    QueryMode,
)
from src.features.core.errors import ValidationError
from src.features.core.models import RuntimeCapabilities
from src.features.core.validation import validate_choice
from src.features.events.emitter import EventEmitter


logger = structlog.get_logger()

_MISSING = object()
_REPEATED_SLASHES = re.compile(r"/{2,}|\\{2,}")
_TEMPLATE_TOKEN = re.compile(r"\{+(\w+)\}+", re.IGNORECASE)
_URI_SAFE = ";,/?:@&=+$!*'()#"
_AUTH_SAFE = "!$&'()*+,;="


def _local_interfaces(capabilities: RuntimeCapabilities) -> frozenset[str]:
    names = {"localhost", "127.0.0.1", "::1", capabilities.hostname}
    try:
        names.add(socket.gethostname().lower())
    except OSError:
        logger.debug("hostname_lookup_failed")
    return frozenset(names)


def remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments in a URL path.

    Args:
        path: URL path.

    Returns:
        Path without dot segments, always starting with ``/``.
    """
    output: list[str] = []
    segments = path.split("/")
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == ".":
            if last:
                output.append("")
            continue
        if segment == "..":
            if len(output) > 1:
                output.pop()
            if last:
                output.append("")
            continue
        output.append(segment)
    result = "/".join(output)
    if not result.startswith("/"):
        result = "/" + result
    return result


class Address(EventEmitter):
    """A mutable URL.

    Differences from a plain parsed URL:

    - The protocol has no trailing ``:``, the port is an integer and the
      hash has no leading ``#``.
    - The password is masked with ``*`` unless ``insecure=True``.
    - ``query`` is a live mapping of typed values. Parsed values of
      ``true``/``false`` become booleans and numeric text becomes numbers.
    - Every component change emits ``update.<component>``.

    Events:
        update.protocol, update.username, update.password, update.hostname,
        update.port, update.path, update.querystring, update.hash,
        update.href, update.querymode, update.defaultport,
        delete.defaultport, query.update, query.delete.
    """

    def __init__(
        self,
        url: "str | Address | None" = None,
        insecure: bool = False,
        query_mode: QueryMode | str = QueryMode.BOOLEAN,
        capabilities: RuntimeCapabilities | None = None,
    ) -> None:
        """Initialize an address.

        Args:
            url: Absolute or relative URL, another Address, or None for
                the root of the current origin.
            insecure: Show the password in plain text.
            query_mode: Value given to bare query keys.
            capabilities: Runtime description supplying the current origin.
        """
        super().__init__()
        self._capabilities = capabilities or RuntimeCapabilities()
        self._insecure = insecure
        self._query_mode = validate_choice("query_mode", query_mode, QueryMode)
        self._default_ports: dict[str, int] = dict(DEFAULT_PORTS)
        self._protocol = self._capabilities.protocol
        self._hostname = self._capabilities.hostname
        self._username: str | None = None
        self._password: str | None = None
        self._port: int | None = None
        self._path = "/"
        self._querystring = ""
        self._query: dict[str, Any] = {}
        self._bare_keys: set[str] = set()
        self._hash: str | None = None
        self._local = _local_interfaces(self._capabilities)
        self.query = QueryParameters(self)

        if isinstance(url, Address):
            self._copy_from(url)
        else:
            self._parse(url)

    def _copy_from(self, other: "Address") -> None:
        self._default_ports = dict(other._default_ports)
        self._protocol = other._protocol
        self._hostname = other._hostname
        self._username = other._username
        self._password = other._password
        self._port = other._port
        self._path = other._path
        self._querystring = other._querystring
        self._query = dict(other._query)
        self._bare_keys = set(other._bare_keys)
        self._hash = other._hash
        self._query_mode = other._query_mode
        self._insecure = self._insecure or other._insecure

    def _parse(self, url: str | None) -> None:
        raw = (url or "").strip() or "/"
        joined = urljoin(f"{self._protocol}://{self._hostname}/", raw)
        parts = urlsplit(joined)
        try:
            port = parts.port
        except ValueError as e:
            raise ValidationError("port", raw, f"{MIN_PORT}-{MAX_PORT}") from e

        self._protocol = (parts.scheme or self._protocol).lower()
        self._hostname = (parts.hostname or self._hostname).lower()
        self._username = unquote(parts.username) if parts.username else None
        self._password = unquote(parts.password) if parts.password else None
        self._port = port
        self._path = remove_dot_segments(parts.path or "/")
        self._querystring = parts.query.strip()
        self._query, self._bare_keys = parse_query(self._querystring, self._query_mode)
        self._hash = parts.fragment.lstrip("#") or None

    def _update(self, component: str, new: Any) -> None:
        attr = f"_{component}"
        old = getattr(self, attr)
        if old == new and type(old) is type(new):
            return
        setattr(self, attr, new)
        self.emit(f"update.{component}", {"old": old, "new": new})

    def _mask(self, value: str | None) -> str | None:
        if value is None:
            return None
        return value if self._insecure else "*" * len(value)

    # Components

    @property
    def protocol(self) -> str:
        """Protocol without the ``:`` separator."""
        return self._protocol

    @protocol.setter
    def protocol(self, value: str) -> None:
        cleaned = re.split(r":|/", (value or "").strip().lower(), maxsplit=1)[0]
        if not cleaned:
            raise ValidationError("protocol", value, "a non-empty scheme")
        self._update("protocol", cleaned)

    scheme = protocol

    @property
    def username(self) -> str | None:
        """Username, or None."""
        return self._username

    @username.setter
    def username(self, value: str | None) -> None:
        self._update("username", value or None)

    @property
    def password(self) -> str | None:
        """Password, masked with ``*`` unless the address is insecure."""
        return self._mask(self._password)

    @password.setter
    def password(self, value: str | None) -> None:
        value = value or None
        if value == self._password:
            return
        old = self._mask(self._password)
        self._password = value
        self.emit("update.password", {"old": old, "new": self._mask(value)})

    @property
    def hostname(self) -> str:
        """Lower-case hostname."""
        return self._hostname

    @hostname.setter
    def hostname(self, value: str) -> None:
        cleaned = (value or "").strip().lower()
        if not cleaned:
            raise ValidationError("hostname", value, "a non-empty hostname")
        self._update("hostname", cleaned)

    @property
    def port(self) -> int | None:
        """Explicit port, or the protocol's default port."""
        if self._port is not None:
            return self._port
        return self.default_port

    @port.setter
    def port(self, value: int | str | None) -> None:
        new = self._resolve_port(value)
        if new == self._port:
            return
        old = self.port
        self._port = new
        self.emit("update.port", {"old": old, "new": self.port})

    def _resolve_port(self, value: int | str | None) -> int | None:
        if value is None:
            return None
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("", "default"):
                return None
            if text.isdigit():
                value = int(text)
            elif text in self._default_ports:
                value = self._default_ports[text]
            else:
                raise ValidationError(
                    "port", value, f"1-65535, 'default' or one of {sorted(self._default_ports)}"
                )
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("port", value, f"an integer between {MIN_PORT}-{MAX_PORT}")
        if value < MIN_PORT or value > MAX_PORT:
            raise ValidationError("port", value, f"an integer between {MIN_PORT}-{MAX_PORT}")
        return value

    def reset_port(self) -> None:
        """Return to the protocol's default port."""
        self.port = None

    @property
    def default_port(self) -> int | None:
        """Default port of the current protocol."""
        if self._protocol in self._default_ports:
            return self._default_ports[self._protocol]
        if self._protocol in PORTLESS_PROTOCOLS:
            return None
        return FALLBACK_PORT

    @property
    def path(self) -> str:
        """Path, always starting with ``/``."""
        return self._path

    @path.setter
    def path(self, value: str | None) -> None:
        value = (value or "").strip() or "/"
        if not value.startswith("/"):
            value = "/" + value
        self._update("path", remove_dot_segments(value))

    @property
    def querystring(self) -> str:
        """Query string without the leading ``?``."""
        return self._querystring

    @querystring.setter
    def querystring(self, value: str | None) -> None:
        value = (value or "").strip().lstrip("?")
        if value == self._querystring:
            return
        old = self._querystring
        self._querystring = value
        self._query, self._bare_keys = parse_query(value, self._query_mode)
        self.emit("update.querystring", {"old": old, "new": value})

    @property
    def hash(self) -> str | None:
        """Fragment without the leading ``#``."""
        return self._hash

    @hash.setter
    def hash(self, value: str | None) -> None:
        self._update("hash", (value or "").strip().lstrip("#") or None)

    @property
    def query_mode(self) -> QueryMode:
        """Value assigned to bare query keys (boolean, string or null)."""
        return self._query_mode

    @query_mode.setter
    def query_mode(self, value: QueryMode | str) -> None:
        mode = validate_choice("query_mode", value, QueryMode)
        if mode == self._query_mode:
            return
        old = self._query_mode
        self._query_mode = mode
        for key in self._bare_keys:
            self._query[key] = bare_value(mode)
        self.emit("update.querymode", {"old": old.value, "new": mode.value})

    @property
    def insecure(self) -> bool:
        """Whether the password is shown in plain text."""
        return self._insecure

    # Query parameters

    def _set_query_parameter(self, name: str, value: Any) -> None:
        name = str(name)
        if self._query_mode in (QueryMode.STRING, QueryMode.NULL):
            if value is None or (isinstance(value, str) and not value.strip()):
                value = True
        current = self._query.get(name, _MISSING)
        if current is not _MISSING and current == value and type(current) is type(value):
            return
        old = dict(self._query)
        self._query[name] = value
        self._bare_keys.discard(name)
        self._querystring = serialize_query(self._query)
        self.emit(
            "query.update",
            {
                "old": old,
                "new": dict(self._query),
                "parameter": {
                    "name": name,
                    "old": None if current is _MISSING else current,
                    "new": value,
                },
            },
        )

    def _delete_query_parameter(self, name: str) -> None:
        if name not in self._query:
            raise KeyError(name)
        old = dict(self._query)
        removed = self._query.pop(name)
        self._bare_keys.discard(name)
        self._querystring = serialize_query(self._query)
        self.emit(
            "query.delete",
            {
                "old": old,
                "new": dict(self._query),
                "parameter": {"name": name, "old": removed, "new": None},
            },
        )

    @property
    def query_parameter_count(self) -> int:
        """Number of query parameters."""
        return len(self._query)

    @property
    def has_query_parameters(self) -> bool:
        """Whether any query parameter is set."""
        return bool(self._query)

    # Derived values

    @property
    def host(self) -> str:
        """``hostname:port``."""
        return f"{self._hostname}:{self.port}"

    @property
    def origin(self) -> str:
        """Scheme, hostname and non-default port."""
        if self._protocol in PORTLESS_PROTOCOLS:
            return "null"
        port = "" if self.port == self.default_port else f":{self.port}"
        return f"{self._protocol}://{self._hostname}{port}"

    @property
    def search(self) -> str:
        """Query string with a leading ``?``, or an empty string."""
        return f"?{self._querystring}" if self._querystring else ""

    @property
    def local(self) -> bool:
        """Whether the hostname refers to the local machine."""
        return self._hostname in self._local

    @property
    def href(self) -> str:
        """Full URL. Assigning re-parses relative to the current origin."""
        return self.to_string()

    @href.setter
    def href(self, value: str | None) -> None:
        old = self.to_string()
        self._parse(value)
        new = self.to_string()
        if old != new:
            self.emit("update.href", {"old": old, "new": new})

    # Default ports

    def set_default_protocol_port(
        self, protocol: str | Mapping[str, int], port: int | str | None = None
    ) -> None:
        """Map a protocol to a default port, overriding any existing mapping.

        Args:
            protocol: Protocol name, or a mapping of several protocol/port pairs.
            port: Default port when a single protocol is given.
        """
        if isinstance(protocol, Mapping):
            for name, value in protocol.items():
                self.set_default_protocol_port(name, value)
            return
        name = protocol.strip().lower()
        try:
            number = int(port)  # type: ignore[arg-type]
        except (TypeError, ValueError) as e:
            raise ValidationError("port", port, "an integer") from e
        if number < MIN_PORT or number > MAX_PORT:
            raise ValidationError("port", port, f"an integer between {MIN_PORT}-{MAX_PORT}")
        old = self._default_ports.get(name)
        self._default_ports[name] = number
        if old != number:
            self.emit("update.defaultport", {"protocol": name, "old": old, "new": number})

    def remove_default_protocol_port(self, *protocols: str) -> None:
        """Remove default port mappings.

        A removed protocol falls back to port 80. Overridden values are
        not restored.

        Args:
            *protocols: Protocol names, case insensitive.
        """
        for protocol in protocols:
            name = protocol.strip().lower()
            old = self._default_ports.pop(name, None)
            if old is not None:
                self.emit("delete.defaultport", {"protocol": name, "old": old})

    # Comparison

    def is_same_origin(self, url: "str | Address", strict_protocol: bool = False) -> bool:
        """Check whether a URL shares this address's hostname.

        Args:
            url: URL string or Address, resolved against this origin.
            strict_protocol: Also require the same protocol.

        Returns:
            True for same origin, False for cross origin.
        """
        if isinstance(url, Address):
            hostname, protocol = url.hostname, url.protocol
        else:
            parts = urlsplit(urljoin(f"{self._protocol}://{self._hostname}/", url))
            hostname = (parts.hostname or self._hostname).lower()
            protocol = (parts.scheme or self._protocol).lower()
        if hostname != self._hostname:
            return False
        return not strict_protocol or protocol == self._protocol

    # Serialization

    def to_string(
        self,
        protocol: bool = True,
        hostname: bool = True,
        username: bool = False,
        password: bool = False,
        force_port: bool = False,
        path: bool = True,
        querystring: bool = True,
        shrink_querystring: bool = False,
        hash: bool = True,
    ) -> str:
        """Render the URL with selectable components.

        Args:
            protocol: Include ``scheme://``.
            hostname: Include the hostname (forced on by ``username``).
            username: Include the username.
            password: Include the password (masked unless insecure).
                Implies ``username``.
            force_port: Always include the port, even the default one.
            path: Include the path.
            querystring: Include the query string.
            shrink_querystring: Render ``True`` flags as bare keys and
                drop ``False`` flags.
            hash: Include the fragment.

        Returns:
            URL string.
        """
        username = username or password
        hostname = hostname or username
        result = ""
        portless = self._protocol in PORTLESS_PROTOCOLS

        if protocol:
            result += f"{self._protocol}://"
        if hostname and not portless:
            if username and self._username:
                result += quote(self._username, safe=_AUTH_SAFE)
                if password and self._password:
                    result += ":" + quote(self.password or "", safe=_AUTH_SAFE + "*")
                result += "@"
            result += self._hostname
            port = self.port
            if port is not None and (force_port or port != self.default_port):
                result += f":{port}"
        if path:
            result += _REPEATED_SLASHES.sub("/", self._path)
        if querystring and self._query:
            if shrink_querystring:
                query = serialize_query(self._query, shrink=True)
            else:
                query = self._querystring or serialize_query(self._query)
            if query:
                result += f"?{query}"
        if hash and self._hash:
            result += f"#{self._hash}"
        return result

    def format_string(
        self,
        template: str = "{{protocol}}{{separator}}{{hostname}}{{port}}{{path}}{{querystring}}{{hash}}",
        encode: bool = True,
        separator: str = "://",
    ) -> str:
        """Render the URL through a ``{{placeholder}}`` template.

        Placeholders: protocol, scheme, separator, username, password,
        hostname, host, port (``:port`` when not the default), path,
        querystring/query (``?...``) and hash (``#...``).

        Args:
            template: Template text.
            encode: Percent-encode characters not allowed in a URI.
            separator: Value of ``{{separator}}``.

        Returns:
            Rendered string.
        """
        query = f"?{self._querystring or serialize_query(self._query)}"
        values = {
            "protocol": self._protocol,
            "scheme": self._protocol,
            "separator": separator,
            "username": self._username or "",
            "password": self.password or "",
            "hostname": self._hostname,
            "host": self._hostname,
            "port": "" if self.port == self.default_port else f":{self.port}",
            "path": self._path,
            "querystring": query if self._query else "",
            "query": query if self._query else "",
            "hash": f"#{self._hash}" if self._hash else "",
        }

        def replace(match: re.Match[str]) -> str:
            return values.get(match.group(1).lower(), match.group(0))

        result = _TEMPLATE_TOKEN.sub(replace, template)
        return quote(result, safe=_URI_SAFE) if encode else result

    def userinfo(self) -> tuple[str | None, str | None]:
        """Unmasked username and password embedded in the URL."""
        return self._username, self._password

    def clone(self) -> "Address":
        """Independent copy with the same components and settings."""
        return Address(self, insecure=self._insecure, capabilities=self._capabilities)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Address({self.to_string(username=True, password=True)!r})"
