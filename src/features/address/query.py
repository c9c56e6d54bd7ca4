"""Query string parsing, serialization and the live query view."""

import re
from collections.abc import Iterator, MutableMapping
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, unquote

from src.features.core.constants import QueryMode


if TYPE_CHECKING:
    from src.features.address.address import Address


_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_FLOAT_PATTERN = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")

# Characters left unescaped in serialized keys and values
_SAFE_CHARS = ":/@!$'()*+,;"

_ABSENT = object()


def bare_value(mode: QueryMode) -> Any:
    """Value given to a key that appears without ``=value``."""
    if mode == QueryMode.STRING:
        return ""
    if mode == QueryMode.NULL:
        return None
    return True


def coerce_value(raw: str) -> Any:
    """Convert a parsed query value into a bool or number where it looks like one.

    Args:
        raw: Unescaped value text.

    Returns:
        ``True``/``False`` for boolean text, int or float for numeric
        text, otherwise the original string.
    """
    text = raw.strip()
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if _INT_PATTERN.match(text):
        return int(text)
    if _FLOAT_PATTERN.match(text):
        return float(text)
    return raw


def parse_query(querystring: str, mode: QueryMode) -> tuple[dict[str, Any], set[str]]:
    """Parse a query string into typed values.

    Args:
        querystring: Query string with or without a leading ``?``.
        mode: Query mode deciding the value of bare keys.

    Returns:
        Tuple of (ordered key/value mapping, names of bare keys).
    """
    values: dict[str, Any] = {}
    bare: set[str] = set()
    for pair in querystring.lstrip("?").strip().split("&"):
        if not pair:
            continue
        key, sep, raw = pair.partition("=")
        key = unquote(key)
        if not key:
            continue
        if not sep or raw == "":
            values[key] = bare_value(mode)
            bare.add(key)
            continue
        values[key] = coerce_value(unquote(raw))
        bare.discard(key)
    return values, bare


def format_value(value: Any) -> str | None:
    """Render a query value, or None when the key should appear bare."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if not text.strip():
        return None
    return text


def serialize_query(values: dict[str, Any], shrink: bool = False) -> str:
    """Serialize query values without the leading ``?``.

    Args:
        values: Ordered query values.
        shrink: Render ``True`` as a bare key and drop ``False`` entries.

    Returns:
        Query string.
    """
    parts: list[str] = []
    for key, value in values.items():
        name = quote(str(key), safe=_SAFE_CHARS)
        if shrink and isinstance(value, bool):
            if value:
                parts.append(name)
            continue
        text = format_value(value)
        if text is None:
            parts.append(name)
        else:
            parts.append(f"{name}={quote(text, safe=_SAFE_CHARS)}")
    return "&".join(parts)


class QueryParameters(MutableMapping[str, Any]):
    """Live mutable view over an Address's query parameters.

    Reads come straight from the address. Writes and deletes go through
    the address so the query string is re-serialized and change events
    are emitted.

    Reading an absent key returns the query mode's default (``True``,
    ``""`` or ``None``), the same value a bare key would carry. Use
    ``in`` to test for presence.
    """

    def __init__(self, address: "Address") -> None:
        self._address = address

    def __getitem__(self, key: str) -> Any:
        query = self._address._query
        if key in query:
            return query[key]
        return bare_value(self._address.query_mode)

    def __contains__(self, key: object) -> bool:
        return key in self._address._query

    def get(self, key: str, default: Any = _ABSENT) -> Any:
        """Read a parameter, falling back to ``default`` when given."""
        if key in self._address._query or default is _ABSENT:
            return self[key]
        return default

    def pop(self, key: str, default: Any = _ABSENT) -> Any:
        """Remove a parameter and return its value."""
        if key not in self._address._query:
            if default is _ABSENT:
                raise KeyError(key)
            return default
        value = self._address._query[key]
        self._address._delete_query_parameter(key)
        return value

    def setdefault(self, key: str, default: Any = None) -> Any:
        """Set a parameter only when it is absent."""
        if key not in self._address._query:
            self._address._set_query_parameter(key, default)
        return self[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._address._set_query_parameter(key, value)

    def __delitem__(self, key: str) -> None:
        self._address._delete_query_parameter(key)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._address._query))

    def __len__(self) -> int:
        return len(self._address._query)

    def __repr__(self) -> str:
        return f"QueryParameters({self._address._query!r})"

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the current parameters."""
        return dict(self._address._query)
