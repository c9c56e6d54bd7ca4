"""Ordered key/value stores with change notifications."""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from src.features.core.constants import KeyCase
from src.features.core.validation import validate_choice
from src.features.events.emitter import EventEmitter


class ParameterStore(EventEmitter):
    """Ordered map with key normalization and change events.

    Keys are normalized with the configured case mode on every
    operation, so lookups are case insensitive whenever normalization is
    enabled. Events are named ``<prefix>.create``, ``<prefix>.update``
    and ``<prefix>.delete`` and carry ``{name, old, new}``.
    """

    def __init__(
        self,
        init: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None,
        key_case: KeyCase | str = KeyCase.NONE,
        prefix: str = "",
    ) -> None:
        """Initialize the store.

        Args:
            init: Initial entries. No events are emitted for them.
            key_case: Key normalization mode (none, lower or upper).
            prefix: Event name prefix, such as ``header``.
        """
        super().__init__()
        self._key_case = validate_choice("key_case", key_case, KeyCase)
        self._prefix = prefix.strip().rstrip(".")
        self._data: dict[str, Any] = {}
        if init is not None:
            items = init.items() if isinstance(init, Mapping) else init
            for key, value in items:
                self._data[self.normalize_key(key)] = self._coerce(value)

    @property
    def key_case(self) -> KeyCase:
        """Key normalization mode."""
        return self._key_case

    def normalize_key(self, key: str) -> str:
        """Apply the store's key normalization."""
        key = str(key)
        if self._key_case == KeyCase.LOWER:
            return key.lower()
        if self._key_case == KeyCase.UPPER:
            return key.upper()
        return key

    def _coerce(self, value: Any) -> Any:
        return value

    def _event(self, action: str) -> str:
        return f"{self._prefix}.{action}" if self._prefix else action

    def get(self, key: str, default: Any = None) -> Any:
        """Value for a key, or ``default``."""
        return self._data.get(self.normalize_key(key), default)

    def has(self, key: str) -> bool:
        """Whether a key is present."""
        return self.normalize_key(key) in self._data

    def set(self, key: str, value: Any) -> None:
        """Create or replace a value.

        Setting a key to its current value is a no-op.
        """
        name = self.normalize_key(key)
        value = self._coerce(value)
        if name in self._data:
            old = self._data[name]
            if old == value:
                return
            self._data[name] = value
            self.emit(self._event("update"), {"name": name, "old": old, "new": value})
            return
        self._data[name] = value
        self.emit(self._event("create"), {"name": name, "old": None, "new": value})

    def append(self, key: str, value: Any) -> None:
        """Join a value onto an existing one with ``", "``, or create it."""
        name = self.normalize_key(key)
        if name in self._data:
            self.set(name, f"{self._data[name]}, {self._coerce(value)}")
        else:
            self.set(name, value)

    def delete(self, key: str) -> bool:
        """Remove a key.

        Returns:
            True if the key existed.
        """
        name = self.normalize_key(key)
        if name not in self._data:
            return False
        old = self._data.pop(name)
        self.emit(self._event("delete"), {"name": name, "old": old, "new": None})
        return True

    def clear(self) -> None:
        """Remove every entry, emitting one delete event per entry."""
        for name in list(self._data):
            self.delete(name)

    def entries(self) -> list[tuple[str, Any]]:
        """Snapshot of (key, value) pairs."""
        return list(self._data.items())

    def keys(self) -> list[str]:
        """Snapshot of keys."""
        return list(self._data)

    def values(self) -> list[Any]:
        """Snapshot of values."""
        return list(self._data.values())

    def to_dict(self) -> dict[str, Any]:
        """Copy of the store as a plain dictionary."""
        return dict(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


class HeaderStore(ParameterStore):
    """Header map with lower-case names and string values."""

    def __init__(
        self, init: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None
    ) -> None:
        """Initialize the store.

        Args:
            init: Initial headers.
        """
        super().__init__(init, key_case=KeyCase.LOWER, prefix="header")

    def _coerce(self, value: Any) -> Any:
        return str(value).strip()
