"""Error taxonomy for the request engine.

Validation and configuration errors are raised synchronously at the API
boundary. Transport and verification errors travel through the async
result channel of ``Request.send``.
"""

from enum import Enum
from typing import Any


class NetError(Exception):
    """Base class for request engine errors."""

    def to_dict(self) -> dict[str, Any]:
        """Describe the error for structured logging.

        Returns:
            Dictionary with the error type and message.
        """
        return {"error_type": type(self).__name__, "message": str(self)}


class ValidationError(NetError, ValueError):
    """Raised when an assigned value is outside its allowed set or range."""

    def __init__(self, field: str, value: Any, allowed: Any = None) -> None:
        """Initialize the error.

        Args:
            field: Name of the attribute being assigned.
            value: Rejected value.
            allowed: Optional description of the accepted values.
        """
        self.field = field
        self.value = value
        self.allowed = allowed
        message = f"Invalid {field}: {value!r}"
        if allowed is not None:
            if isinstance(allowed, (list, tuple, set, frozenset)):
                allowed = ", ".join(repr(item) for item in sorted(allowed, key=str))
            message += f" (expected {allowed})"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Describe the error for structured logging."""
        result = super().to_dict()
        result["field"] = self.field
        return result


class ConfigurationError(NetError):
    """Raised before any I/O when a request cannot be configured.

    Typical causes are crypto operations requested without a resolvable
    key or without a crypto provider, and invalid call configuration.
    """


class TransportErrorClass(str, Enum):
    """Classification of transport failures."""

    NETWORK_TIMEOUT = "network_timeout"
    CONNECTION_ERROR = "connection_error"
    ABORTED = "aborted"
    REDIRECT_REFUSED = "redirect_refused"
    INTEGRITY_MISMATCH = "integrity_mismatch"
    UNSUPPORTED_METHOD = "unsupported_method"
    BLOCKED = "blocked"
    UNKNOWN = "unknown"


class TransportError(NetError):
    """Raised when the transport fails, times out or is aborted."""

    def __init__(
        self,
        message: str,
        error_class: TransportErrorClass = TransportErrorClass.UNKNOWN,
        url: str | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable description.
            error_class: Failure classification.
            url: URL being requested, if known.
        """
        self.error_class = error_class
        self.url = url
        super().__init__(message)

    @property
    def aborted(self) -> bool:
        """Whether the failure is a cancellation outcome."""
        return self.error_class == TransportErrorClass.ABORTED

    def to_dict(self) -> dict[str, Any]:
        """Describe the error for structured logging."""
        result = super().to_dict()
        result["error_class"] = self.error_class.value
        return result


class NetworkAccessBlockedError(TransportError):
    """Raised by the mock transport when a URL has no registered fixture."""

    def __init__(self, url: str) -> None:
        """Initialize the error.

        Args:
            url: URL that was blocked.
        """
        super().__init__(
            f"Network access blocked: {url}. "
            "Only registered fixture URLs may be requested.",
            error_class=TransportErrorClass.BLOCKED,
            url=url,
        )


class VerificationError(NetError):
    """Raised when a response signature fails verification."""

    def __init__(self, url: str | None = None) -> None:
        """Initialize the error.

        Args:
            url: URL whose response was rejected.
        """
        self.url = url
        super().__init__(f"Response signature verification failed for {url}")


class CryptoError(NetError):
    """Raised by crypto providers when an operation cannot be completed."""
