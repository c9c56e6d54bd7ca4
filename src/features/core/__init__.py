"""Shared constants, errors and transport models for the request engine."""

from src.features.core.constants import (
    DEFAULT_PORTS,
    HTTP_METHODS,
    IDEMPOTENT_METHODS,
    AuthType,
    CacheMode,
    CorsMode,
    CredentialsMode,
    KeyCase,
    QueryMode,
    RedirectMode,
    ReferrerPolicy,
)
from src.features.core.errors import (
    ConfigurationError,
    CryptoError,
    NetError,
    NetworkAccessBlockedError,
    TransportError,
    TransportErrorClass,
    ValidationError,
    VerificationError,
)
from src.features.core.models import (
    AbortSignal,
    RequestDescriptor,
    Response,
    RuntimeCapabilities,
)
from src.features.core.validation import validate_choice


__all__ = [
    # Constants
    "DEFAULT_PORTS",
    "HTTP_METHODS",
    "IDEMPOTENT_METHODS",
    "AuthType",
    "CacheMode",
    "CorsMode",
    "CredentialsMode",
    "KeyCase",
    "QueryMode",
    "RedirectMode",
    "ReferrerPolicy",
    # Errors
    "ConfigurationError",
    "CryptoError",
    "NetError",
    "NetworkAccessBlockedError",
    "TransportError",
    "TransportErrorClass",
    "ValidationError",
    "VerificationError",
    # Models
    "AbortSignal",
    "RequestDescriptor",
    "Response",
    "RuntimeCapabilities",
    # Validation
    "validate_choice",
]
