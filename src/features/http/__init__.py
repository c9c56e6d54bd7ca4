"""Request engine: headers, credentials, body inference and the send lifecycle."""

from src.features.http.store import HeaderStore, ParameterStore
from src.features.http.credential import Credential
from src.features.http.body import PreparedBody, prepare_body, sniff_text_content_type
from src.features.http.redact import (
    REDACTED_VALUE,
    SENSITIVE_HEADERS,
    is_sensitive_header,
    redact_headers,
    redact_url_credentials,
)
from src.features.http.metrics import RequestMetrics
from src.features.http.state_machine import (
    RequestState,
    RequestStateMachine,
    RequestStateTransitionError,
)
from src.features.http.crypto import CryptoProvider
from src.features.http.callbacks import deliver
from src.features.http.request import Request


__all__ = [
    # Stores
    "HeaderStore",
    "ParameterStore",
    # Credentials
    "Credential",
    # Body
    "PreparedBody",
    "prepare_body",
    "sniff_text_content_type",
    # Redaction
    "REDACTED_VALUE",
    "SENSITIVE_HEADERS",
    "is_sensitive_header",
    "redact_headers",
    "redact_url_credentials",
    # Metrics
    "RequestMetrics",
    # State machine
    "RequestState",
    "RequestStateMachine",
    "RequestStateTransitionError",
    # Collaborators
    "CryptoProvider",
    "deliver",
    # Request
    "Request",
]
