"""Structured logging for the client."""

from src.features.observability.logging import (
    bind_client_context,
    clear_client_context,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
    redact_secrets,
)


__all__ = [
    "bind_client_context",
    "clear_client_context",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
    "redact_secrets",
]
