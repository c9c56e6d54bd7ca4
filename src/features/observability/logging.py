"""Structured logging configuration."""

import logging
import sys
from collections.abc import Mapping
from typing import Any, TextIO

import structlog

from src.features.http.redact import REDACTED_VALUE, is_sensitive_header, redact_url_credentials
from src.settings.app import ClientSettings


def redact_secrets(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Processor masking credentials that slipped into a log event.

    Sensitive header names are redacted wherever they appear as keys,
    including inside nested mappings, and ``url`` values lose their
    user-info part.
    """

    def scrub(value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                key: REDACTED_VALUE
                if isinstance(key, str) and is_sensitive_header(key)
                else scrub(item)
                for key, item in value.items()
            }
        return value

    for key, value in list(event_dict.items()):
        if is_sensitive_header(key):
            event_dict[key] = REDACTED_VALUE
        elif key == "url" and isinstance(value, str):
            event_dict[key] = redact_url_credentials(value)
        else:
            event_dict[key] = scrub(value)
    return event_dict


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structured logging for the client.

    Sets up structlog with context binding, secret redaction, ISO
    timestamps and either JSON or console rendering.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Whether to use JSON format (default: True).
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=output.isatty())
    )
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    # Route standard library records from httpx/httpcore to the same stream
    logging.basicConfig(format="%(message)s", stream=output, level=level)


def configure_logging_from_settings(
    settings: ClientSettings, output: TextIO = sys.stderr
) -> None:
    """Configure logging from environment settings.

    Args:
        settings: Client settings supplying level and format.
        output: Output stream (default: stderr).
    """
    configure_logging(
        level=settings.log_level_number,
        output=output,
        json_format=settings.log_json,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger instance.

    Args:
        name: Optional logger name.

    Returns:
        Bound logger instance.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


def bind_client_context(client_id: str) -> None:
    """Bind a client identifier to every log event in the current context.

    Args:
        client_id: Identifier of the client or resource issuing requests.
    """
    structlog.contextvars.bind_contextvars(client_id=client_id)


def clear_client_context() -> None:
    """Remove the client identifier from the logging context."""
    structlog.contextvars.unbind_contextvars("client_id")
