"""Request body serialization and content-type inference."""

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import structlog

from src.features.core.errors import ValidationError


logger = structlog.get_logger()

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"
XML_CONTENT_TYPE = "application/xml"
HTML_CONTENT_TYPE = "text/html"
BINARY_CONTENT_TYPE = "application/octet-stream"

_FORM_PATTERN = re.compile(r"^[^=&\s]+=[^&]*(?:&[^=&\s]+=[^&]*)*$")
_DATA_URL_PATTERN = re.compile(r"^data:([^;,]+)[;,]", re.IGNORECASE)
_XML_PATTERN = re.compile(r"^<\?xml", re.IGNORECASE)
_HTML_PATTERN = re.compile(r"^<html", re.IGNORECASE)


@dataclass(frozen=True)
class PreparedBody:
    """Serialized body ready for transmission.

    Attributes:
        payload: Serialized body, or None when nothing is transmitted.
        content_type: Inferred Content-Type, or None to leave it unset.
        content_length: Length of the payload in bytes.
        transmittable: False when the body type cannot be sent.
    """

    payload: str | bytes | None
    content_type: str | None = None
    content_length: int | None = None
    transmittable: bool = True


def byte_length(payload: str | bytes) -> int:
    """Length of a payload in bytes, encoding text as UTF-8."""
    if isinstance(payload, bytes):
        return len(payload)
    return len(payload.encode("utf-8"))


def encode_form(form: Mapping[str, Any]) -> str:
    """URL-encode form fields.

    Nested containers are JSON-encoded. Callables are rejected.

    Args:
        form: Field names and values.

    Returns:
        ``key=value`` pairs joined with ``&``.

    Raises:
        ValidationError: If a value is a callable.
    """
    pairs: list[str] = []
    for key, value in form.items():
        if callable(value):
            raise ValidationError(
                f"form field {key!r}", value, "a scalar, list or mapping value"
            )
        if isinstance(value, (Mapping, list, tuple)):
            value = json.dumps(value, separators=(",", ":"))
        elif isinstance(value, bool):
            value = "true" if value else "false"
        elif value is None:
            value = ""
        pairs.append(f"{key}={quote(str(value), safe='')}")
    return "&".join(pairs)


def sniff_text_content_type(text: str) -> str:
    """Infer the content type of a text body.

    Args:
        text: Body text.

    Returns:
        Form, data-URL media type, XML, HTML or plain text content type.
    """
    stripped = text.strip()
    lowered = stripped.lower()
    if (
        not lowered.startswith("data:")
        and not lowered.startswith("<")
        and _FORM_PATTERN.match(stripped)
    ):
        return FORM_CONTENT_TYPE
    if lowered.startswith("data:"):
        match = _DATA_URL_PATTERN.match(stripped)
        return match.group(1).strip() if match else TEXT_CONTENT_TYPE
    if _XML_PATTERN.match(stripped):
        return XML_CONTENT_TYPE
    if _HTML_PATTERN.match(stripped):
        return HTML_CONTENT_TYPE
    return TEXT_CONTENT_TYPE


def prepare_body(body: Any, content_type: str | None = None) -> PreparedBody:
    """Serialize a body and infer its content type.

    - A mapping with exactly a ``form`` key is URL-encoded.
    - Any other mapping or list is compact JSON; an existing content type
      is kept, otherwise ``application/json`` is used.
    - Text is sniffed for form, data-URL, XML and HTML content.
    - Bytes keep an existing content type or use ``application/octet-stream``.
    - Anything else is not transmittable.

    Args:
        body: Body as given by the caller.
        content_type: Content type already configured explicitly.

    Returns:
        Prepared body.
    """
    if body is None:
        return PreparedBody(payload=None)

    if isinstance(body, Mapping) and set(body.keys()) == {"form"}:
        form = body["form"]
        if not isinstance(form, Mapping):
            raise ValidationError("form body", form, "a mapping of form fields")
        payload = encode_form(form)
        return PreparedBody(payload, FORM_CONTENT_TYPE, byte_length(payload))

    if isinstance(body, (Mapping, list, tuple)):
        payload = json.dumps(body, separators=(",", ":")).strip()
        return PreparedBody(payload, content_type or JSON_CONTENT_TYPE, byte_length(payload))

    if isinstance(body, str):
        return PreparedBody(body, sniff_text_content_type(body), byte_length(body))

    if isinstance(body, (bytes, bytearray, memoryview)):
        payload = bytes(body)
        return PreparedBody(payload, content_type or BINARY_CONTENT_TYPE, len(payload))

    logger.warning(
        "unsupported_body_type",
        body_type=type(body).__name__,
        hint="Provide a string, mapping, list or bytes body",
    )
    return PreparedBody(payload=None, transmittable=False)
