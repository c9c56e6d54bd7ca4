"""Transport-facing data models shared by the engine and its transports."""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.features.core.constants import (
    DEFAULT_HOSTNAME,
    DEFAULT_TIMEOUT_SECONDS,
    CacheMode,
    CredentialsMode,
    CorsMode,
    RedirectMode,
    ReferrerPolicy,
)


class AbortSignal:
    """Cooperative cancellation flag shared between a request and its transport."""

    def __init__(self) -> None:
        """Initialize an unset signal."""
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def aborted(self) -> bool:
        """Whether abort has been requested."""
        return self._event.is_set()

    def abort(self, reason: str = "aborted") -> None:
        """Request cancellation.

        Args:
            reason: Description recorded on the signal.
        """
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        """Block until abort is requested."""
        await self._event.wait()


class RuntimeCapabilities(BaseModel):
    """Explicit description of the host runtime.

    Replaces ambient runtime detection: every behavior that differs
    between browser-like and server runtimes reads these flags.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    is_browser: bool = Field(
        default=False,
        description="Browser-like runtime (forbids custom User-Agent headers)",
    )
    supports_default_decryption: bool = Field(
        default=True,
        description="Fall back to the encryption key when no decryption key is set",
    )
    protocol: str = Field(default="http", description="Protocol of the current origin")
    hostname: str = Field(default=DEFAULT_HOSTNAME, description="Current hostname")

    @field_validator("protocol", "hostname")
    @classmethod
    def normalize_case(cls, v: str) -> str:
        """Lower-case protocol and hostname."""
        v = v.strip().lower().rstrip(":")
        if not v:
            raise ValueError("must not be blank")
        return v

    @property
    def origin(self) -> str:
        """Origin used to resolve relative and blank URLs."""
        return f"{self.protocol}://{self.hostname}"


class RequestDescriptor(BaseModel):
    """Transport-ready description of a single request."""

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    method: str
    cache: CacheMode = CacheMode.NO_STORE
    mode: CorsMode | None = None
    redirect: RedirectMode = RedirectMode.FOLLOW
    referrer: str | None = None
    referrer_policy: ReferrerPolicy | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    signal: AbortSignal | None = None
    credentials: CredentialsMode | None = None
    integrity: str | None = None
    body: str | bytes | None = None


_UNPARSED = object()


@dataclass
class Response:
    """Normalized response returned by every transport.

    Attributes:
        status: HTTP status code.
        status_text: Reason phrase.
        headers: Response headers with lower-case names.
        url: Final URL after redirects.
        redirected: Whether one or more redirects were followed.
        body: Response body as text or bytes.
    """

    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""
    redirected: bool = False
    body: str | bytes = ""
    _json: Any = field(default=_UNPARSED, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.headers = {key.lower(): value for key, value in self.headers.items()}

    def __setattr__(self, name: str, value: Any) -> None:
        # Replacing the body invalidates the cached JSON view
        if name == "body":
            object.__setattr__(self, "_json", _UNPARSED)
        object.__setattr__(self, name, value)

    @property
    def ok(self) -> bool:
        """Whether the status is in the 2xx range."""
        return 200 <= self.status < 300

    @property
    def response_text(self) -> str:
        """Body decoded as UTF-8 text."""
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return self.body

    @property
    def json(self) -> Any:
        """Body parsed as JSON, or None when it is not valid JSON.

        Parsed lazily on first access and re-parsed after the body is
        replaced (for example by decryption).
        """
        if self._json is _UNPARSED:
            try:
                parsed = json.loads(self.response_text)
            except ValueError:
                parsed = None
            object.__setattr__(self, "_json", parsed)
        return self._json

    def header(self, name: str) -> str | None:
        """Look up a response header case-insensitively."""
        return self.headers.get(name.lower())
