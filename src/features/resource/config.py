"""Configuration models for clients and resources."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.features.core.constants import DEFAULT_ACCESS_TOKEN_TYPE


class CallConfig(BaseModel):
    """Per-call configuration for a client verb.

    Every field is optional; unset fields fall back to resource defaults
    and then to request defaults.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str | None = None
    method: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    cache: str | None = None
    mode: str | None = None
    credentials: str | None = None
    redirect: str | None = None
    referrer: str | None = None
    referrer_policy: str | None = None
    sri: str | None = None
    timeout: float | None = Field(default=None, gt=0)
    enforce_method_safety: bool | None = None

    username: str | None = None
    password: str | None = None
    access_token: str | None = None
    access_token_type: str | None = None
    proxy_username: str | None = None
    proxy_password: str | None = None
    proxy_access_token: str | None = None
    proxy_access_token_type: str | None = None

    encrypt: bool | None = None
    decrypt: bool | None = None
    sign: bool | None = None
    verify: bool | None = None
    encryption_key: Any = None
    decryption_key: Any = None
    signing_key: Any = None
    verification_key: Any = None

    @field_validator("headers", mode="before")
    @classmethod
    def stringify_headers(cls, v: Any) -> Any:
        """Accept non-string header values."""
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v

    def request_options(self) -> dict[str, Any]:
        """Keyword arguments for constructing a Request from this call.

        Returns:
            Request constructor arguments for every field that was set,
            excluding the crypto auto-flags.
        """
        options = self.model_dump(
            exclude={"encrypt", "decrypt", "sign", "verify"},
            exclude_none=True,
        )
        if not options.get("headers"):
            options.pop("headers", None)
        if not options.get("query"):
            options.pop("query", None)
        options["body"] = self.body
        return options


class ResourceConfig(BaseModel):
    """Shared defaults applied to every request made through a Resource."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: str | None = Field(default=None, description="Base URL; defaults to the current origin")
    headers: dict[str, str] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)

    username: str | None = None
    password: str | None = None
    access_token: str | None = None
    access_token_type: str = DEFAULT_ACCESS_TOKEN_TYPE
    token_renewal_notice: float = Field(
        default=0.0, ge=0, description="Seconds before expiry to emit token.expiration.pending"
    )

    https_only: bool = False
    nocache: bool = False
    unique: bool = False
    user_agent: str | None = None
    unique_agent: bool = False

    cache: str | None = None
    mode: str | None = None
    credentials: str | None = None
    redirect: str | None = None
    referrer: str | None = None
    referrer_policy: str | None = None
    timeout: float | None = Field(default=None, gt=0)

    encryption_key: Any = None
    decryption_key: Any = None
    signing_key: Any = None
    verification_key: Any = None
    encrypt_all: bool | None = None
    decrypt_all: bool | None = None
    sign_all: bool | None = None
    verify_all: bool | None = None

    @field_validator("headers", mode="before")
    @classmethod
    def stringify_headers(cls, v: Any) -> Any:
        """Accept non-string header values."""
        if isinstance(v, dict):
            return {str(key): str(value) for key, value in v.items()}
        return v

    @field_validator("base_url")
    @classmethod
    def strip_base_url(cls, v: str | None) -> str | None:
        """Treat a blank base URL as unset."""
        if v is None:
            return None
        return v.strip() or None
