"""Resource: a client carrying shared defaults for one remote service."""

import random
import re
import threading
import time
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin, urlsplit

import pydantic
import structlog

from src.features.address.address import Address
from src.features.core.constants import (
    DEFAULT_ACCESS_TOKEN_TYPE,
    CacheMode,
    CorsMode,
    CredentialsMode,
    RedirectMode,
    ReferrerPolicy,
)
from src.features.core.errors import ConfigurationError, ValidationError
from src.features.core.models import RuntimeCapabilities
from src.features.core.validation import validate_choice
from src.features.http.crypto import CryptoProvider
from src.features.http.request import Request
from src.features.http.store import HeaderStore
from src.features.resource.client import HttpClient
from src.features.resource.config import CallConfig, ResourceConfig
from src.features.resource.scheduler import EventLoopScheduler, Scheduler, TimerHandle
from src.features.transport.base import Transport
from src.settings.app import ClientSettings


if TYPE_CHECKING:
    from src.features.resource.route import RouteView


logger = structlog.get_logger()

_REPEATED_SLASHES = re.compile(r"/{2,}|\\+")
_AUTH_HEADERS = frozenset({"authorization", "proxy-authorization"})


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def unique_token() -> str:
    """Time-plus-random token used for cache busting and unique agents."""
    return f"{int(time.time() * 1000)}{random.randrange(10**12):012d}"


def expiration_time(expiration: datetime | timedelta | float | None) -> datetime | None:
    """Convert an expiration argument into an aware UTC datetime.

    Args:
        expiration: A datetime (naive values are taken as UTC), a
            timedelta from now, or seconds from now.

    Returns:
        Expiry time, or None when no expiration was given.
    """
    if expiration is None:
        return None
    if isinstance(expiration, datetime):
        if expiration.tzinfo is None:
            return expiration.replace(tzinfo=UTC)
        return expiration.astimezone(UTC)
    if isinstance(expiration, timedelta):
        return datetime.now(UTC) + expiration
    if isinstance(expiration, bool) or not isinstance(expiration, (int, float)):
        raise ValidationError("expiration", expiration, "a datetime, timedelta or seconds")
    return datetime.now(UTC) + timedelta(seconds=expiration)


class Resource(HttpClient):
    """HTTP client bound to one remote service.

    A resource holds a base URL and defaults shared by every request it
    sends: headers, query parameters, credentials, fetch modes and crypto
    keys. Before each send, :meth:`preflight` layers those defaults under
    the call's own configuration. Shared headers and query parameters are
    copied into the request, so a resource can be changed while requests
    are in flight.

    Events:
        token.update, token.expired, token.expiration.pending, plus every
        header, credential and URL event of the shared defaults.
    """

    def __init__(
        self,
        config: ResourceConfig | str | None = None,
        *,
        transport: Transport | None = None,
        crypto: CryptoProvider | None = None,
        capabilities: RuntimeCapabilities | None = None,
        scheduler: Scheduler | None = None,
        settings: ClientSettings | None = None,
        **options: Any,
    ) -> None:
        """Initialize the resource.

        Args:
            config: Resource configuration, or just a base URL.
            transport: Transport executing requests.
            crypto: Crypto provider for encrypted or signed requests.
            capabilities: Runtime description.
            scheduler: Runs access-token timers. Defaults to the running
                event loop, or daemon threads outside one.
            settings: Environment settings.
            **options: ``ResourceConfig`` fields, overriding ``config``.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        super().__init__(
            transport=transport, crypto=crypto, capabilities=capabilities, settings=settings
        )
        config = self._load_config(config, options)
        self._log = logger.bind(component="resource")
        self._scheduler = scheduler or EventLoopScheduler()
        # Held while timer callbacks or preflight touch the shared template
        self._template_lock = threading.RLock()
        self._token_timer: TimerHandle | None = None
        self._renewal_timer: TimerHandle | None = None
        self._token_expiration: datetime | None = None
        self._origin: Resource | None = None

        self._https_only = config.https_only
        self._base = self._make_base(config.base_url)

        self._password = config.password
        self._access_token = config.access_token
        self._access_token_type = config.access_token_type
        self._template = Request(
            url=self._base,
            headers=config.headers,
            query=config.query,
            username=config.username,
            password=config.password,
            access_token=config.access_token,
            access_token_type=config.access_token_type,
            capabilities=self._capabilities,
        )
        self._template.relay(self)

        self.nocache = config.nocache
        self.unique = config.unique
        self.user_agent = config.user_agent
        self.unique_agent = config.unique_agent
        self.token_renewal_notice = config.token_renewal_notice

        self._cache: CacheMode | None = None
        self._mode: CorsMode | None = None
        self._credentials: CredentialsMode | None = None
        self._redirect: RedirectMode | None = None
        self._referrer_policy: ReferrerPolicy | None = None
        self._timeout: float | None = None
        self.cache = config.cache
        self.mode = config.mode
        self.credentials = config.credentials
        self.redirect = config.redirect
        self.referrer_policy = config.referrer_policy
        self.referrer = config.referrer
        self.timeout = config.timeout

        self.encryption_key = config.encryption_key
        self.decryption_key = config.decryption_key
        self.signing_key = config.signing_key
        self.verification_key = config.verification_key
        self.encrypt_all = config.encrypt_all
        self.decrypt_all = config.decrypt_all
        self.sign_all = config.sign_all
        self.verify_all = config.verify_all

        self.on("token.expired", self._on_token_expired)

    @staticmethod
    def _load_config(
        config: ResourceConfig | str | None, options: dict[str, Any]
    ) -> ResourceConfig:
        if isinstance(config, str):
            options = {"base_url": config, **options}
        elif isinstance(config, ResourceConfig):
            options = {**config.model_dump(), **options}
        elif config is not None:
            raise ConfigurationError(
                f"Resource configuration must be a ResourceConfig or URL, got {type(config).__name__}"
            )
        try:
            return ResourceConfig(**options)
        except pydantic.ValidationError as e:
            fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
            raise ConfigurationError(f"Invalid resource configuration: {fields}") from e

    def _make_base(self, url: str | None) -> Address:
        base = Address(url or self._capabilities.origin, capabilities=self._capabilities)
        if self._https_only:
            base.protocol = "https"
        return base

    # Base URL

    @property
    def base_url(self) -> str:
        """Base URL that relative request URLs resolve against."""
        return self._base.href

    @base_url.setter
    def base_url(self, value: str | None) -> None:
        old = self._base.href
        self._base = self._make_base(value)
        query = dict(self._template.query)
        self._template.url = self._base
        self._template.query = query
        if old != self._base.href:
            self._log.warning("base_url_changed", old=old, new=self._base.href)

    @property
    def https_only(self) -> bool:
        """Force the https protocol on every request."""
        return self._https_only

    @https_only.setter
    def https_only(self, value: bool) -> None:
        self._https_only = bool(value)
        if self._https_only:
            self._base.protocol = "https"

    def prepare_url(self, uri: str | None = None) -> str:
        """Resolve a request URL against the base URL.

        Relative URLs are placed under the base path. URLs starting with
        ``..`` are resolved against the base path without prefixing it, and
        absolute URLs pass through unchanged.

        Args:
            uri: Request URL.

        Returns:
            Fully qualified URL.
        """
        raw = (uri or "").strip()
        parts = urlsplit(raw)

        if parts.netloc:
            address = Address(raw, capabilities=self._capabilities)
        elif raw.startswith(".."):
            directory = self._base.path if self._base.path.endswith("/") else f"{self._base.path}/"
            address = Address(
                urljoin(f"{self._base.origin}{directory}", raw), capabilities=self._capabilities
            )
        else:
            address = self._base.clone()
            if parts.path:
                address.path = _REPEATED_SLASHES.sub(
                    "/", f"{self._base.path.rstrip('/')}/{parts.path.lstrip('/')}"
                )
            if raw:
                address.querystring = parts.query
                address.hash = parts.fragment

        if self._https_only:
            address.protocol = "https"
        return address.href

    # Fetch modes

    @property
    def cache(self) -> CacheMode | None:
        """Default cache mode, or None for the request default."""
        return self._cache

    @cache.setter
    def cache(self, value: CacheMode | str | None) -> None:
        self._cache = None if _blank(value) else validate_choice("cache", value, CacheMode)

    @property
    def mode(self) -> CorsMode | None:
        """Default CORS mode."""
        return self._mode

    @mode.setter
    def mode(self, value: CorsMode | str | None) -> None:
        self._mode = None if _blank(value) else validate_choice("mode", value, CorsMode)

    @property
    def credentials(self) -> CredentialsMode | None:
        """Default credentials mode."""
        return self._credentials

    @credentials.setter
    def credentials(self, value: CredentialsMode | str | None) -> None:
        self._credentials = (
            None if _blank(value) else validate_choice("credentials", value, CredentialsMode)
        )

    @property
    def redirect(self) -> RedirectMode | None:
        """Default redirect mode."""
        return self._redirect

    @redirect.setter
    def redirect(self, value: RedirectMode | str | None) -> None:
        self._redirect = None if _blank(value) else validate_choice("redirect", value, RedirectMode)

    @property
    def referrer_policy(self) -> ReferrerPolicy | None:
        """Default referrer policy."""
        return self._referrer_policy

    @referrer_policy.setter
    def referrer_policy(self, value: ReferrerPolicy | str | None) -> None:
        self._referrer_policy = (
            None if _blank(value) else validate_choice("referrer_policy", value, ReferrerPolicy)
        )

    @property
    def timeout(self) -> float | None:
        """Default timeout in seconds, or None for the settings default."""
        return self._timeout

    @timeout.setter
    def timeout(self, value: float | None) -> None:
        if value is None:
            self._timeout = None
            return
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValidationError("timeout", value, "a positive number of seconds")
        self._timeout = float(value)

    # Shared headers and query parameters

    @property
    def headers(self) -> HeaderStore:
        """Headers sent with every request."""
        return self._template.headers

    @headers.setter
    def headers(self, value: Mapping[str, Any] | None) -> None:
        self._template.headers = value

    def set_header(self, name: str | Mapping[str, Any], value: Any = None) -> None:
        """Set one shared header, or several from a mapping."""
        if isinstance(name, Mapping):
            for key, item in name.items():
                self._template.set_header(key, item)
            return
        self._template.set_header(name, value)

    def remove_header(self, *names: str) -> None:
        """Remove shared headers."""
        for name in names:
            self._template.remove_header(name)

    def clear_headers(self) -> None:
        """Remove every shared header except credential-derived ones."""
        self._template.clear_headers()

    @property
    def query(self) -> Mapping[str, Any]:
        """Read-only snapshot of the shared query parameters."""
        return self._template.query

    @query.setter
    def query(self, value: Mapping[str, Any]) -> None:
        self._template.query = value

    def set_parameter(self, name: str | Mapping[str, Any], value: Any = None) -> None:
        """Set one shared query parameter, or several from a mapping."""
        if isinstance(name, Mapping):
            for key, item in name.items():
                self._template.set_query_parameter(key, item)
            return
        self._template.set_query_parameter(name, value)

    def remove_parameter(self, *names: str) -> None:
        """Remove shared query parameters."""
        for name in names:
            self._template.remove_query_parameter(name)

    def clear_parameters(self) -> None:
        """Remove every shared query parameter."""
        self._template.clear_query_parameters()

    # Credentials

    @property
    def username(self) -> str | None:
        """Shared basic-auth username."""
        return self._template.username

    @username.setter
    def username(self, value: str | None) -> None:
        self._template.username = value

    @property
    def password(self) -> None:
        """Write-only shared basic-auth password."""
        return None

    @password.setter
    def password(self, value: str | None) -> None:
        self._password = value or None
        self._template.password = value

    @property
    def access_token(self) -> None:
        """Write-only shared access token."""
        return None

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        self.set_access_token(value, self._access_token_type)

    @property
    def access_token_type(self) -> str:
        """Scheme of the shared access token."""
        return self._access_token_type

    @property
    def token_expiration(self) -> datetime | None:
        """When the shared access token expires, if known."""
        return self._token_expiration

    def set_access_token(
        self,
        token: str | None = None,
        token_type: str = DEFAULT_ACCESS_TOKEN_TYPE,
        expiration: datetime | timedelta | float | None = None,
    ) -> None:
        """Set the access token sent with every request.

        With an expiration in the future, ``token.expired`` is scheduled
        for the expiry time and, when ``token_renewal_notice`` is
        positive, ``token.expiration.pending`` that many seconds earlier.
        An expiration in the past fires ``token.expired`` immediately.

        Args:
            token: Access token, or None to remove it.
            token_type: Token scheme.
            expiration: Expiry as a datetime, a timedelta or seconds from now.
        """
        expires_at = expiration_time(expiration)
        token = (token or "").strip() or None
        token_type = (token_type or "").strip() or DEFAULT_ACCESS_TOKEN_TYPE
        if (
            token == self._access_token
            and token_type == self._access_token_type
            and expires_at == self._token_expiration
        ):
            return

        self._cancel_token_timers()
        with self._template_lock:
            self._access_token = token
            self._access_token_type = token_type
            self._token_expiration = expires_at
            self._template.access_token_type = token_type
            self._template.access_token = token

        if expires_at is None:
            self.emit("token.update", {"expires": None})
            return

        delay = (expires_at - datetime.now(UTC)).total_seconds()
        if delay <= 0:
            self.emit("token.expired", {"manually": False})
            return

        self.emit("token.update", {"expires": expires_at})
        self._token_timer = self._scheduler.call_later(delay, self._expire_token)
        if self.token_renewal_notice > 0:
            self._renewal_timer = self._scheduler.call_later(
                max(0.0, delay - self.token_renewal_notice), self._announce_expiration
            )

    def _expire_token(self) -> None:
        self.emit("token.expired", {"manually": False})

    def _announce_expiration(self) -> None:
        self.emit("token.expiration.pending", {"expires": self._token_expiration})

    def _cancel_token_timers(self) -> None:
        for timer in (self._token_timer, self._renewal_timer):
            if timer is not None:
                timer.cancel()
        self._token_timer = None
        self._renewal_timer = None

    def _on_token_expired(self, name: str, payload: Any) -> None:
        self._cancel_token_timers()
        with self._template_lock:
            self._access_token = None
            self._token_expiration = None
            self._template.access_token = None
            self._template.remove_header("authorization")
        self._log.warning("access_token_expired", base_url=self._base.href)

    def close(self) -> None:
        """Cancel pending access-token timers and detach from the origin."""
        self._cancel_token_timers()
        if self._origin is not None:
            self._origin.unrelay(self)
            self._origin = None

    # Preflight

    def _resolve_crypto_key(
        self, action: str, call_key: Any, resource_key: Any, flag: bool | None
    ) -> Any:
        if flag is False:
            return None
        key = call_key if call_key is not None else resource_key
        if flag and key is None:
            raise ConfigurationError(f"Cannot {action} without a configured key")
        return key

    def _pick(self, config: CallConfig, name: str) -> Any:
        value = getattr(config, name)
        return getattr(self, name) if value is None else value

    def preflight(self, request: Request, config: CallConfig) -> None:
        """Layer the resource defaults under a call's configuration.

        Call-level values win over resource defaults, which win over
        request defaults. Shared headers and query parameters are copied
        into the request's own stores.

        Args:
            request: Request about to be sent.
            config: The call's configuration.

        Raises:
            ConfigurationError: If a crypto flag is on but no key resolves.
        """
        request.encryption_key = self._resolve_crypto_key(
            "encrypt the request body",
            config.encryption_key,
            self.encryption_key,
            self._pick_flag(config.encrypt, self.encrypt_all),
        )
        request.decryption_key = self._resolve_crypto_key(
            "decrypt the response body",
            config.decryption_key,
            self.decryption_key if self.decryption_key is not None else self.encryption_key,
            self._pick_flag(config.decrypt, self.decrypt_all),
        )
        request.signing_key = self._resolve_crypto_key(
            "sign the request body",
            config.signing_key,
            self.signing_key,
            self._pick_flag(config.sign, self.sign_all),
        )
        request.verification_key = self._resolve_crypto_key(
            "verify the response body",
            config.verification_key,
            self.verification_key,
            self._pick_flag(config.verify, self.verify_all),
        )

        request.url = self.prepare_url(request.configured_url)
        for key, value in config.query.items():
            request.set_query_parameter(key, value)
        with self._template_lock:
            request.assign(self._template, override=False)

        for name in ("cache", "mode", "credentials", "redirect", "referrer", "referrer_policy", "timeout"):
            value = self._pick(config, name)
            if value is not None:
                setattr(request, name, value)
        if self.nocache and config.cache is None:
            request.cache = CacheMode.NO_CACHE

        if self.unique:
            request.set_query_parameter(f"nocache{unique_token()}", "")

        self._apply_user_agent(request, config)

    @staticmethod
    def _pick_flag(call_flag: bool | None, resource_flag: bool | None) -> bool | None:
        return resource_flag if call_flag is None else call_flag

    def _apply_user_agent(self, request: Request, config: CallConfig) -> None:
        if any(name.lower() == "user-agent" for name in config.headers):
            return
        agent = self.user_agent or self._settings.user_agent or ""
        if self.unique_agent:
            agent = f"{agent} ID#{unique_token()}"
        agent = agent.strip()
        if not agent:
            return
        if self._capabilities.is_browser:
            request.remove_header("user-agent")
            self._log.warning(
                "user_agent_blocked",
                user_agent=agent,
                hint="Browser-like runtimes refuse custom User-Agent headers",
            )
            return
        request.set_header("user-agent", agent)

    # Derived resources

    def route(self, path: str) -> "RouteView":
        """View of this resource that prefixes every request path.

        The view shares all state with this resource.

        Args:
            path: Sub-path such as ``/v1``.

        Returns:
            Route view.
        """
        from src.features.resource.route import RouteView

        return RouteView(self, path)

    def clone(self, **overrides: Any) -> "Resource":
        """Independent resource seeded from this one's current settings.

        Every future event of this resource is relayed to the clone as
        ``origin.<event>``.

        Args:
            **overrides: ``ResourceConfig`` fields replacing current values.

        Returns:
            New resource sharing this resource's transport, crypto,
            capabilities and scheduler.
        """
        values: dict[str, Any] = {
            "base_url": self._base.href,
            "headers": {
                name: value
                for name, value in self._template.headers.entries()
                if name not in _AUTH_HEADERS
            },
            "query": dict(self._template.query),
            "username": self.username,
            "password": self._password,
            "access_token": self._access_token,
            "access_token_type": self._access_token_type,
            "token_renewal_notice": self.token_renewal_notice,
            "https_only": self._https_only,
            "nocache": self.nocache,
            "unique": self.unique,
            "user_agent": self.user_agent,
            "unique_agent": self.unique_agent,
            "cache": self._cache,
            "mode": self._mode,
            "credentials": self._credentials,
            "redirect": self._redirect,
            "referrer": self.referrer,
            "referrer_policy": self._referrer_policy,
            "timeout": self._timeout,
            "encryption_key": self.encryption_key,
            "decryption_key": self.decryption_key,
            "signing_key": self.signing_key,
            "verification_key": self.verification_key,
            "encrypt_all": self.encrypt_all,
            "decrypt_all": self.decrypt_all,
            "sign_all": self.sign_all,
            "verify_all": self.verify_all,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})

        clone = Resource(
            transport=self._transport,
            crypto=self._crypto,
            capabilities=self._capabilities,
            scheduler=self._scheduler,
            settings=self._settings,
            **{key: _plain(value) for key, value in values.items()},
        )
        self.relay(clone, prefix="origin")
        clone._origin = self
        return clone

    def __repr__(self) -> str:
        return f"Resource({self._base.href!r})"
