"""Request engine: composes, sends and post-processes a single HTTP request."""

import asyncio
import time
import uuid
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import structlog

from src.features.address.address import Address
from src.features.core.constants import (
    DEFAULT_ACCESS_TOKEN_TYPE,
    DEFAULT_TIMEOUT_SECONDS,
    HTTP_METHODS,
    IDEMPOTENT_METHODS,
    AuthType,
    CacheMode,
    CorsMode,
    CredentialsMode,
    RedirectMode,
    ReferrerPolicy,
)
from src.features.core.errors import (
    ConfigurationError,
    CryptoError,
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
from src.features.events.emitter import EventEmitter
from src.features.http.body import BINARY_CONTENT_TYPE, PreparedBody, byte_length, prepare_body
from src.features.http.callbacks import Callback, deliver
from src.features.http.credential import Credential
from src.features.http.crypto import CryptoProvider, resolve
from src.features.http.metrics import RequestMetrics
from src.features.http.redact import redact_headers, redact_url_credentials
from src.features.http.state_machine import RequestState, RequestStateMachine
from src.features.http.store import HeaderStore
from src.features.transport.base import Transport


logger = structlog.get_logger()

DEFAULT_REFERRER_POLICY = ReferrerPolicy.NO_REFERRER_WHEN_DOWNGRADE


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class Request(EventEmitter):
    """A single HTTP request and its send lifecycle.

    The request owns its URL, headers, body, credentials and fetch modes.
    Enumerated settings are validated on assignment. The body's content
    type is inferred whenever the body changes, and Authorization headers
    follow the credentials automatically.

    A request is sent at most once. ``send()`` runs the optional crypto
    steps around one transport call and returns the response; the same
    outcome is reported to an optional callback.
    """

    def __init__(
        self,
        url: str | Address | None = None,
        method: str = "GET",
        headers: Mapping[str, Any] | None = None,
        body: Any = None,
        query: Mapping[str, Any] | None = None,
        cache: CacheMode | str | None = None,
        mode: CorsMode | str | None = None,
        credentials: CredentialsMode | str | None = None,
        redirect: RedirectMode | str | None = RedirectMode.FOLLOW,
        referrer: str | None = None,
        referrer_policy: ReferrerPolicy | str | None = DEFAULT_REFERRER_POLICY,
        sri: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        enforce_method_safety: bool = True,
        username: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
        access_token_type: str = DEFAULT_ACCESS_TOKEN_TYPE,
        proxy_username: str | None = None,
        proxy_password: str | None = None,
        proxy_access_token: str | None = None,
        proxy_access_token_type: str = DEFAULT_ACCESS_TOKEN_TYPE,
        signing_key: Any = None,
        verification_key: Any = None,
        encryption_key: Any = None,
        decryption_key: Any = None,
        transport: Transport | None = None,
        crypto: CryptoProvider | None = None,
        capabilities: RuntimeCapabilities | None = None,
    ) -> None:
        """Initialize the request.

        Args:
            url: Absolute or relative URL. Blank URLs use the current origin.
            method: HTTP method, normalized to upper case.
            headers: Initial headers.
            body: Text, mapping, list or bytes body.
            query: Query parameters added to the URL.
            cache: Cache mode. Defaults to ``no-store`` outside browsers
                and ``default`` in browser-like runtimes.
            mode: CORS mode.
            credentials: Credentials mode.
            redirect: Redirect mode.
            referrer: Referrer URL.
            referrer_policy: Referrer policy.
            sri: Subresource integrity string.
            timeout: Seconds to wait for the transport.
            enforce_method_safety: Never transmit a body with OPTIONS, HEAD
                or GET. When disabled, those methods send their body.
            username: Basic-auth username.
            password: Basic-auth password.
            access_token: Access token (overrides username/password).
            access_token_type: Access token scheme.
            proxy_username: Proxy basic-auth username.
            proxy_password: Proxy basic-auth password.
            proxy_access_token: Proxy access token.
            proxy_access_token_type: Proxy access token scheme.
            signing_key: Key used to sign the request body.
            verification_key: Key used to verify response signatures.
            encryption_key: Key used to encrypt the request body.
            decryption_key: Key used to decrypt the response body.
            transport: Transport executing the request.
            crypto: Crypto provider for the key-based steps.
            capabilities: Runtime description.
        """
        super().__init__()
        self.request_id = uuid.uuid4().hex[:12]
        self._log = logger.bind(component="request", request_id=self.request_id)
        self._capabilities = capabilities or RuntimeCapabilities()
        self._transport = transport
        self._crypto = crypto
        self._state_machine = RequestStateMachine(self.request_id)
        self._signal = AbortSignal()

        self._headers = HeaderStore(headers)
        self._inferred_content_type: str | None = None
        self._body: Any = None
        self._prepared = PreparedBody(payload=None)

        self._auth = Credential()
        self._proxy_auth = Credential()
        self._attach_credentials(
            Credential(username, password, access_token, access_token_type),
            Credential(
                proxy_username, proxy_password, proxy_access_token, proxy_access_token_type
            ),
        )

        self._configured_url = url.href if isinstance(url, Address) else url
        self._address = Address(capabilities=self._capabilities)
        self.url = url
        for key, value in (query or {}).items():
            self.set_query_parameter(key, value)

        self._method = "GET"
        self.method = method

        self._mode: CorsMode | None = None
        self._cache: CacheMode = self._default_cache()
        self._credentials: CredentialsMode | None = None
        self._redirect = RedirectMode.FOLLOW
        self._referrer_policy: ReferrerPolicy | None = None
        self.mode = mode
        self.cache = cache
        self.credentials = credentials
        self.redirect = redirect
        self.referrer_policy = referrer_policy
        self.referrer = referrer or None
        self.sri = sri or None
        self._timeout = DEFAULT_TIMEOUT_SECONDS
        self.timeout = timeout
        self.enforce_method_safety = enforce_method_safety

        self.signing_key = signing_key
        self.verification_key = verification_key
        self.encryption_key = encryption_key
        self.decryption_key = decryption_key

        self.body = body

    # Collaborators

    @property
    def transport(self) -> Transport | None:
        """Transport executing the request."""
        return self._transport

    @transport.setter
    def transport(self, value: Transport | None) -> None:
        self._transport = value

    @property
    def crypto(self) -> CryptoProvider | None:
        """Crypto provider used by the key-based steps."""
        return self._crypto

    @crypto.setter
    def crypto(self, value: CryptoProvider | None) -> None:
        self._crypto = value

    @property
    def capabilities(self) -> RuntimeCapabilities:
        """Runtime description."""
        return self._capabilities

    @property
    def state(self) -> RequestState:
        """Lifecycle state."""
        return self._state_machine.state

    # Credentials

    def _attach_credentials(self, auth: Credential, proxy_auth: Credential) -> None:
        self._auth.off("update.header")
        self._proxy_auth.off("update.header")
        self._auth = auth
        self._proxy_auth = proxy_auth
        self._auth.on("update.header", self._on_credential_change)
        self._proxy_auth.on("update.header", self._on_credential_change)
        self._apply_authorization_headers()

    def _on_credential_change(self, name: str, payload: Any) -> None:
        self._apply_authorization_headers()

    def _apply_authorization_headers(self) -> None:
        for header, credential in (
            ("authorization", self._auth),
            ("proxy-authorization", self._proxy_auth),
        ):
            value = credential.header
            if value:
                self._headers.set(header, value)
            else:
                self._headers.delete(header)

    @property
    def username(self) -> str | None:
        """Basic-auth username."""
        return self._auth.username

    @username.setter
    def username(self, value: str | None) -> None:
        self._auth.username = value

    @property
    def password(self) -> None:
        """Write-only basic-auth password."""
        return None

    @password.setter
    def password(self, value: str | None) -> None:
        self._auth.password = value

    @property
    def access_token(self) -> None:
        """Write-only access token. Setting it clears username and password."""
        return None

    @access_token.setter
    def access_token(self, value: str | None) -> None:
        self._auth.access_token = value

    @property
    def access_token_type(self) -> str:
        """Access token scheme."""
        return self._auth.access_token_type

    @access_token_type.setter
    def access_token_type(self, value: str | None) -> None:
        self._auth.access_token_type = value

    @property
    def proxy_username(self) -> str | None:
        """Proxy basic-auth username."""
        return self._proxy_auth.username

    @proxy_username.setter
    def proxy_username(self, value: str | None) -> None:
        self._proxy_auth.username = value

    @property
    def proxy_password(self) -> None:
        """Write-only proxy password."""
        return None

    @proxy_password.setter
    def proxy_password(self, value: str | None) -> None:
        self._proxy_auth.password = value

    @property
    def proxy_access_token(self) -> None:
        """Write-only proxy access token."""
        return None

    @proxy_access_token.setter
    def proxy_access_token(self, value: str | None) -> None:
        self._proxy_auth.access_token = value

    @property
    def proxy_access_token_type(self) -> str:
        """Proxy access token scheme."""
        return self._proxy_auth.access_token_type

    @proxy_access_token_type.setter
    def proxy_access_token_type(self, value: str | None) -> None:
        self._proxy_auth.access_token_type = value

    @property
    def auth_type(self) -> AuthType:
        """Kind of credential configured for the origin."""
        return self._auth.auth_type

    @property
    def proxy_auth_type(self) -> AuthType:
        """Kind of credential configured for the proxy."""
        return self._proxy_auth.auth_type

    # URL

    @property
    def configured_url(self) -> str | None:
        """URL exactly as given to the constructor."""
        return self._configured_url

    @property
    def address(self) -> Address:
        """Live URL object."""
        return self._address

    @property
    def url(self) -> str:
        """Full URL without credentials."""
        return self._address.to_string()

    @url.setter
    def url(self, value: str | Address | None) -> None:
        if isinstance(value, Address):
            address = value.clone()
        else:
            if _blank(value):
                self._log.warning(
                    "blank_url_defaulted",
                    origin=self._capabilities.origin,
                    hint="A blank URL was given; using the current origin",
                )
            address = Address(value, capabilities=self._capabilities)

        old = self._address.href
        self._address = address
        url_username, url_password = address.userinfo()
        if url_username:
            self._auth.username = url_username
        if url_password:
            self._auth.password = url_password
        if old != address.href:
            self.emit("update.url", {"old": old, "new": address.href})

    href = url

    @property
    def protocol(self) -> str:
        """URL protocol."""
        return self._address.protocol

    @property
    def hostname(self) -> str:
        """URL hostname."""
        return self._address.hostname

    @property
    def host(self) -> str:
        """``hostname:port``."""
        return self._address.host

    @property
    def port(self) -> int | None:
        """URL port."""
        return self._address.port

    @property
    def path(self) -> str:
        """URL path."""
        return self._address.path

    @property
    def querystring(self) -> str:
        """URL query string."""
        return self._address.querystring

    @property
    def hash(self) -> str:
        """URL fragment, or an empty string."""
        return self._address.hash or ""

    @property
    def cross_origin_request(self) -> bool:
        """Whether the URL is outside the current origin."""
        return not self._address.is_same_origin(self._capabilities.origin)

    def is_cross_origin(self, url: str | Address) -> bool:
        """Whether a URL is on a different host than this request."""
        return not self._address.is_same_origin(url)

    # Query parameters

    @property
    def query(self) -> Mapping[str, Any]:
        """Read-only snapshot of the query parameters."""
        return MappingProxyType(self._address.query.to_dict())

    @query.setter
    def query(self, value: Mapping[str, Any]) -> None:
        if not isinstance(value, Mapping):
            raise ValidationError("query", value, "a mapping of parameters")
        self.clear_query_parameters()
        for key, item in value.items():
            self.set_query_parameter(key, item)

    def set_query_parameter(self, key: str, value: Any, overwrite: bool = True) -> None:
        """Set a query parameter.

        Args:
            key: Parameter name.
            value: Parameter value.
            overwrite: Replace an existing value.
        """
        if overwrite or key not in self._address.query:
            self._address.query[key] = value

    def remove_query_parameter(self, key: str) -> None:
        """Remove a query parameter if present."""
        if key in self._address.query:
            del self._address.query[key]

    def clear_query_parameters(self) -> None:
        """Remove every query parameter."""
        self._address.query.clear()

    @property
    def query_parameter_count(self) -> int:
        """Number of query parameters."""
        return self._address.query_parameter_count

    @property
    def has_query_parameters(self) -> bool:
        """Whether any query parameter is set."""
        return self._address.has_query_parameters

    # Headers

    @property
    def headers(self) -> HeaderStore:
        """Request headers."""
        return self._headers

    @headers.setter
    def headers(self, value: Mapping[str, Any] | HeaderStore | None) -> None:
        if isinstance(value, HeaderStore):
            value = value.to_dict()
        self._headers = HeaderStore(value or {})
        self._inferred_content_type = None
        self._apply_authorization_headers()
        self._prepare_body()

    def get_header(self, name: str) -> str | None:
        """Header value, or None."""
        return self._headers.get(name)

    def set_header(self, name: str, value: Any, overwrite: bool = True) -> None:
        """Set a header.

        Args:
            name: Header name (case insensitive).
            value: Header value.
            overwrite: Replace an existing value.
        """
        if overwrite or not self._headers.has(name):
            self._headers.set(name, value)

    def append_header(self, name: str, value: Any) -> None:
        """Append to a header with ``", "``, creating it if absent."""
        self._headers.append(name, value)

    def remove_header(self, name: str) -> None:
        """Remove a header if present."""
        self._headers.delete(name)

    def clear_headers(self) -> None:
        """Remove every header except those derived from credentials."""
        self._headers.clear()
        self._inferred_content_type = None
        self._apply_authorization_headers()

    # Method and modes

    @property
    def method(self) -> str:
        """Upper-case HTTP method."""
        return self._method

    @method.setter
    def method(self, value: str) -> None:
        if _blank(value):
            raise ValidationError("method", value, "a non-empty HTTP method")
        method = value.strip().upper()
        if method not in HTTP_METHODS:
            self._log.warning(
                "nonstandard_http_method",
                method=method,
                hint="The remote host must support this method",
            )
        if method != self._method:
            old = self._method
            self._method = method
            self.emit("update.method", {"old": old, "new": method})

    def _default_cache(self) -> CacheMode:
        return CacheMode.DEFAULT if self._capabilities.is_browser else CacheMode.NO_STORE

    @property
    def cache(self) -> CacheMode:
        """Cache mode."""
        return self._cache

    @cache.setter
    def cache(self, value: CacheMode | str | None) -> None:
        cache = self._default_cache() if _blank(value) else validate_choice("cache", value, CacheMode)
        if cache == self._cache:
            return
        old = self._cache
        self._cache = cache
        if cache == CacheMode.ONLY_IF_CACHED and self._mode != CorsMode.SAME_ORIGIN:
            self.mode = CorsMode.SAME_ORIGIN
            self._log.warning(
                "cors_mode_forced",
                mode=CorsMode.SAME_ORIGIN.value,
                cache=cache.value,
                hint="only-if-cached requires same-origin mode",
            )
        self.emit("update.cache", {"old": old.value, "new": cache.value})

    @property
    def mode(self) -> CorsMode | None:
        """CORS mode, or None for the transport default."""
        return self._mode

    @mode.setter
    def mode(self, value: CorsMode | str | None) -> None:
        mode = None if _blank(value) else validate_choice("mode", value, CorsMode)
        if mode == self._mode:
            return
        old = self._mode
        self._mode = mode
        self.emit(
            "update.mode",
            {"old": old.value if old else None, "new": mode.value if mode else None},
        )

    @property
    def credentials(self) -> CredentialsMode | None:
        """Credentials mode, or None when unset."""
        return self._credentials

    @credentials.setter
    def credentials(self, value: CredentialsMode | str | None) -> None:
        credentials = (
            None if _blank(value) else validate_choice("credentials", value, CredentialsMode)
        )
        if credentials == self._credentials:
            return
        old = self._credentials
        self._credentials = credentials
        self.emit(
            "update.credentials",
            {
                "old": old.value if old else None,
                "new": credentials.value if credentials else None,
            },
        )

    @property
    def redirect(self) -> RedirectMode:
        """Redirect mode."""
        return self._redirect

    @redirect.setter
    def redirect(self, value: RedirectMode | str | None) -> None:
        redirect = (
            RedirectMode.FOLLOW if _blank(value) else validate_choice("redirect", value, RedirectMode)
        )
        if redirect == self._redirect:
            return
        old = self._redirect
        self._redirect = redirect
        self.emit("update.redirect", {"old": old.value, "new": redirect.value})

    @property
    def referrer_policy(self) -> ReferrerPolicy | None:
        """Referrer policy, or None when unset."""
        return self._referrer_policy

    @referrer_policy.setter
    def referrer_policy(self, value: ReferrerPolicy | str | None) -> None:
        policy = (
            None
            if _blank(value)
            else validate_choice("referrer_policy", value, ReferrerPolicy)
        )
        if policy == self._referrer_policy:
            return
        old = self._referrer_policy
        self._referrer_policy = policy
        self.emit(
            "update.referrer_policy",
            {"old": old.value if old else None, "new": policy.value if policy else None},
        )

    @property
    def timeout(self) -> float:
        """Seconds to wait for the transport."""
        return self._timeout

    @timeout.setter
    def timeout(self, value: float) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
            raise ValidationError("timeout", value, "a positive number of seconds")
        self._timeout = float(value)

    # Body

    @property
    def body(self) -> Any:
        """Body as given by the caller."""
        return self._body

    @body.setter
    def body(self, value: Any) -> None:
        if value is self._body and value is not None:
            return
        old = self._body
        self._body = value
        self._prepare_body()
        if old is not value:
            self.emit("update.body", {"old": old, "new": value})

    @property
    def payload(self) -> str | bytes | None:
        """Serialized body that would be transmitted, before crypto."""
        return self._prepared.payload if self._prepared.transmittable else None

    def _prepare_body(self) -> None:
        current = self._headers.get("content-type")
        explicit = None if current == self._inferred_content_type else current
        prepared = prepare_body(self._body, explicit)
        self._prepared = prepared

        if prepared.payload is None:
            if self._inferred_content_type is not None and current == self._inferred_content_type:
                self._headers.delete("content-type")
            self._headers.delete("content-length")
            self._inferred_content_type = None
            return

        if prepared.content_type is not None:
            self._headers.set("content-type", prepared.content_type)
            self._inferred_content_type = prepared.content_type
        if prepared.content_length is not None:
            self._headers.set("content-length", prepared.content_length)

    # Lifecycle

    def abort(self, reason: str = "aborted") -> None:
        """Stop waiting for the transport and fail the send as aborted.

        Cancellation is cooperative: the transport call is cancelled, but
        the remote operation may still complete.
        """
        if self._state_machine.is_terminal() or self._signal.aborted:
            return
        self._signal.abort(reason)
        self._log.info("request_abort_requested", reason=reason)
        self.emit("abort", {"reason": reason})

    async def send(self, callback: Callback | None = None) -> Response:
        """Send the request.

        Args:
            callback: Optional ``callback(error, response)``, called on
                success and on failure in addition to the return value.

        Returns:
            The transport response, verified and decrypted as configured.

        Raises:
            ConfigurationError: No transport, or crypto keys without a provider.
            TransportError: Network failure, timeout or abort.
            VerificationError: Response signature rejected.
            RequestStateTransitionError: The request was already sent.
        """
        return await deliver(self._send(), callback)

    async def _send(self) -> Response:
        with structlog.contextvars.bound_contextvars(request_id=self.request_id):
            return await self._run()

    async def _run(self) -> Response:
        self._state_machine.transition(RequestState.SENDING)
        try:
            descriptor = await self._build_descriptor()
        except Exception:
            self._state_machine.transition(RequestState.FAILED)
            raise

        url = self.url
        safe_url = redact_url_credentials(url)
        self._log.info(
            "request_sent",
            method=descriptor.method,
            url=safe_url,
            headers=redact_headers(descriptor.headers),
        )
        self.emit("send", {"method": descriptor.method, "url": url})

        metrics = RequestMetrics.get_instance()
        start = time.monotonic()
        try:
            response = await self._dispatch(self._transport, url, descriptor)
        except asyncio.CancelledError:
            self._state_machine.transition(RequestState.ABORTED)
            metrics.record_failure(TransportErrorClass.ABORTED)
            raise
        except TransportError as e:
            self._fail(e, safe_url, metrics)
            raise
        except Exception as e:
            error = TransportError(str(e) or type(e).__name__, url=url)
            self._fail(error, safe_url, metrics)
            raise error from e
        duration_ms = (time.monotonic() - start) * 1000

        try:
            await self._process_response(response)
        except VerificationError:
            self._state_machine.transition(RequestState.FAILED)
            metrics.record_verification_failure()
            self._log.warning("response_verification_failed", url=safe_url)
            raise

        metrics.record_request(response.status, byte_length(response.body), duration_ms)
        self._state_machine.transition(RequestState.COMPLETED)
        self._log.info(
            "request_complete",
            method=descriptor.method,
            url=safe_url,
            status=response.status,
            duration_ms=round(duration_ms, 2),
            redirected=response.redirected,
        )
        self.emit("response", response)
        return response

    def _fail(self, error: TransportError, safe_url: str, metrics: RequestMetrics) -> None:
        state = RequestState.ABORTED if error.aborted else RequestState.FAILED
        self._state_machine.transition(state)
        metrics.record_failure(error.error_class)
        self._log.warning("request_failed", url=safe_url, **error.to_dict())
        self.emit("error", error)

    def _require_crypto(self) -> CryptoProvider:
        if self._crypto is None:
            raise ConfigurationError(
                "Cryptography is unavailable: a crypto key is configured "
                "but no crypto provider was supplied"
            )
        return self._crypto

    async def _build_descriptor(self) -> RequestDescriptor:
        if self._transport is None:
            raise ConfigurationError("No transport configured for the request")

        keys = (
            self.encryption_key,
            self.decryption_key,
            self.signing_key,
            self.verification_key,
        )
        if any(key is not None for key in keys):
            self._require_crypto()

        payload = self.payload
        body_dropped = (
            payload is not None
            and self.enforce_method_safety
            and self._method in IDEMPOTENT_METHODS
        )
        if body_dropped:
            self._log.debug("body_dropped_for_safe_method", method=self._method)
            payload = None

        if payload is not None and self.encryption_key is not None:
            crypto = self._require_crypto()
            payload = await resolve(crypto.encrypt(payload, self.encryption_key))
            self.set_header("content-type", BINARY_CONTENT_TYPE)
            self.set_header("content-transfer-encoding", "base64", overwrite=False)
            self.append_header(
                "content-encoding", crypto.encryption_algorithm(self.encryption_key)
            )
            self.set_header("content-length", byte_length(payload))

        if payload is not None and self.signing_key is not None:
            crypto = self._require_crypto()
            signature = await resolve(crypto.sign(payload, self.signing_key))
            self.set_header("signature", signature)

        if self._credentials is None and self._auth.auth_type != AuthType.NONE:
            self._log.warning(
                "credentials_mode_omitted",
                auth_type=self._auth.auth_type.value,
                hint="Set credentials to omit, same-origin or include",
            )

        mode = CorsMode.SAME_ORIGIN if self._cache == CacheMode.ONLY_IF_CACHED else self._mode

        headers = {key: str(value) for key, value in self._headers.entries()}
        if body_dropped:
            # No payload left to describe
            headers.pop("content-length", None)
            headers.pop("content-type", None)

        return RequestDescriptor(
            method=self._method,
            cache=self._cache,
            mode=mode,
            redirect=self._redirect,
            referrer=self.referrer,
            referrer_policy=self._referrer_policy,
            headers=headers,
            timeout=self._timeout,
            signal=self._signal,
            credentials=self._credentials,
            integrity=self.sri,
            body=payload,
        )

    async def _dispatch(
        self, transport: Transport, url: str, descriptor: RequestDescriptor
    ) -> Response:
        if self._signal.aborted:
            raise TransportError(
                f"Request aborted before it was sent: {self._signal.reason}",
                TransportErrorClass.ABORTED,
                url,
            )

        send_task = asyncio.ensure_future(transport.send(url, descriptor))
        abort_task = asyncio.ensure_future(self._signal.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, abort_task},
                timeout=descriptor.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            send_task.cancel()
            raise
        finally:
            abort_task.cancel()

        if send_task in done:
            return send_task.result()

        send_task.cancel()
        if abort_task in done:
            raise TransportError(
                f"Request aborted: {self._signal.reason}",
                TransportErrorClass.ABORTED,
                url,
            )
        raise TransportError(
            f"Request timed out after {descriptor.timeout}s",
            TransportErrorClass.NETWORK_TIMEOUT,
            url,
        )

    async def _process_response(self, response: Response) -> None:
        if not response.body:
            return

        signature = response.header("signature")
        if self.verification_key is not None and signature:
            crypto = self._require_crypto()
            verified = await resolve(
                crypto.verify(response.body, signature, self.verification_key)
            )
            if not verified:
                raise VerificationError(redact_url_credentials(self.url))

        key = self.decryption_key
        if key is None and self._capabilities.supports_default_decryption:
            key = self.encryption_key
        if key is None:
            return

        crypto = self._require_crypto()
        try:
            response.body = await resolve(crypto.decrypt(key, response.body))
        except CryptoError as e:
            self._log.warning("response_decryption_failed", **e.to_dict())

    # Copying

    def clone(self) -> "Request":
        """Copy of the request with independent credentials and state."""
        request = Request(
            url=self._address,
            method=self._method,
            headers=self._headers.to_dict(),
            body=self._body,
            cache=self._cache,
            mode=self._mode,
            credentials=self._credentials,
            redirect=self._redirect,
            referrer=self.referrer,
            referrer_policy=self._referrer_policy,
            sri=self.sri,
            timeout=self._timeout,
            enforce_method_safety=self.enforce_method_safety,
            signing_key=self.signing_key,
            verification_key=self.verification_key,
            encryption_key=self.encryption_key,
            decryption_key=self.decryption_key,
            transport=self._transport,
            crypto=self._crypto,
            capabilities=self._capabilities,
        )
        request._configured_url = self._configured_url
        request._attach_credentials(self._auth.clone(), self._proxy_auth.clone())
        return request

    def assign(self, *others: "Request", override: bool = True) -> None:
        """Merge other requests into this one.

        Scalar settings, credentials, headers and query parameters are
        merged in order. With ``override=True`` the other request's
        values win; with ``override=False`` they only fill gaps.
        Credentials merge as a unit, never mixing one request's username
        with another's password.

        Args:
            *others: Requests to merge.
            override: Direction of precedence.

        Raises:
            TypeError: If a value is not a Request.
        """
        for other in others:
            if not isinstance(other, Request):
                raise TypeError("Only Request instances can be assigned to a request")
            self._merge(other, override)

    def _merge(self, other: "Request", override: bool) -> None:
        primary, fallback = (other, self) if override else (self, other)

        def pick(attr: str) -> Any:
            value = getattr(primary, attr)
            return getattr(fallback, attr) if _blank(value) else value

        self.method = pick("method")
        self.cache = pick("cache")
        self.mode = pick("mode")
        self.credentials = pick("credentials")
        self.redirect = pick("redirect")
        self.referrer = pick("referrer")
        self.referrer_policy = pick("referrer_policy")
        self.sri = pick("sri")
        self.timeout = pick("timeout")
        self.enforce_method_safety = pick("enforce_method_safety")
        self.signing_key = pick("signing_key")
        self.verification_key = pick("verification_key")
        self.encryption_key = pick("encryption_key")
        self.decryption_key = pick("decryption_key")
        body = pick("body")
        if body is not self._body:
            self.body = body

        self._auth.merge(other._auth, override)
        self._proxy_auth.merge(other._proxy_auth, override)

        for name, value in other.headers.entries():
            self.set_header(name, value, overwrite=override)
        for key, value in other.query.items():
            self.set_query_parameter(key, value, overwrite=override)

    def __repr__(self) -> str:
        return f"Request({self._method} {redact_url_credentials(self.url)!r})"
