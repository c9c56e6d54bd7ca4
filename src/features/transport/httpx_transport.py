"""Network transport backed by httpx."""

import base64
import hashlib
import hmac

import httpx
import structlog

from src.features.core.constants import MAX_REDIRECTS, RedirectMode, ReferrerPolicy
from src.features.core.errors import TransportError, TransportErrorClass
from src.features.core.models import RequestDescriptor, Response
from src.features.http.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()

_INTEGRITY_ALGORITHMS = {
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}


def verify_integrity(content: bytes, integrity: str) -> bool:
    """Check content against a subresource integrity string.

    The string holds one or more ``<algorithm>-<base64 digest>`` tokens
    separated by whitespace. Content passes when any supported token
    matches. Unsupported algorithms are ignored; a string with no
    supported token fails.

    Args:
        content: Response body bytes.
        integrity: Integrity metadata, e.g. ``sha256-BpfBw7...``.

    Returns:
        True if the content matches.
    """
    for token in integrity.split():
        algorithm, _, expected = token.partition("-")
        digest = _INTEGRITY_ALGORITHMS.get(algorithm.lower())
        if digest is None or not expected:
            continue
        # Options such as ?ct=... may follow the digest
        expected = expected.split("?", 1)[0]
        actual = base64.b64encode(digest(content).digest()).decode("ascii")
        if hmac.compare_digest(actual, expected):
            return True
    return False


def classify_httpx_error(error: httpx.HTTPError) -> TransportErrorClass:
    """Map an httpx exception onto a transport error class.

    Args:
        error: Exception raised by httpx.

    Returns:
        Matching classification.
    """
    if isinstance(error, httpx.TimeoutException):
        return TransportErrorClass.NETWORK_TIMEOUT
    if isinstance(error, httpx.TooManyRedirects):
        return TransportErrorClass.REDIRECT_REFUSED
    if isinstance(error, (httpx.ConnectError, httpx.NetworkError, httpx.ProxyError)):
        return TransportErrorClass.CONNECTION_ERROR
    return TransportErrorClass.UNKNOWN


class HttpxTransport:
    """Transport sending requests with an ``httpx.AsyncClient``.

    A fresh client is opened per request. Redirects are followed only in
    ``follow`` mode, up to ``max_redirects``. In ``error`` mode a redirect
    response fails the request, and in ``manual`` mode it is returned as is.
    """

    def __init__(
        self,
        max_redirects: int = MAX_REDIRECTS,
        verify: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            max_redirects: Maximum redirects followed in follow mode.
            verify: Verify TLS certificates.
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``.
        """
        self._max_redirects = max_redirects
        self._verify = verify
        self._transport = transport
        self._log = logger.bind(component="transport", transport="httpx")

    def _client(self, descriptor: RequestDescriptor) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            verify=self._verify,
            follow_redirects=descriptor.redirect == RedirectMode.FOLLOW,
            max_redirects=self._max_redirects,
            timeout=httpx.Timeout(descriptor.timeout),
        )

    async def send(self, url: str, descriptor: RequestDescriptor) -> Response:
        """Send a request over the network.

        Args:
            url: Fully resolved URL.
            descriptor: Transport-ready request description.

        Returns:
            Normalized response.

        Raises:
            TransportError: On network failure, refused redirect,
                integrity mismatch or unsupported method.
        """
        method = descriptor.method
        if method == "CONNECT":
            raise TransportError(
                "CONNECT requests are not supported by this transport",
                TransportErrorClass.UNSUPPORTED_METHOD,
                url,
            )

        headers = dict(descriptor.headers)
        if descriptor.referrer and descriptor.referrer_policy != ReferrerPolicy.NO_REFERRER:
            headers.setdefault("referer", descriptor.referrer)

        safe_url = redact_url_credentials(url)
        self._log.debug(
            "transport_request",
            method=method,
            url=safe_url,
            headers=redact_headers(headers),
        )

        try:
            async with self._client(descriptor) as client:
                response = await client.request(
                    method, url, headers=headers, content=descriptor.body
                )
        except httpx.HTTPError as e:
            error_class = classify_httpx_error(e)
            self._log.warning(
                "transport_error",
                url=safe_url,
                error_class=error_class.value,
                error_type=type(e).__name__,
            )
            raise TransportError(str(e) or type(e).__name__, error_class, url) from e

        if descriptor.redirect == RedirectMode.ERROR and response.is_redirect:
            raise TransportError(
                f"Redirect to {response.headers.get('location')} refused "
                f"(redirect mode is error)",
                TransportErrorClass.REDIRECT_REFUSED,
                url,
            )

        content = b"" if method == "HEAD" else response.content
        if descriptor.integrity and not verify_integrity(content, descriptor.integrity):
            raise TransportError(
                "Response does not match the subresource integrity value",
                TransportErrorClass.INTEGRITY_MISMATCH,
                url,
            )

        return Response(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
            url=str(response.url),
            redirected=bool(response.history),
            body="" if method == "HEAD" else response.text,
        )
