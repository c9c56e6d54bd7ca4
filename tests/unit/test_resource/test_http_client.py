"""Unit tests for the verb-per-method HTTP client."""

from typing import Any

import pytest
from structlog.testing import capture_logs

from src.features.core.errors import ConfigurationError
from src.features.core.models import RequestDescriptor, Response
from src.features.resource.client import JSON_ACCEPT, HttpClient
from src.features.transport.httpx_transport import HttpxTransport
from src.features.transport.mock import MockTransport
from src.settings.app import ClientSettings


URL = "https://api.example.com/items"


@pytest.fixture
def transport() -> MockTransport:
    """Mock transport answering the test URL for every method."""
    mock = MockTransport()
    mock.register(URL, body='{"items": [1, 2]}')
    return mock


@pytest.fixture
def client(transport: MockTransport, settings: ClientSettings) -> HttpClient:
    """Client sending through the mock transport."""
    return HttpClient(transport=transport, settings=settings)


class TestHttpClientSetup:
    """Tests for client construction."""

    def test_default_transport(self, settings: ClientSettings) -> None:
        """Test that the httpx transport is used by default."""
        assert isinstance(HttpClient(settings=settings).transport, HttpxTransport)

    def test_capabilities_from_settings(self) -> None:
        """Test that capabilities derive from the settings."""
        settings = ClientSettings(_env_file=None, protocol="https", hostname="App.Local")

        client = HttpClient(settings=settings)

        assert client.capabilities.origin == "https://app.local"

    def test_normalize_url(self, client: HttpClient) -> None:
        """Test that URLs are resolved and dot segments removed."""
        assert client.normalize_url("/a/./b/../c") == "http://localhost/a/c"
        assert client.normalize_url("https://x.example.com//y") == "https://x.example.com/y"

    def test_uppercase_aliases(self) -> None:
        """Test that upper-case verb names are aliases."""
        assert HttpClient.GET is HttpClient.get
        assert HttpClient.POST is HttpClient.post
        assert HttpClient.JSON is HttpClient.json
        assert HttpClient.REQUEST is HttpClient.request


class TestHttpClientVerbs:
    """Tests for the verb coroutines."""

    @pytest.mark.anyio
    @pytest.mark.parametrize("verb", ["options", "head", "get", "post", "put", "delete"])
    async def test_verb_sets_method(
        self, verb: str, client: HttpClient, transport: MockTransport
    ) -> None:
        """Test that each verb sends its own method."""
        response = await getattr(client, verb)(URL)

        assert response.status == 200
        assert transport.last_request is not None
        assert transport.last_request.method == verb.upper()

    @pytest.mark.anyio
    async def test_trace_warns(self, client: HttpClient, transport: MockTransport) -> None:
        """Test that TRACE is sent with a warning."""
        with capture_logs() as logs:
            await client.trace(URL)

        assert transport.last_request is not None
        assert transport.last_request.method == "TRACE"
        assert any(entry["event"] == "trace_method_used" for entry in logs)

    @pytest.mark.anyio
    async def test_request_any_method(self, client: HttpClient, transport: MockTransport) -> None:
        """Test the generic request coroutine."""
        await client.request(URL, "PATCH", body={"a": 1})

        record = transport.last_request
        assert record is not None
        assert record.method == "PATCH"
        assert record.body == '{"a":1}'

    @pytest.mark.anyio
    async def test_call_configuration(self, client: HttpClient, transport: MockTransport) -> None:
        """Test that call keywords configure the request."""
        await client.get(URL, headers={"X-Trace": 7}, query={"page": 2}, access_token="t")

        record = transport.last_request
        assert record is not None
        assert record.url == f"{URL}?page=2"
        assert record.headers["x-trace"] == "7"
        assert record.headers["authorization"] == "Bearer t"

    @pytest.mark.anyio
    async def test_default_timeout_from_settings(self) -> None:
        """Test that calls without a timeout use the settings default."""
        seen: list[RequestDescriptor] = []

        def handler(url: str, descriptor: RequestDescriptor) -> Response:
            seen.append(descriptor)
            return Response(status=200, url=url)

        transport = MockTransport()
        transport.register_handler(URL, handler)
        settings = ClientSettings(_env_file=None, default_timeout_seconds=4)
        client = HttpClient(transport=transport, settings=settings)

        await client.get(URL)
        await client.get(URL, timeout=9)

        assert [descriptor.timeout for descriptor in seen] == [4.0, 9.0]

    @pytest.mark.anyio
    async def test_callback(self, client: HttpClient) -> None:
        """Test that verbs report to a callback as well."""
        calls: list[tuple[Any, Any]] = []

        response = await client.get(URL, lambda error, value: calls.append((error, value)))

        assert calls == [(None, response)]


class TestHttpClientJson:
    """Tests for the JSON helper."""

    @pytest.mark.anyio
    async def test_returns_parsed_body(self, client: HttpClient, transport: MockTransport) -> None:
        """Test that the body is parsed and JSON is requested."""
        data = await client.json(URL)

        assert data == {"items": [1, 2]}
        assert transport.last_request is not None
        assert transport.last_request.headers["accept"] == JSON_ACCEPT

    @pytest.mark.anyio
    async def test_explicit_accept_wins(
        self, client: HttpClient, transport: MockTransport
    ) -> None:
        """Test that a caller-supplied Accept header replaces the default."""
        await client.json(URL, headers={"Accept": "application/hal+json"})

        assert transport.last_request is not None
        assert transport.last_request.headers["accept"] == "application/hal+json"

    @pytest.mark.anyio
    async def test_invalid_json_is_none(self, settings: ClientSettings) -> None:
        """Test that a non-JSON body yields None."""
        transport = MockTransport()
        transport.register(URL, body="<html></html>")
        client = HttpClient(transport=transport, settings=settings)

        assert await client.json(URL) is None

    @pytest.mark.anyio
    async def test_callback_receives_data(self, client: HttpClient) -> None:
        """Test that the callback receives the parsed data."""
        calls: list[tuple[Any, Any]] = []

        await client.json(URL, lambda error, value: calls.append((error, value)))

        assert calls == [(None, {"items": [1, 2]})]


class TestHttpClientConfigErrors:
    """Tests for invalid call configuration."""

    @pytest.mark.anyio
    async def test_unknown_option(self, client: HttpClient) -> None:
        """Test that unknown keywords are rejected."""
        with pytest.raises(ConfigurationError, match="bogus"):
            await client.get(URL, bogus=1)

    @pytest.mark.anyio
    async def test_invalid_timeout(self, client: HttpClient, transport: MockTransport) -> None:
        """Test that invalid values fail before any I/O."""
        with pytest.raises(ConfigurationError, match="timeout"):
            await client.get(URL, timeout=-1)

        assert transport.stats.requests_total == 0

    @pytest.mark.anyio
    async def test_error_hides_values(self, client: HttpClient) -> None:
        """Test that configuration errors never echo secrets."""
        with pytest.raises(ConfigurationError) as exc_info:
            await client.get(URL, password=["hunter2"])

        assert "hunter2" not in str(exc_info.value)
        assert "password" in str(exc_info.value)
