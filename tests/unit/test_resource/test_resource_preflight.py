"""Unit tests for layering resource defaults onto outgoing requests."""

import re

import pytest
from structlog.testing import capture_logs

from src.features.core.errors import ConfigurationError
from src.features.core.models import RequestDescriptor, Response, RuntimeCapabilities
from src.features.resource.resource import Resource
from src.features.transport.mock import MockTransport
from src.settings.app import ClientSettings
from tests.helpers.fakes import FakeCrypto


BASE = "https://api.example.com/v1"
ITEMS = f"{BASE}/items"


class RecordingTransport(MockTransport):
    """Mock transport keeping every descriptor it receives."""

    def __init__(self) -> None:
        super().__init__(allow_unmatched=True)
        self.descriptors: list[RequestDescriptor] = []

    async def send(self, url: str, descriptor: RequestDescriptor) -> Response:
        self.descriptors.append(descriptor)
        return await super().send(url, descriptor)


@pytest.fixture
def transport() -> RecordingTransport:
    """Transport answering every URL."""
    return RecordingTransport()


def make_resource(
    transport: RecordingTransport, settings: ClientSettings, **options: object
) -> Resource:
    return Resource(BASE, transport=transport, settings=settings, **options)


class TestPreflightUrl:
    """Tests for URL and query layering."""

    @pytest.mark.anyio
    async def test_relative_url(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that relative call URLs resolve under the base."""
        await make_resource(transport, settings).get("items")

        assert transport.last_request is not None
        assert transport.last_request.url == ITEMS

    @pytest.mark.anyio
    async def test_query_layering(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that call parameters come first and win over shared ones."""
        resource = make_resource(transport, settings, query={"api_key": "k", "page": 1})

        await resource.get("items", query={"page": 2})

        assert transport.last_request is not None
        assert transport.last_request.url == f"{ITEMS}?page=2&api_key=k"

    @pytest.mark.anyio
    async def test_url_query_kept(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that a query string in the call URL is preserved."""
        await make_resource(transport, settings).get("items?sort=asc")

        assert transport.last_request is not None
        assert transport.last_request.url == f"{ITEMS}?sort=asc"

    @pytest.mark.anyio
    async def test_unique_parameter(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that unique adds a cache-busting parameter."""
        await make_resource(transport, settings, unique=True).get("items")

        assert transport.last_request is not None
        assert re.fullmatch(rf"{re.escape(ITEMS)}\?nocache\d+", transport.last_request.url)


class TestPreflightHeaders:
    """Tests for header and credential layering."""

    @pytest.mark.anyio
    async def test_call_headers_win(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that call headers replace shared headers of the same name."""
        resource = make_resource(transport, settings, headers={"X-Shared": "1", "X-Over": "res"})

        await resource.get("items", headers={"x-over": "call"})

        headers = transport.last_request.headers if transport.last_request else {}
        assert headers["x-shared"] == "1"
        assert headers["x-over"] == "call"

    @pytest.mark.anyio
    async def test_shared_token(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that the shared token authorizes every request."""
        resource = make_resource(transport, settings, access_token="tok")

        await resource.get("items")

        assert transport.last_request is not None
        assert transport.last_request.headers["authorization"] == "Bearer tok"

    @pytest.mark.anyio
    async def test_call_credentials_win(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that call credentials replace the shared ones as a unit."""
        resource = make_resource(transport, settings, access_token="tok")

        await resource.get("items", username="u", password="p")

        assert transport.last_request is not None
        assert transport.last_request.headers["authorization"] == "Basic dTpw"

    @pytest.mark.anyio
    async def test_shared_changes_do_not_leak_back(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that call headers never modify the shared headers."""
        resource = make_resource(transport, settings, headers={"X-A": "1"})

        await resource.get("items", headers={"X-B": "2"})

        assert resource.headers.to_dict() == {"x-a": "1"}


class TestPreflightUserAgent:
    """Tests for the User-Agent header."""

    @pytest.mark.anyio
    async def test_resource_user_agent(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that the resource user agent is sent."""
        await make_resource(transport, settings, user_agent="netlayer-test/1").get("items")

        assert transport.last_request is not None
        assert transport.last_request.headers["user-agent"] == "netlayer-test/1"

    @pytest.mark.anyio
    async def test_settings_user_agent(self, transport: RecordingTransport) -> None:
        """Test the settings user agent as a fallback."""
        settings = ClientSettings(_env_file=None, user_agent="from-settings")

        await make_resource(transport, settings).get("items")

        assert transport.last_request is not None
        assert transport.last_request.headers["user-agent"] == "from-settings"

    @pytest.mark.anyio
    async def test_unique_agent(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that unique_agent appends an identifier."""
        resource = make_resource(transport, settings, user_agent="agent", unique_agent=True)

        await resource.get("items")

        assert transport.last_request is not None
        assert re.fullmatch(r"agent ID#\d+", transport.last_request.headers["user-agent"])

    @pytest.mark.anyio
    async def test_call_header_wins(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that a call-level User-Agent is kept."""
        resource = make_resource(transport, settings, user_agent="agent")

        await resource.get("items", headers={"User-Agent": "custom"})

        assert transport.last_request is not None
        assert transport.last_request.headers["user-agent"] == "custom"

    @pytest.mark.anyio
    async def test_browser_blocks_user_agent(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that browser-like runtimes never send a custom User-Agent."""
        resource = make_resource(
            transport,
            settings,
            user_agent="agent",
            capabilities=RuntimeCapabilities(is_browser=True),
        )

        with capture_logs() as logs:
            await resource.get("items")

        assert transport.last_request is not None
        assert "user-agent" not in transport.last_request.headers
        assert any(entry["event"] == "user_agent_blocked" for entry in logs)


class TestPreflightModes:
    """Tests for scalar setting precedence."""

    @pytest.mark.anyio
    async def test_resource_timeout(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test call > resource > settings precedence for the timeout."""
        resource = make_resource(transport, settings, timeout=5)

        await resource.get("items")
        await resource.get("items", timeout=9)
        resource.timeout = None
        await resource.get("items")

        timeouts = [descriptor.timeout for descriptor in transport.descriptors]
        assert timeouts == [5.0, 9.0, settings.default_timeout_seconds]

    @pytest.mark.anyio
    async def test_resource_modes(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that resource modes apply unless the call sets its own."""
        resource = make_resource(
            transport, settings, cache="reload", credentials="include", redirect="manual"
        )

        await resource.get("items")
        await resource.get("items", cache="force-cache")

        first, second = transport.descriptors
        assert first.cache.value == "reload"
        assert first.credentials is not None
        assert first.credentials.value == "include"
        assert first.redirect.value == "manual"
        assert second.cache.value == "force-cache"

    @pytest.mark.anyio
    async def test_nocache(self, transport: RecordingTransport, settings: ClientSettings) -> None:
        """Test that nocache applies only when the call sets no cache mode."""
        resource = make_resource(transport, settings, nocache=True)

        await resource.get("items")
        await resource.get("items", cache="default")

        first, second = transport.descriptors
        assert first.cache.value == "no-cache"
        assert second.cache.value == "default"


class TestPreflightCrypto:
    """Tests for resolving crypto keys per call."""

    @pytest.mark.anyio
    async def test_resource_key_used(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that a resource encryption key encrypts every body."""
        resource = make_resource(
            transport, settings, encryption_key="k", crypto=FakeCrypto()
        )

        await resource.post("items", body="secret")

        assert transport.last_request is not None
        assert transport.last_request.body == "enc:secret"

    @pytest.mark.anyio
    async def test_call_flag_disables(
        self, transport: RecordingTransport, settings: ClientSettings
    ) -> None:
        """Test that encrypt=False skips encryption for one call."""
        resource = make_resource(
            transport, settings, encryption_key="k", crypto=FakeCrypto()
        )

        await resource.post("items", body="plain", encrypt=False)

        assert transport.last_request is not None
        assert transport.last_request.body == "plain"

    @pytest.mark.anyio
    async def test_call_key(self, transport: RecordingTransport, settings: ClientSettings) -> None:
        """Test that a call-level signing key is used."""
        resource = make_resource(transport, settings, crypto=FakeCrypto())

        await resource.post("items", body="x", signing_key="s9")

        assert transport.last_request is not None
        assert transport.last_request.headers["signature"] == "sig-s9"

    @pytest.mark.anyio
    async def test_decryption_falls_back_to_encryption_key(
        self, settings: ClientSettings
    ) -> None:
        """Test that responses are decrypted with the encryption key."""
        transport = MockTransport()
        transport.register(ITEMS, body="enc:reply")
        crypto = FakeCrypto()
        resource = Resource(
            BASE, transport=transport, settings=settings, encryption_key="k", crypto=crypto
        )

        response = await resource.get("items")

        assert response.body == "reply"
        assert crypto.decrypt_keys == ["k"]

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("resource_options", "call_options"),
        [
            ({"encrypt_all": True}, {}),
            ({}, {"sign": True}),
            ({"verify_all": True}, {}),
        ],
    )
    async def test_flag_without_key(
        self,
        transport: RecordingTransport,
        settings: ClientSettings,
        resource_options: dict[str, object],
        call_options: dict[str, object],
    ) -> None:
        """Test that a crypto flag without a key fails before any I/O."""
        resource = make_resource(transport, settings, crypto=FakeCrypto(), **resource_options)

        with pytest.raises(ConfigurationError):
            await resource.post("items", body="x", **call_options)

        assert transport.stats.requests_total == 0
