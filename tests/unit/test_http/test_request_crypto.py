"""Unit tests for the crypto steps around a send."""

import pytest
from structlog.testing import capture_logs

from src.features.core.errors import ConfigurationError, VerificationError
from src.features.core.models import RuntimeCapabilities
from src.features.http.body import BINARY_CONTENT_TYPE
from src.features.http.crypto import CryptoProvider
from src.features.http.metrics import RequestMetrics
from src.features.http.request import Request
from src.features.http.state_machine import RequestState
from src.features.transport.mock import MockTransport
from tests.helpers.fakes import AsyncFakeCrypto, FakeCrypto


URL = "https://api.example.com/secure"


class TestRequestEncryption:
    """Tests for body encryption and response decryption."""

    def test_fake_is_a_provider(self) -> None:
        """Test that the fake satisfies the provider protocol."""
        assert isinstance(FakeCrypto(), CryptoProvider)

    @pytest.mark.anyio
    @pytest.mark.parametrize("crypto_cls", [FakeCrypto, AsyncFakeCrypto])
    async def test_encrypts_body(self, crypto_cls: type[FakeCrypto]) -> None:
        """Test that the body is encrypted and headers describe it."""
        transport = MockTransport()
        transport.register(URL, body="enc:reply")
        request = Request(
            URL,
            method="POST",
            body="hello",
            encryption_key="k1",
            transport=transport,
            crypto=crypto_cls(),
        )

        response = await request.send()

        record = transport.last_request
        assert record is not None
        assert record.body == "enc:hello"
        assert record.headers["content-type"] == BINARY_CONTENT_TYPE
        assert record.headers["content-transfer-encoding"] == "base64"
        assert record.headers["content-encoding"] == "aes-256-gcm"
        assert record.headers["content-length"] == str(len("enc:hello"))
        assert response.body == "reply"

    @pytest.mark.anyio
    async def test_decryption_key_preferred(self) -> None:
        """Test that an explicit decryption key is used for the response."""
        transport = MockTransport()
        transport.register(URL, body="enc:data")
        crypto = FakeCrypto()
        request = Request(
            URL, encryption_key="enc", decryption_key="dec", transport=transport, crypto=crypto
        )

        await request.send()

        assert crypto.decrypt_keys == ["dec"]

    @pytest.mark.anyio
    async def test_no_default_decryption(self) -> None:
        """Test runtimes without the encryption-key fallback."""
        transport = MockTransport()
        transport.register(URL, body="enc:data")
        crypto = FakeCrypto()
        request = Request(
            URL,
            encryption_key="enc",
            transport=transport,
            crypto=crypto,
            capabilities=RuntimeCapabilities(supports_default_decryption=False),
        )

        response = await request.send()

        assert response.body == "enc:data"
        assert crypto.decrypt_keys == []

    @pytest.mark.anyio
    async def test_decryption_failure_keeps_body(self) -> None:
        """Test that a failed decryption is logged and the body kept."""
        transport = MockTransport()
        transport.register(URL, body="enc:data")
        request = Request(
            URL, decryption_key="k", transport=transport, crypto=FakeCrypto(fail_decrypt=True)
        )

        with capture_logs() as logs:
            response = await request.send()

        assert response.body == "enc:data"
        assert request.state == RequestState.COMPLETED
        assert any(entry["event"] == "response_decryption_failed" for entry in logs)

    @pytest.mark.anyio
    async def test_key_without_provider(self) -> None:
        """Test that keys without a crypto provider fail before any I/O."""
        transport = MockTransport()
        transport.register(URL)
        request = Request(URL, signing_key="s", transport=transport)

        with pytest.raises(ConfigurationError):
            await request.send()

        assert transport.stats.requests_total == 0


class TestRequestSigning:
    """Tests for request signing and response verification."""

    @pytest.mark.anyio
    async def test_signature_header(self) -> None:
        """Test that the signed payload carries a Signature header."""
        transport = MockTransport()
        transport.register(URL)
        request = Request(
            URL,
            method="PUT",
            body={"a": 1},
            signing_key="s1",
            transport=transport,
            crypto=FakeCrypto(),
        )

        await request.send()

        assert transport.last_request is not None
        assert transport.last_request.headers["signature"] == "sig-s1"

    @pytest.mark.anyio
    @pytest.mark.parametrize("crypto_cls", [FakeCrypto, AsyncFakeCrypto])
    async def test_valid_signature(self, crypto_cls: type[FakeCrypto]) -> None:
        """Test that a response with a valid signature is accepted."""
        transport = MockTransport()
        transport.register(URL, body="data", headers={"Signature": "sig-v1"})
        request = Request(URL, verification_key="v1", transport=transport, crypto=crypto_cls())

        response = await request.send()

        assert response.body == "data"

    @pytest.mark.anyio
    async def test_invalid_signature(self) -> None:
        """Test that a forged response is rejected."""
        transport = MockTransport()
        transport.register(URL, body="data", headers={"Signature": "forged"})
        request = Request(URL, verification_key="v1", transport=transport, crypto=FakeCrypto())

        with pytest.raises(VerificationError):
            await request.send()

        assert request.state == RequestState.FAILED
        assert RequestMetrics.get_instance().verification_failures_total == 1

    @pytest.mark.anyio
    async def test_unsigned_response_passes(self) -> None:
        """Test that responses without a signature are not verified."""
        transport = MockTransport()
        transport.register(URL, body="data")
        request = Request(URL, verification_key="v1", transport=transport, crypto=FakeCrypto())

        response = await request.send()

        assert response.body == "data"
