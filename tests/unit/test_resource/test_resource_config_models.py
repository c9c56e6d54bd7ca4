"""Unit tests for call and resource configuration models."""

import pydantic
import pytest

from src.features.resource.config import CallConfig, ResourceConfig


class TestCallConfig:
    """Tests for CallConfig."""

    def test_defaults(self) -> None:
        """Test that every field is optional."""
        config = CallConfig()

        assert config.url is None
        assert config.headers == {}
        assert config.query == {}

    def test_header_values_stringified(self) -> None:
        """Test that header values become strings."""
        config = CallConfig(headers={"X-Count": 3, "X-Flag": True})

        assert config.headers == {"X-Count": "3", "X-Flag": "True"}

    def test_request_options(self) -> None:
        """Test that request options omit unset fields and crypto flags."""
        config = CallConfig(url="/items", method="POST", encrypt=True, timeout=3)

        options = config.request_options()

        assert options == {"url": "/items", "method": "POST", "timeout": 3.0, "body": None}

    def test_request_options_keep_body(self) -> None:
        """Test that falsy bodies are passed through."""
        options = CallConfig(body="", headers={"a": "1"}).request_options()

        assert options["body"] == ""
        assert options["headers"] == {"a": "1"}

    def test_frozen(self) -> None:
        """Test that call configuration is immutable."""
        config = CallConfig()

        with pytest.raises(pydantic.ValidationError):
            config.url = "/x"  # type: ignore[misc]

    @pytest.mark.parametrize("options", [{"timeout": 0}, {"unknown": 1}, {"sign": "maybe"}])
    def test_invalid(self, options: dict[str, object]) -> None:
        """Test rejected configurations."""
        with pytest.raises(pydantic.ValidationError):
            CallConfig(**options)


class TestResourceConfig:
    """Tests for ResourceConfig."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = ResourceConfig()

        assert config.base_url is None
        assert config.access_token_type == "Bearer"
        assert config.token_renewal_notice == 0.0
        assert not config.https_only

    @pytest.mark.parametrize("value", ["", "   "])
    def test_blank_base_url(self, value: str) -> None:
        """Test that a blank base URL is treated as unset."""
        assert ResourceConfig(base_url=value).base_url is None

    def test_base_url_stripped(self) -> None:
        """Test that the base URL is trimmed."""
        assert ResourceConfig(base_url=" https://a.example.com ").base_url == "https://a.example.com"
