"""Unit tests for cloning a Resource."""

import gc
import weakref
from typing import Any

import pytest

from src.features.core.constants import CacheMode
from src.features.resource.resource import Resource
from src.features.transport.mock import MockTransport
from src.settings.app import ClientSettings
from tests.helpers.fakes import FakeScheduler


BASE = "https://api.example.com/v1"


@pytest.fixture
def resource(settings: ClientSettings, scheduler: FakeScheduler) -> Resource:
    """Resource with a representative set of defaults."""
    return Resource(
        BASE,
        transport=MockTransport(),
        scheduler=scheduler,
        settings=settings,
        headers={"X-Client": "netlayer"},
        query={"api_key": "k"},
        access_token="tok",
        cache="reload",
        timeout=5,
        user_agent="agent",
        encryption_key="secret",
    )


class TestResourceClone:
    """Tests for Resource.clone."""

    def test_copies_settings(self, resource: Resource) -> None:
        """Test that the clone starts with the same defaults."""
        clone = resource.clone()

        assert clone is not resource
        assert clone.base_url == BASE
        assert clone.headers.get("x-client") == "netlayer"
        assert clone.headers.get("authorization") == "Bearer tok"
        assert clone.query == {"api_key": "k"}
        assert clone.cache == CacheMode.RELOAD
        assert clone.timeout == 5.0
        assert clone.user_agent == "agent"
        assert clone.encryption_key == "secret"

    def test_shares_collaborators(self, resource: Resource) -> None:
        """Test that transport, capabilities and settings are shared."""
        clone = resource.clone()

        assert clone.transport is resource.transport
        assert clone.capabilities is resource.capabilities
        assert clone.settings is resource.settings

    def test_independent_state(self, resource: Resource) -> None:
        """Test that changing the clone leaves the original untouched."""
        clone = resource.clone()

        clone.set_header("X-Client", "changed")
        clone.set_parameter("api_key", "other")
        clone.set_access_token("new")
        clone.timeout = 1

        assert resource.headers.get("x-client") == "netlayer"
        assert resource.query == {"api_key": "k"}
        assert resource.headers.get("authorization") == "Bearer tok"
        assert resource.timeout == 5.0

    def test_basic_credentials_copied(self, settings: ClientSettings) -> None:
        """Test that a username and password carry over."""
        resource = Resource(BASE, username="u", password="p", settings=settings)

        clone = resource.clone()

        assert clone.username == "u"
        assert clone.headers.get("authorization") == "Basic dTpw"

    def test_overrides(self, resource: Resource) -> None:
        """Test that keyword overrides replace copied values."""
        clone = resource.clone(base_url="https://other.example.com/", timeout=2, cache=None)

        assert clone.base_url == "https://other.example.com/"
        assert clone.timeout == 2.0
        assert clone.cache == CacheMode.RELOAD

    def test_origin_events_relayed(self, resource: Resource) -> None:
        """Test that origin events reach the clone with a prefix."""
        clone = resource.clone()
        seen: list[tuple[str, Any]] = []
        clone.on("origin.*", lambda name, payload: seen.append((name, payload)))

        resource.set_access_token("rotated")

        assert seen == [("origin.token.update", {"expires": None})]
        assert clone.headers.get("authorization") == "Bearer tok"

    def test_close_detaches_from_origin(self, resource: Resource) -> None:
        """Test that a closed clone stops receiving origin events."""
        clone = resource.clone()
        seen: list[str] = []
        clone.on("origin.*", lambda name, payload: seen.append(name))

        clone.close()
        resource.set_access_token("rotated")

        assert seen == []

    def test_abandoned_clone_released(self, resource: Resource) -> None:
        """Test that the origin does not keep discarded clones alive."""
        clone = resource.clone()
        ref = weakref.ref(clone)

        del clone
        gc.collect()
        resource.set_access_token("rotated")

        assert ref() is None
        assert resource._relays == []
