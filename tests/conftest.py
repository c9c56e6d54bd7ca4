"""Shared pytest fixtures."""

from collections.abc import Iterator

import pytest

from src.features.http.metrics import RequestMetrics
from src.settings.app import ClientSettings
from tests.helpers.fakes import FakeScheduler


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only."""
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    """Give every test a fresh metrics singleton."""
    RequestMetrics.reset()
    yield
    RequestMetrics.reset()


@pytest.fixture
def settings() -> ClientSettings:
    """Settings isolated from the environment and any .env file."""
    return ClientSettings(_env_file=None)


@pytest.fixture
def scheduler() -> FakeScheduler:
    """Scheduler whose timers only fire on demand."""
    return FakeScheduler()
