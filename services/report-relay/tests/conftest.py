"""Shared fixtures for the Report Relay tests."""

import httpx
import pytest
import respx
from fastapi.testclient import TestClient

from report_relay.config import Settings
from report_relay.main import create_app


WEBHOOK_URL = "https://discord.example/api/webhooks/123/abc"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def make_settings(**overrides) -> Settings:
    values = {"webhook_url": WEBHOOK_URL, "trust_proxy": True}
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def sink():
    """Mocked webhook sink accepting every message with 204."""
    with respx.mock(assert_all_called=False) as mock:
        route = mock.post(WEBHOOK_URL).mock(return_value=httpx.Response(204))
        yield route


@pytest.fixture
def client(settings, sink):
    """Test client with the lifespan running."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client
