"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from regmirror.auth import Credentials


class FakeClock:
    """Manually advanced clock for cache expiry tests."""

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def credentials():
    """Plain credentials without refresher."""
    return Credentials.from_basic("bob", "s3cret")


@pytest.fixture
def make_client():
    """Factory for HTTP clients answering through a handler function."""
    clients = []

    def factory(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.close()


@pytest.fixture
def sample_config():
    """Sample configuration dictionary."""
    return {
        "logging": {"level": "DEBUG", "dir": "/tmp/regmirror-logs", "file_logging": False},
        "listing": {"page_size": 50, "cache_ttl": 120, "timeout": 5},
        "registries": [
            {
                "name": "internal",
                "registry": "https://registry.example.com:5000",
                "filter": "library/.*",
                "username": "bob",
                "password": "s3cret",
            },
            {
                "name": "hub",
                "registry": "registry.hub.docker.com",
                "auth_mode": "basic",
            },
        ],
    }
