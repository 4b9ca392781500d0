"""
tests/conftest.py

Shared pytest fixtures used by both unit and integration test suites.
All cache fixtures live under pytest's tmp_path and all HTTP fixtures use
respx.mock; no real network calls are made in any test.
"""

from __future__ import annotations

import ipaddress
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import respx

from config import HostConfig
from repositories.response_cache import ResponseCache


# ---------------------------------------------------------------------------
# Cache fixtures: a fresh directory per test
# ---------------------------------------------------------------------------


@pytest.fixture()
def cache_dir(tmp_path):
    """Returns a not-yet-existing cache directory under tmp_path."""
    return tmp_path / "cache"


@pytest.fixture()
def cache(cache_dir):
    """Yields a ResponseCache rooted at cache_dir (not watching)."""
    return ResponseCache(cache_dir)


# ---------------------------------------------------------------------------
# Deterministic clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock():
    """Yields a FakeClock starting at 2024-01-01 12:00 UTC."""
    return FakeClock()


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def host_config():
    """A password-auth HostConfig with the default 5 minute backoff."""
    return HostConfig.model_validate(
        {
            "dyndns_url": "https://dyndns.example.net/nic/update",
            "username": "user",
            "password": "secret",
        }
    )


@pytest.fixture()
def ip():
    return ipaddress.ip_address("1.2.3.4")


# ---------------------------------------------------------------------------
# HTTP mock fixture: intercepts all httpx calls
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_http():
    """
    Yields a respx router that intercepts all httpx.AsyncClient calls.

    No real network traffic is allowed during tests. Use this fixture
    wherever a service or client would normally make an outbound request.
    """
    with respx.mock(assert_all_called=False) as router:
        yield router


# ---------------------------------------------------------------------------
# Shared httpx.AsyncClient fixture
# ---------------------------------------------------------------------------


@pytest.fixture()
async def http_client():
    """
    Yields a real httpx.AsyncClient instance for use in tests.

    Pair with the mock_http fixture so all requests are intercepted by respx.
    The client is closed after each test.
    """
    async with httpx.AsyncClient() as client:
        yield client
