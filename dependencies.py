"""
dependencies.py

Responsibility: Declares the provider functions that build and wire the
application's services, shared by the one-shot CLI commands and the daemon.
Does NOT: contain business logic, argument parsing, or scheduling.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx

from config import AppConfig, HostConfig
from ddns.ddns_client import DyndnsClient
from ddns.outcome import DdnsClient
from repositories.response_cache import ResponseCache
from services.ip_service import IpService
from services.update_service import UpdateService

# ---------------------------------------------------------------------------
# Infrastructure: shared app-level resources
# ---------------------------------------------------------------------------


def get_http_client(timeout: float = 30.0) -> httpx.AsyncClient:
    """
    Creates the shared httpx.AsyncClient.

    The client is created once per process and reused for every request.
    The caller owns it and must close it (use it as an async context manager).

    Args:
        timeout: Seconds before any single request is abandoned.

    Returns:
        A new httpx.AsyncClient.
    """
    return httpx.AsyncClient(timeout=timeout)


def get_response_cache(cache_dir: Path) -> ResponseCache:
    """
    Provides the ResponseCache for a cache directory.

    Args:
        cache_dir: Directory holding one file per hostname.

    Returns:
        A ResponseCache instance (not yet watching).
    """
    return ResponseCache(cache_dir)


# ---------------------------------------------------------------------------
# Service providers
# ---------------------------------------------------------------------------


def get_ip_service(http_client: httpx.AsyncClient, config: AppConfig | None = None) -> IpService:
    """
    Provides an IpService using the shared HTTP client.

    Args:
        http_client: The application-level httpx.AsyncClient.
        config: Supplies ip_provider_url when a config file was loaded.

    Returns:
        An IpService instance.
    """
    if config is None:
        return IpService(http_client)
    return IpService(http_client, provider_url=config.ip_provider_url)


def get_client_factory(http_client: httpx.AsyncClient) -> Callable[[HostConfig], DdnsClient]:
    """
    Provides the factory UpdateService uses to build a per-host DdnsClient.

    Args:
        http_client: The application-level httpx.AsyncClient.

    Returns:
        A callable mapping a HostConfig to a DyndnsClient for its endpoint.
    """

    def factory(host_config: HostConfig) -> DdnsClient:
        return DyndnsClient(http_client, host_config.dyndns_url, host_config.auth)

    return factory


def get_update_service(cache: ResponseCache, http_client: httpx.AsyncClient) -> UpdateService:
    """
    Provides a fully wired UpdateService.

    Args:
        cache: The response cache.
        http_client: The application-level httpx.AsyncClient.

    Returns:
        An UpdateService instance ready to use.
    """
    return UpdateService(cache, get_client_factory(http_client))
