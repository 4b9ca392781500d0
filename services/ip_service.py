"""
services/ip_service.py

Responsibility: Fetches the current public IP address of the host machine.
Does NOT: call the update endpoint, touch the response cache, or read config files.
"""

from __future__ import annotations

import ipaddress
import logging

import httpx

from config import DEFAULT_IP_PROVIDER_URL, USER_AGENT
from ddns.outcome import IpAddress
from exceptions import IpFetchError

logger = logging.getLogger(__name__)


class IpService:
    """
    Fetches the host machine's current public IP address.

    Uses an injected httpx.AsyncClient so the service is fully testable
    without real network calls (use respx.mock in tests). The provider may
    answer with plain text ("1.2.3.4", as api.ipify.org does) or with JSON
    carrying an "ip" or "origin" field (as httpbin.org/ip does).

    Collaborators:
        - httpx.AsyncClient: injected; must be kept alive externally
    """

    def __init__(self, http_client: httpx.AsyncClient, provider_url: str = DEFAULT_IP_PROVIDER_URL) -> None:
        """
        Initialises the service with a shared HTTP client.

        Args:
            http_client: A long-lived httpx.AsyncClient instance created
                         during application startup.
            provider_url: URL of the "what is my IP" endpoint.
        """
        self._client = http_client
        self._url = provider_url

    async def get_public_ip(self) -> IpAddress:
        """
        Returns the current public IP address of the host machine.

        Returns:
            The public address, e.g. IPv4Address("1.2.3.4").

        Raises:
            IpFetchError: If the upstream provider is unreachable, returns
                          a non-200 response, or returns something that is
                          not an IP address.
        """
        try:
            response = await self._client.get(self._url, headers={"User-Agent": USER_AGENT})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise IpFetchError(
                f"IP provider returned status {exc.response.status_code}."
            ) from exc
        except httpx.RequestError as exc:
            raise IpFetchError(
                f"Could not reach IP provider ({self._url}): {exc}"
            ) from exc

        raw = self._extract(response)
        try:
            ip = ipaddress.ip_address(raw)
        except ValueError as exc:
            raise IpFetchError(f"IP provider returned an invalid address: {raw!r}") from exc

        logger.debug("Current public IP: %s", ip)
        return ip

    @staticmethod
    def _extract(response: httpx.Response) -> str:
        text = response.text.strip()
        if not text.startswith("{"):
            return text
        try:
            data = response.json()
        except ValueError as exc:
            raise IpFetchError(f"IP provider returned invalid JSON: {text!r}") from exc
        if not isinstance(data, dict):
            raise IpFetchError(f"IP provider returned unexpected JSON: {text!r}")
        # NOTE: httpbin reports "a, b" when the request went through a proxy.
        value = str(data.get("ip") or data.get("origin") or "")
        return value.split(",")[0].strip()
