"""
tests/unit/test_ip_service.py

Unit tests for services/ip_service.py.
Covers plain-text and JSON providers, IPv6, and the IpFetchError paths.
"""

from __future__ import annotations

import ipaddress

import httpx
import pytest

from config import USER_AGENT
from exceptions import IpFetchError
from services.ip_service import IpService

_IPIFY = "https://api.ipify.org"


# ---------------------------------------------------------------------------
# Accepted provider answers
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "expected"),
    [
        (httpx.Response(200, text="1.2.3.4"), "1.2.3.4"),
        (httpx.Response(200, text="  1.2.3.4\n"), "1.2.3.4"),
        (httpx.Response(200, text="2001:db8::1"), "2001:db8::1"),
        (httpx.Response(200, json={"ip": "9.9.9.9"}), "9.9.9.9"),
        (httpx.Response(200, json={"origin": "5.6.7.8, 10.0.0.1"}), "5.6.7.8"),
    ],
    ids=["plain", "whitespace", "ipv6", "json-ip", "json-origin-via-proxy"],
)
async def test_get_public_ip_parses_provider_answer(mock_http, http_client, response, expected):
    mock_http.get(_IPIFY).mock(return_value=response)

    ip = await IpService(http_client).get_public_ip()

    assert ip == ipaddress.ip_address(expected)


@pytest.mark.asyncio
async def test_get_public_ip_uses_configured_provider_and_user_agent(mock_http, http_client):
    route = mock_http.get("https://ip.example.net/").mock(return_value=httpx.Response(200, text="4.3.2.1"))

    await IpService(http_client, provider_url="https://ip.example.net/").get_public_ip()

    assert route.called
    assert route.calls.last.request.headers["User-Agent"] == USER_AGENT


# ---------------------------------------------------------------------------
# Failures become IpFetchError
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>rate limited</html>"),
        httpx.Response(200, text=""),
        httpx.Response(200, text="{not json"),
        httpx.Response(200, json={"address": "1.2.3.4"}),
        httpx.Response(503),
    ],
    ids=["html", "empty", "broken-json", "json-without-ip", "http-503"],
)
async def test_get_public_ip_rejects_bad_answers(mock_http, http_client, response):
    mock_http.get(_IPIFY).mock(return_value=response)

    with pytest.raises(IpFetchError):
        await IpService(http_client).get_public_ip()


@pytest.mark.asyncio
async def test_get_public_ip_wraps_network_error(mock_http, http_client):
    mock_http.get(_IPIFY).mock(side_effect=httpx.ConnectError("timeout"))

    with pytest.raises(IpFetchError) as exc_info:
        await IpService(http_client).get_public_ip()

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
