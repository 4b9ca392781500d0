"""
tests/unit/test_ddns_client.py

Unit tests for ddns/ddns_client.py.
All update-endpoint calls are intercepted by respx, so no real network traffic.
"""

from __future__ import annotations

import base64
import ipaddress

import httpx
import pytest

from config import USER_AGENT, PasswordAuth, TokenAuth
from ddns.ddns_client import DyndnsClient
from ddns.outcome import DdnsClient, FatalError, Good, NoChg, RetryableError

_URL = "https://dyndns.example.net/nic/update"
_HOST = "home.example.com"
_IP = ipaddress.ip_address("1.2.3.4")
_PASSWORD_AUTH = PasswordAuth(username="user", password="secret")


async def _update(mock_http, response=None, side_effect=None, auth=_PASSWORD_AUTH):
    route = mock_http.get(_URL).mock(return_value=response, side_effect=side_effect)
    async with httpx.AsyncClient() as client:
        outcome = await DyndnsClient(client, _URL, auth).update(_HOST, _IP)
    return outcome, route


def test_client_satisfies_protocol():
    client = DyndnsClient(httpx.AsyncClient(), _URL, _PASSWORD_AUTH)
    assert isinstance(client, DdnsClient)


# ---------------------------------------------------------------------------
# Request shape
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_sends_hostname_ip_basic_auth_and_user_agent(mock_http):
    """The request carries hostname/myip params, basic auth and a User-Agent."""
    _, route = await _update(mock_http, httpx.Response(200, text="good 1.2.3.4"))

    request = route.calls.last.request
    assert request.url.params["hostname"] == _HOST
    assert request.url.params["myip"] == "1.2.3.4"
    expected = base64.b64encode(b"user:secret").decode()
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["User-Agent"] == USER_AGENT


@pytest.mark.asyncio
async def test_update_sends_bearer_token(mock_http):
    _, route = await _update(
        mock_http, httpx.Response(200, text="good 1.2.3.4"), auth=TokenAuth(token="abc123")
    )

    assert route.calls.last.request.headers["Authorization"] == "Bearer abc123"


# ---------------------------------------------------------------------------
# Success bodies
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_update_good(mock_http):
    outcome, _ = await _update(mock_http, httpx.Response(200, text="good 1.2.3.4\n"))
    assert outcome == Good(_IP)


@pytest.mark.asyncio
async def test_update_nochg(mock_http):
    outcome, _ = await _update(mock_http, httpx.Response(200, text="nochg 1.2.3.4"))
    assert outcome == NoChg(_IP)


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_bare_fatal_code_gets_description(mock_http):
    """'nohost' alone is stored with a readable description."""
    outcome, _ = await _update(mock_http, httpx.Response(200, text="nohost"))
    assert outcome == FatalError("nohost", "Hostname not registered with account")


@pytest.mark.asyncio
async def test_conflict_keeps_record_type(mock_http):
    outcome, _ = await _update(mock_http, httpx.Response(200, text="conflict A"))
    assert outcome == FatalError("conflict", "A")


@pytest.mark.asyncio
async def test_911_is_retryable(mock_http):
    outcome, _ = await _update(mock_http, httpx.Response(200, text="911"))
    assert isinstance(outcome, RetryableError)
    assert outcome.code == "911"


@pytest.mark.asyncio
async def test_unknown_body_is_parse_error(mock_http):
    """An unrecognised body becomes FatalError('parseerror'), never a guess."""
    outcome, _ = await _update(mock_http, httpx.Response(200, text="<html>oops</html>"))
    assert isinstance(outcome, FatalError)
    assert outcome.code == "parseerror"


# ---------------------------------------------------------------------------
# HTTP status and transport failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [500, 502, 503, 429])
async def test_server_errors_are_retryable(mock_http, status):
    outcome, _ = await _update(mock_http, httpx.Response(status, text="busy"))
    assert outcome == RetryableError("retryable", f"HTTP {status}: busy")


@pytest.mark.asyncio
async def test_client_error_is_fatal(mock_http):
    outcome, _ = await _update(mock_http, httpx.Response(404))
    assert outcome == FatalError("clienterror", "HTTP 404")


@pytest.mark.asyncio
async def test_client_error_with_dyndns_code_keeps_code(mock_http):
    """A 401 carrying 'badauth' is stored as badauth, not as a generic clienterror."""
    outcome, _ = await _update(mock_http, httpx.Response(401, text="badauth"))
    assert outcome == FatalError("badauth", "Authentication failed")


@pytest.mark.asyncio
async def test_network_error_is_request_error(mock_http):
    """Transport failures never raise; they come back as FatalError('requesterror')."""
    outcome, _ = await _update(mock_http, side_effect=httpx.ConnectError("connection refused"))
    assert isinstance(outcome, FatalError)
    assert outcome.code == "requesterror"
    assert "connection refused" in outcome.text


@pytest.mark.asyncio
async def test_network_error_text_is_single_line(mock_http):
    """A multi-line transport error message is collapsed so it can be cached."""
    outcome, _ = await _update(mock_http, side_effect=httpx.ConnectError("connection refused\n  retry later\n"))
    assert outcome.code == "requesterror"
    assert outcome.text.endswith("connection refused retry later")
