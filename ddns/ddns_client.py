"""
ddns/ddns_client.py

Responsibility: Implements the DdnsClient protocol for dyndns2-style update
endpoints (Google Domains, No-IP, Dyn, ...). All update-endpoint HTTP calls
are concentrated here; no other file may call the endpoint directly.
Does NOT: read configuration files, consult the response cache, or retry.
"""

from __future__ import annotations

import logging

import httpx

from config import PasswordAuth, TokenAuth, USER_AGENT
from ddns.outcome import (
    FatalError,
    IpAddress,
    Outcome,
    RetryableError,
    default_text,
    format_outcome,
    parse_outcome,
)
from exceptions import OutcomeParseError

logger = logging.getLogger(__name__)


class DyndnsClient:
    """
    Sends one dyndns2 update request and classifies the answer as an Outcome.

    All outbound requests go through the injected httpx.AsyncClient, making
    this class fully testable without real network calls (use respx.mock).
    The client never raises for HTTP problems: every failure comes back as a
    FatalError or RetryableError so the caller can persist it.

    Collaborators:
        - httpx.AsyncClient: injected HTTP client; must be kept alive externally
        - DdnsClient: this class satisfies the protocol contract
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        dyndns_url: str,
        auth: PasswordAuth | TokenAuth,
    ) -> None:
        """
        Initialises the client for one update endpoint and one set of credentials.

        Args:
            http_client: A long-lived httpx.AsyncClient instance.
            dyndns_url: Full URL of the update endpoint, e.g.
                        "https://domains.google.com/nic/update".
            auth: The validated credentials for this host.
        """
        self._client = http_client
        self._url = dyndns_url
        self._headers = {"User-Agent": USER_AGENT}
        self._auth: httpx.Auth | None = None

        match auth:
            case PasswordAuth(username=username, password=password):
                self._auth = httpx.BasicAuth(username, password.get_secret_value())
            case TokenAuth(token=token):
                self._headers["Authorization"] = f"Bearer {token.get_secret_value()}"

    # ---------------------------------------------------------------------------
    # DdnsClient implementation
    # ---------------------------------------------------------------------------

    async def update(self, hostname: str, ip: IpAddress) -> Outcome:
        """
        Asks the endpoint to point `hostname` at `ip`.

        Args:
            hostname: The fully-qualified name to update.
            ip: The new address.

        Returns:
            The classified Outcome. Transport failures become
            FatalError("requesterror"), 5xx/429 become RetryableError("retryable"),
            other 4xx become FatalError("clienterror") and unreadable bodies
            become FatalError("parseerror").
        """
        params = {"hostname": hostname, "myip": str(ip)}
        logger.debug("GET %s params=%s", self._url, params)

        try:
            response = await self._client.get(
                self._url, params=params, headers=self._headers, auth=self._auth
            )
        except httpx.RequestError as exc:
            logger.error("Network error calling %s: %s", self._url, exc)
            detail = " ".join(str(exc).split())
            return FatalError("requesterror", f"Network error calling {self._url}: {detail}")

        body = response.text.strip()
        logger.debug("Response (%d) for %s: %s", response.status_code, hostname, body)

        if response.status_code == 429 or response.is_server_error:
            return RetryableError("retryable", _status_text(response.status_code, body))
        if response.is_error:
            # Some providers send a dyndns2 code with a 4xx status (e.g. 401 + "badauth").
            outcome = self._parse_body(body)
            if isinstance(outcome, (FatalError, RetryableError)) and outcome.code != "parseerror":
                return outcome
            return FatalError("clienterror", _status_text(response.status_code, body))

        return self._parse_body(body)

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    @staticmethod
    def _parse_body(body: str) -> Outcome:
        """
        Converts a dyndns2 response body into an Outcome.

        Only the first line is considered. Bare error codes ("nohost") get
        their stock description as text so the cached line stays readable.

        Args:
            body: The stripped response body.

        Returns:
            The parsed Outcome, or FatalError("parseerror") if the body is not
            a recognised response.
        """
        line = body.splitlines()[0] if body else ""
        try:
            outcome = parse_outcome(line)
        except OutcomeParseError:
            logger.warning("Unrecognised response from DDNS server: %r", body)
            return FatalError("parseerror", f"Invalid response from DDNS server: {line!r}")

        match outcome:
            case FatalError(code=code, text=""):
                return FatalError(code, default_text(code))
            case RetryableError(code=code, text=""):
                return RetryableError(code, default_text(code))

        logger.debug("Parsed response: %s", format_outcome(outcome))
        return outcome


def _status_text(status_code: int, body: str) -> str:
    if not body:
        return f"HTTP {status_code}"
    return f"HTTP {status_code}: {body.splitlines()[0]}"
