"""
ddns/outcome.py

Responsibility: Defines the Outcome value objects (Good, NoChg, FatalError,
RetryableError) describing what the update endpoint said, plus the canonical
"<code> <text>" encoding shared by the wire protocol and the on-disk cache.
Does NOT: make HTTP calls, touch the filesystem, or decide whether to update.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Protocol, Union, runtime_checkable

from exceptions import OutcomeParseError

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

# ---------------------------------------------------------------------------
# Code tables
# ---------------------------------------------------------------------------

GOOD_CODE = "good"
NOCHG_CODE = "nochg"

# Codes that mean "the request itself is wrong": never retried automatically.
FATAL_CODES = frozenset(
    {
        "nohost",
        "badauth",
        "notfqdn",
        "badagent",
        "!donator",
        "conflict",
        "abuse",
        "clienterror",
        "requesterror",
        "parseerror",
    }
)

# Codes that mean "the server is having trouble": retried after server_backoff.
RETRYABLE_CODES = frozenset({"dnserr", "911", "retryable"})

_DESCRIPTIONS = {
    "nohost": "Hostname not registered with account",
    "badauth": "Authentication failed",
    "notfqdn": "Invalid hostname",
    "badagent": "User agent not set or blocked",
    "!donator": "Feature not available for this account",
    "conflict": "Conflict with custom resource record",
    "abuse": "Request blocked by abuse policy",
    "clienterror": "Request rejected by server",
    "requesterror": "Request could not be sent",
    "parseerror": "Invalid response from DDNS server",
    "dnserr": "DNS error on server, wait and retry",
    "911": "Server error, wait and retry",
    "retryable": "Server temporarily unavailable, wait and retry",
}


# ---------------------------------------------------------------------------
# Value objects: the closed set of outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Good:
    """The update was applied; the endpoint now serves `ip`."""

    ip: IpAddress

    @property
    def code(self) -> str:
        return GOOD_CODE

    @property
    def text(self) -> str:
        return str(self.ip)


@dataclass(frozen=True)
class NoChg:
    """The endpoint already served `ip`; nothing changed."""

    ip: IpAddress

    @property
    def code(self) -> str:
        return NOCHG_CODE

    @property
    def text(self) -> str:
        return str(self.ip)


@dataclass(frozen=True)
class FatalError:
    """
    A failure caused by the request or account (bad credentials, unknown
    host, abuse block, ...). Stays in the cache until cleared by hand.
    """

    code: str
    text: str

    def __post_init__(self) -> None:
        if self.code not in FATAL_CODES:
            raise ValueError(f"Not a fatal error code: {self.code!r}")
        _check_single_line(self.text)


@dataclass(frozen=True)
class RetryableError:
    """A transient server-side failure; may be retried after the backoff window."""

    code: str
    text: str

    def __post_init__(self) -> None:
        if self.code not in RETRYABLE_CODES:
            raise ValueError(f"Not a retryable error code: {self.code!r}")
        _check_single_line(self.text)


Outcome = Union[Good, NoChg, FatalError, RetryableError]


def _check_single_line(text: str) -> None:
    # Cache files hold exactly one line per host.
    if "\n" in text or "\r" in text:
        raise ValueError(f"Outcome text must be a single line: {text!r}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_outcome(text: str) -> Outcome:
    """
    Parses canonical outcome text, e.g. "good 1.2.3.4" or "badauth Authentication failed".

    The text is split on the first space only, so error text may itself
    contain spaces. Everything after that space is kept verbatim.

    Args:
        text: The outcome line as stored on disk or returned by the server.

    Returns:
        The matching Outcome value.

    Raises:
        OutcomeParseError: If the code is unknown, a good/nochg address is
                           invalid, or the text spans more than one line.
    """
    if "\n" in text or "\r" in text:
        raise OutcomeParseError(f"Outcome text spans more than one line: {text!r}")

    code, _, rest = text.partition(" ")

    if code in (GOOD_CODE, NOCHG_CODE):
        try:
            ip = ipaddress.ip_address(rest)
        except ValueError as exc:
            raise OutcomeParseError(f"Invalid IP address in {text!r}") from exc
        return Good(ip) if code == GOOD_CODE else NoChg(ip)
    if code in FATAL_CODES:
        return FatalError(code, rest)
    if code in RETRYABLE_CODES:
        return RetryableError(code, rest)
    raise OutcomeParseError(f"Unknown response code in {text!r}")


def format_outcome(outcome: Outcome) -> str:
    """
    Encodes an outcome as "<code> <text>"; the exact inverse of parse_outcome().

    Args:
        outcome: Any Outcome value.

    Returns:
        The canonical single-line text (no trailing newline).
    """
    match outcome:
        case Good() | NoChg() | FatalError() | RetryableError():
            return f"{outcome.code} {outcome.text}"
    raise TypeError(f"Not an outcome: {outcome!r}")


def describe(outcome: Outcome) -> str:
    """
    Returns a human-readable one-line description of an outcome for logs and CLI output.
    """
    match outcome:
        case Good(ip=ip):
            return f"IP updated ({ip})"
        case NoChg(ip=ip):
            return f"IP unchanged ({ip})"
        case FatalError(code=code, text=text):
            return f"Fatal error: {code} {text}".rstrip()
        case RetryableError(code=code, text=text):
            return f"Server error: {code} {text}".rstrip()
    raise TypeError(f"Not an outcome: {outcome!r}")


def is_success(outcome: Outcome) -> bool:
    """True for Good and NoChg."""
    return isinstance(outcome, (Good, NoChg))


def default_text(code: str) -> str:
    """Returns the stock description for an error code, or "" if there is none."""
    return _DESCRIPTIONS.get(code, "")


# ---------------------------------------------------------------------------
# Abstract interface: anything that can push an address to an update endpoint
# ---------------------------------------------------------------------------


@runtime_checkable
class DdnsClient(Protocol):
    """
    Protocol for a single-attempt DDNS update call.

    Implementations must never raise for transport or decoding problems:
    those are mapped into FatalError("requesterror" / "parseerror", ...) or
    RetryableError(...) so the caller always receives an Outcome.
    """

    async def update(self, hostname: str, ip: IpAddress) -> Outcome:
        """
        Points `hostname` at `ip`.

        Args:
            hostname: The fully-qualified name to update.
            ip: The address the record should resolve to.

        Returns:
            The Outcome reported by (or inferred for) the endpoint.
        """
        ...
