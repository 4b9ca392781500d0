"""
exceptions.py

Responsibility: Defines all custom exception classes used across the application.
Does NOT: contain business logic, logging, or HTTP handling.
"""

from __future__ import annotations

from datetime import timedelta


class GddnsError(Exception):
    """
    Base class for every error raised deliberately by this application.

    The command-line entry point catches this type, logs it, and exits
    with a non-zero status.
    """


class ConfigLoadError(GddnsError):
    """
    Raised by load_config() when the config file is missing, is not valid
    TOML, or fails validation (e.g. a host with both password and token).
    """


class IpFetchError(GddnsError):
    """
    Raised by IpService when the public IP address cannot be determined.

    This may occur due to network connectivity issues or an unexpected
    response from the upstream IP provider (e.g. api.ipify.org).
    """


class OutcomeParseError(GddnsError):
    """
    Raised by parse_outcome() when text is not a canonical outcome: an
    unknown code, or a good/nochg line whose address does not parse.
    """


class CacheError(GddnsError):
    """
    Raised by ResponseCache when the cache directory or a cache file cannot
    be read, written, or removed.
    """


class CacheParseError(CacheError):
    """
    Raised by ResponseCache.get() when a cache file exists but its content
    is not a valid outcome. Callers may treat the entry as absent.
    """

    def __init__(self, hostname: str, content: str) -> None:
        super().__init__(f"Bad cache entry for {hostname}: {content!r}")
        self.hostname = hostname
        self.content = content


class UpdateError(GddnsError):
    """Base class for a single host's update being refused or failing."""


class FatalOutcomeError(UpdateError):
    """
    Raised when the cached outcome for a host is a fatal error. The host is
    never retried automatically; the cache entry must be cleared by hand.
    """

    def __init__(self, hostname: str, code: str, text: str) -> None:
        super().__init__(
            f'Fatal error on previous run: "{code} {text}". '
            f"Fix the error and run `gddns clear-cache {hostname}` before running again."
        )
        self.hostname = hostname
        self.code = code
        self.text = text


class BackoffError(UpdateError):
    """
    Raised when a retryable server error was recorded less than
    server_backoff minutes ago.
    """

    def __init__(self, code: str, text: str, age: timedelta, backoff: timedelta) -> None:
        self.code = code
        self.text = text
        self.age = age
        self.backoff = backoff
        self.retry_in = backoff - age
        super().__init__(
            f'Server error {_format_age(age)} ago: "{code} {text}". '
            f"Waiting {int(backoff.total_seconds() // 60)} minutes before retry "
            f"(retry in {_format_age(self.retry_in)})."
        )


class UpdateFailedError(UpdateError):
    """Raised when the update endpoint answered with an error outcome."""

    def __init__(self, hostname: str, code: str, text: str) -> None:
        super().__init__(f'Failed to update DNS for {hostname}: "{code} {text}"')
        self.hostname = hostname
        self.code = code
        self.text = text


class UpdateErrors(GddnsError):
    """
    Aggregate failure for a batch: one reason per failed host.

    Raised by UpdateService.update_all() after every host has been
    attempted. Hosts that succeeded are listed in `succeeded` so callers
    can still report them.
    """

    def __init__(self, errors: dict[str, Exception], succeeded: dict[str, str] | None = None) -> None:
        self.errors = errors
        self.succeeded = succeeded or {}
        super().__init__(
            "\n".join(f"Failed to update {hostname}: {exc}" for hostname, exc in errors.items())
        )


def _format_age(age: timedelta) -> str:
    seconds = max(int(age.total_seconds()), 0)
    if seconds >= 120:
        return f"{seconds // 60} minutes"
    return f"{seconds} seconds"
