"""
services/update_service.py

Responsibility: Orchestrates DDNS updates. It consults the response cache for
each host, applies the backoff and fatal-error policy, calls the update
endpoint only when needed, and records every outcome back into the cache.
Does NOT: make HTTP calls directly, fetch the public IP, or parse config files.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone

from config import HostConfig
from ddns.outcome import (
    DdnsClient,
    FatalError,
    Good,
    IpAddress,
    NoChg,
    RetryableError,
    describe,
)
from exceptions import (
    BackoffError,
    CacheParseError,
    FatalOutcomeError,
    GddnsError,
    UpdateErrors,
    UpdateFailedError,
)
from repositories.response_cache import ResponseCache

logger = logging.getLogger(__name__)

# Per-host results returned by update_host()
UNCHANGED = "unchanged"
UPDATED = "updated"
NOCHG = "nochg"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UpdateService:
    """
    Decides, per host, whether the update endpoint needs to be called.

    A host is skipped without any network call when its cached outcome
    already names the current IP. A cached fatal error blocks the host until
    the cache entry is cleared by hand; a cached retryable error blocks it
    for server_backoff minutes. Whatever the endpoint answers is written to
    the cache, failures included, so those rules hold across runs.

    Hosts are processed one at a time; update_all() isolates failures so
    one bad host never prevents the others from being attempted.

    Collaborators:
        - ResponseCache: remembers the last outcome per host
        - client_factory: builds a DdnsClient for a host's endpoint/credentials
    """

    def __init__(
        self,
        cache: ResponseCache,
        client_factory: Callable[[HostConfig], DdnsClient],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initialises the service with all required collaborators.

        Args:
            cache: The response cache shared by every host.
            client_factory: Returns the DdnsClient to use for a host.
            clock: Source of "now" for backoff decisions; timezone-aware UTC.
        """
        self._cache = cache
        self._client_factory = client_factory
        self._clock = clock

    # ---------------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------------

    async def update_host(self, hostname: str, host_config: HostConfig, ip: IpAddress) -> str:
        """
        Brings one host's DNS record in line with `ip` if needed.

        Args:
            hostname: The fully-qualified hostname to update.
            host_config: Endpoint, credentials and backoff for this host.
            ip: The current public IP.

        Returns:
            "unchanged" : cache already names `ip`; no request was sent
            "updated"   : the endpoint applied the new address
            "nochg"     : the endpoint reported the address was already set

        Raises:
            FatalOutcomeError: A fatal error is cached for this host.
            BackoffError: A retryable error was cached less than server_backoff ago.
            UpdateFailedError: The endpoint answered with an error outcome.
            CacheError: The cache could not be read or written.
        """
        old_ip = self._cached_ip(hostname, host_config)

        if old_ip is not None and old_ip == ip:
            logger.info("IP for %s already up to date (%s).", hostname, ip)
            return UNCHANGED
        if old_ip is not None:
            logger.info("Updating IP for %s from %s to %s.", hostname, old_ip, ip)
        else:
            logger.info("No cached value. Setting IP for %s to %s.", hostname, ip)

        client = self._client_factory(host_config)
        outcome = await client.update(hostname, ip)

        # NOTE: Error outcomes are cached too; they drive the next run's backoff.
        # A retryable one is always rewritten so its backoff window restarts now.
        self._cache.put(hostname, outcome, force=isinstance(outcome, RetryableError))

        match outcome:
            case Good():
                logger.info("IP updated for %s.", hostname)
                return UPDATED
            case NoChg():
                logger.warning("IP unchanged for %s (%s).", hostname, describe(outcome))
                return NOCHG
            case FatalError(code=code, text=text) | RetryableError(code=code, text=text):
                raise UpdateFailedError(hostname, code, text)
        raise TypeError(f"Unexpected outcome from DDNS client: {outcome!r}")

    async def update_all(self, hosts: Mapping[str, HostConfig], ip: IpAddress) -> dict[str, str]:
        """
        Runs update_host() for every configured host, in order.

        Every host is attempted regardless of earlier failures.

        Args:
            hosts: Mapping of hostname to its HostConfig.
            ip: The current public IP.

        Returns:
            Mapping of hostname to its update_host() result, when no host failed.

        Raises:
            UpdateErrors: If at least one host failed; lists every failed
                          host and its reason, plus the hosts that succeeded.
        """
        results: dict[str, str] = {}
        errors: dict[str, Exception] = {}

        for hostname, host_config in hosts.items():
            try:
                results[hostname] = await self.update_host(hostname, host_config, ip)
            except (FatalOutcomeError, BackoffError) as exc:
                logger.warning("Skipped %s: %s", hostname, exc)
                errors[hostname] = exc
            except GddnsError as exc:
                logger.error("Failed to update %s: %s", hostname, exc)
                errors[hostname] = exc
            except Exception as exc:  # noqa: BLE001
                logger.exception("Unexpected error updating %s.", hostname)
                errors[hostname] = exc

        summary_parts = [f"{len(hosts)} host(s) checked"]
        updated = sum(1 for r in results.values() if r != UNCHANGED)
        if updated:
            summary_parts.append(f"{updated} updated")
        if errors:
            summary_parts.append(f"{len(errors)} failed")
        logger.info("Update pass: %s.", ", ".join(summary_parts))

        if errors:
            raise UpdateErrors(errors, succeeded=results)
        return results

    # ---------------------------------------------------------------------------
    # Internal helpers
    # ---------------------------------------------------------------------------

    def _cached_ip(self, hostname: str, host_config: HostConfig) -> IpAddress | None:
        """
        Classifies the cached outcome for a host.

        Args:
            hostname: The host to look up.
            host_config: Supplies server_backoff.

        Returns:
            The last known address, or None if the endpoint should be called
            without one (no entry, corrupt entry, or expired backoff).

        Raises:
            FatalOutcomeError: A fatal error is cached.
            BackoffError: A retryable error is cached and still within backoff.
            CacheError: The cache file could not be read.
        """
        try:
            entry = self._cache.get(hostname)
        except CacheParseError as exc:
            logger.warning("Ignoring bad cache entry for %s: %r", hostname, exc.content)
            return None

        if entry is None:
            return None

        match entry.outcome:
            case Good(ip=old_ip) | NoChg(ip=old_ip):
                return old_ip
            case FatalError(code=code, text=text):
                raise FatalOutcomeError(hostname, code, text)
            case RetryableError(code=code, text=text):
                age = self._clock() - entry.timestamp
                if age < host_config.backoff:
                    raise BackoffError(code, text, age, host_config.backoff)
                logger.info("Backoff for %s expired after %s; retrying.", hostname, age)
                return None
        raise TypeError(f"Unexpected cached outcome: {entry.outcome!r}")
