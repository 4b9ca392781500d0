"""
scheduler.py

Responsibility: Sets up the APScheduler AsyncIOScheduler that drives daemon
mode and registers the DDNS check job. Exposes create/run helpers.
Does NOT: contain update decision logic, config parsing, or HTTP calls
directly; those are delegated to UpdateService and its collaborators.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from config import AppConfig, HostConfig
from dependencies import get_http_client, get_ip_service, get_response_cache, get_update_service
from exceptions import IpFetchError, UpdateErrors
from repositories.response_cache import ResponseCache
from services.ip_service import IpService
from services.update_service import UpdateService

logger = logging.getLogger(__name__)

# Job ID used to identify the DDNS check job in APScheduler
_JOB_ID = "ddns_check"


# ---------------------------------------------------------------------------
# Scheduler job
# ---------------------------------------------------------------------------


async def _ddns_check_job(
    cache: ResponseCache,
    ip_service: IpService,
    update_service: UpdateService,
    hosts: Mapping[str, HostConfig],
) -> None:
    """
    APScheduler job: runs one daemon cycle.

    Order matters: pending cache-directory changes are applied first so a
    `clear-cache` run since the last cycle is honoured by this one. A
    failure to fetch the public IP skips the cycle; host failures are
    logged and never stop the loop.

    Args:
        cache: The watched response cache.
        ip_service: Provides the current public IP.
        update_service: Runs the per-host update pass.
        hosts: The configured hosts.

    Returns:
        None
    """
    logger.debug("DDNS check job triggered.")

    if cache.check_disk_changes():
        logger.info("Cache directory changed on disk; reloading entries.")

    try:
        ip = await ip_service.get_public_ip()
    except IpFetchError as exc:
        logger.error("Could not fetch public IP; skipping this cycle: %s", exc)
        return

    logger.info("Check cycle started, current IP: %s", ip)

    try:
        await update_service.update_all(hosts, ip)
    except UpdateErrors as exc:
        logger.error("%d of %d host(s) failed:\n%s", len(exc.errors), len(hosts), exc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def create_scheduler(
    cache: ResponseCache,
    ip_service: IpService,
    update_service: UpdateService,
    hosts: Mapping[str, HostConfig],
    interval_seconds: int = 300,
) -> AsyncIOScheduler:
    """
    Creates and returns a configured AsyncIOScheduler with the DDNS check job.

    The job runs immediately on startup (next_run_time=now) and then at the
    configured interval.

    Args:
        cache: The watched response cache.
        ip_service: Provides the current public IP.
        update_service: Runs the per-host update pass.
        hosts: The configured hosts.
        interval_seconds: Seconds between DDNS check cycles (default 300).

    Returns:
        A configured but not yet started AsyncIOScheduler.
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _ddns_check_job,
        trigger="interval",
        seconds=interval_seconds,
        id=_JOB_ID,
        kwargs={
            "cache": cache,
            "ip_service": ip_service,
            "update_service": update_service,
            "hosts": hosts,
        },
        # NOTE: next_run_time=now triggers the first check immediately on startup
        # rather than waiting a full interval before the first run.
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,  # One cycle at a time keeps a single writer on the cache
        coalesce=True,
    )
    logger.info("DDNS check job scheduled, interval: %ds.", interval_seconds)
    return scheduler


async def run_daemon(config: AppConfig, cache_dir: Path) -> None:
    """
    Runs the daemon until SIGINT or SIGTERM.

    Owns the shared HTTP client and the cache watcher for the lifetime of
    the loop and shuts both down on exit.

    Args:
        config: The loaded configuration.
        cache_dir: The resolved response cache directory.

    Returns:
        None
    """
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Not available on every platform / outside the main thread.
            logger.debug("Cannot install handler for %s.", sig)

    async with get_http_client(config.http_timeout) as http_client:
        cache = get_response_cache(cache_dir)
        with cache:
            scheduler = create_scheduler(
                cache,
                get_ip_service(http_client, config),
                get_update_service(cache, http_client),
                config.hosts,
                interval_seconds=config.poll_interval,
            )
            scheduler.start()
            logger.info("Daemon started for %d host(s); cache at %s.", len(config.hosts), cache_dir)
            try:
                await stop.wait()
            finally:
                scheduler.shutdown(wait=False)
                logger.info("Daemon stopped.")
