"""
app.py

Responsibility: Command-line entry point. Parses arguments, configures
logging, wires services via dependencies.py, and maps results to exit codes.
Does NOT: contain update decision logic, HTTP calls, or cache file handling.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from config import DEFAULT_CONFIG_FILE, DEFAULT_SERVER_BACKOFF, AppConfig, HostConfig, __version__, load_config, resolve_cache_dir
from ddns.outcome import describe, format_outcome, is_success
from dependencies import get_http_client, get_ip_service, get_response_cache, get_update_service
from exceptions import ConfigLoadError, GddnsError, UpdateErrors
from logger import configure_logging
from scheduler import run_daemon

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _hostname(value: str) -> str:
    if not value or "/" in value or os.sep in value or value in (".", ".."):
        raise argparse.ArgumentTypeError(f"invalid hostname: {value!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """
    Builds the argument parser for the gddns command.

    Returns:
        The configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="gddns",
        description="Keep dynamic DNS records pointed at this host's public IP.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config-file", type=Path, default=DEFAULT_CONFIG_FILE, help="Path to config file")
    parser.add_argument("--cache-dir", type=Path, default=None, help="Path to response cache directory")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("daemon", help="Update all configured hosts every poll_interval seconds")

    update_host = subparsers.add_parser(
        "update-host", help="Update a specific host providing arguments from the command line"
    )
    update_host.add_argument("hostname", type=_hostname, help="Hostname to update")
    update_host.add_argument("-d", "--dyndns-url", required=True, help="URL for the dynamic DNS update API")
    update_host.add_argument("-u", "--username", help="Username for the dynamic DNS service")
    update_host.add_argument("-p", "--password", help="Password or access key for the dynamic DNS service")
    update_host.add_argument("-t", "--token", help="Access token (instead of username/password)")
    update_host.add_argument(
        "--server-backoff",
        type=int,
        default=DEFAULT_SERVER_BACKOFF,
        help="Minutes to wait after a server error before retrying",
    )

    clear_cache = subparsers.add_parser("clear-cache", help="Clear the response cache for a host")
    clear_cache.add_argument("hostname", type=_hostname, help="Hostname to remove from the cache")

    show_cache = subparsers.add_parser("show-cache", help="Show the cached response for a host")
    show_cache.add_argument("hostname", type=_hostname, help="Hostname to look up")

    return parser


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _update_hosts(config: AppConfig, hosts: dict[str, HostConfig], cache_dir: Path) -> int:
    async with get_http_client(config.http_timeout) as http_client:
        ip = await get_ip_service(http_client, config).get_public_ip()
        cache = get_response_cache(cache_dir)
        service = get_update_service(cache, http_client)
        try:
            await service.update_all(hosts, ip)
        except UpdateErrors as exc:
            logger.error("%s", exc)
            return 1
    return 0


def _optional_config(config_file: Path) -> AppConfig | None:
    # Commands that work without a config file still honour its cache_dir.
    if not config_file.exists():
        return None
    return load_config(config_file)


def cmd_update_all(args: argparse.Namespace) -> int:
    config = load_config(args.config_file)
    if not config.hosts:
        logger.warning("No hosts configured in %s.", args.config_file)
        return 0
    cache_dir = resolve_cache_dir(args.cache_dir, config)
    return asyncio.run(_update_hosts(config, dict(config.hosts), cache_dir))


def cmd_daemon(args: argparse.Namespace) -> int:
    config = load_config(args.config_file)
    cache_dir = resolve_cache_dir(args.cache_dir, config)
    asyncio.run(run_daemon(config, cache_dir))
    return 0


def cmd_update_host(args: argparse.Namespace) -> int:
    raw: dict[str, object] = {"dyndns_url": args.dyndns_url, "server_backoff": args.server_backoff}
    for key in ("username", "password", "token"):
        value = getattr(args, key)
        if value is not None:
            raw[key] = value
    try:
        host_config = HostConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid arguments for {args.hostname}: {exc}") from exc

    file_config = _optional_config(args.config_file)
    cache_dir = resolve_cache_dir(args.cache_dir, file_config)
    config = file_config or AppConfig()
    return asyncio.run(_update_hosts(config, {args.hostname: host_config}, cache_dir))


def cmd_clear_cache(args: argparse.Namespace) -> int:
    cache_dir = resolve_cache_dir(args.cache_dir, _optional_config(args.config_file))
    get_response_cache(cache_dir).clear(args.hostname)
    return 0


def cmd_show_cache(args: argparse.Namespace) -> int:
    cache_dir = resolve_cache_dir(args.cache_dir, _optional_config(args.config_file))
    entry = get_response_cache(cache_dir).get(args.hostname)
    if entry is None:
        print(f"{args.hostname}: no cache entry")
        return 1
    age = datetime.now(timezone.utc) - entry.timestamp
    print(f"{args.hostname}: {format_outcome(entry.outcome)}")
    print(f"  {describe(entry.outcome)}")
    print(f"  recorded {entry.timestamp.astimezone():%Y-%m-%d %H:%M:%S} ({int(age.total_seconds() // 60)} minutes ago)")
    if not is_success(entry.outcome):
        print(f"  run `gddns clear-cache {args.hostname}` to allow an update right away")
    return 0


_COMMANDS = {
    None: cmd_update_all,
    "daemon": cmd_daemon,
    "update-host": cmd_update_host,
    "clear-cache": cmd_clear_cache,
    "show-cache": cmd_show_cache,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """
    Runs the gddns command.

    Args:
        argv: Arguments without the program name; defaults to sys.argv[1:].

    Returns:
        The process exit code: 0 on success, 1 if any host failed or the
        command could not run.
    """
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return _COMMANDS[args.command](args)
    except GddnsError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
