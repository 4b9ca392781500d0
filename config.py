"""
config.py

Responsibility: Loads the TOML configuration file and validates it into
typed, immutable settings, including the per-host credential form, which
is resolved exactly once here into PasswordAuth or TokenAuth.
Does NOT: make HTTP calls, touch the response cache, or decide on updates.
"""

from __future__ import annotations

import logging
import os
import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator, model_validator

from exceptions import ConfigLoadError

logger = logging.getLogger(__name__)

__version__ = "0.3.0"

USER_AGENT = f"gddns/{__version__}"

# Both paths can be overridden from the environment.
DEFAULT_CONFIG_FILE = Path(os.getenv("GDDNS_CONFIG_FILE", "/etc/gddns/config.toml"))
DEFAULT_CACHE_DIR = Path(os.getenv("GDDNS_CACHE_DIR", "/var/cache/gddns"))

DEFAULT_IP_PROVIDER_URL = "https://api.ipify.org"

# Minutes to wait after a retryable server error before trying again.
DEFAULT_SERVER_BACKOFF = 5


# ---------------------------------------------------------------------------
# Credentials: exactly one form per host
# ---------------------------------------------------------------------------


class PasswordAuth(BaseModel):
    """Username/password pair sent as HTTP basic auth."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    password: SecretStr


class TokenAuth(BaseModel):
    """Access token sent as a bearer Authorization header."""

    model_config = ConfigDict(frozen=True)

    token: SecretStr


Auth = Union[PasswordAuth, TokenAuth]


# ---------------------------------------------------------------------------
# Host and application settings
# ---------------------------------------------------------------------------


class HostConfig(BaseModel):
    """
    Settings for one managed hostname.

    The file format is flat (username/password or token next to dyndns_url);
    the before-validator folds those keys into a single `auth` value so the
    rest of the application never has to check which form is present.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Full URL of the dyndns2 update endpoint
    dyndns_url: str = Field(min_length=1)

    auth: Auth

    # Minutes to wait after a retryable server error
    server_backoff: int = Field(default=DEFAULT_SERVER_BACKOFF, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _fold_credentials(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "auth" in data:
            return data

        data = dict(data)
        username = data.pop("username", None)
        password = data.pop("password", None)
        token = data.pop("token", None)

        has_password = username is not None or password is not None
        if has_password and token is not None:
            raise ValueError("give either username/password or token, not both")
        if token is not None:
            data["auth"] = {"token": token}
        elif username is not None and password is not None:
            data["auth"] = {"username": username, "password": password}
        elif has_password:
            raise ValueError("username and password must be given together")
        else:
            raise ValueError("missing credentials: give username/password or token")
        return data

    @property
    def backoff(self) -> timedelta:
        """server_backoff as a timedelta."""
        return timedelta(minutes=self.server_backoff)


class AppConfig(BaseModel):
    """
    The whole configuration file.

    Hostnames are used verbatim as cache file names, so they may not contain
    path separators.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cache_dir: Path | None = None

    # Seconds between daemon cycles
    poll_interval: int = Field(default=300, gt=0)

    # Seconds before an outbound HTTP request is abandoned
    http_timeout: float = Field(default=30.0, gt=0)

    ip_provider_url: str = DEFAULT_IP_PROVIDER_URL

    hosts: dict[str, HostConfig] = Field(default_factory=dict)

    @field_validator("hosts")
    @classmethod
    def _check_hostnames(cls, hosts: dict[str, HostConfig]) -> dict[str, HostConfig]:
        for hostname in hosts:
            if not hostname or "/" in hostname or os.sep in hostname or hostname in (".", ".."):
                raise ValueError(f"invalid hostname {hostname!r}")
        return hosts


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_file: Path) -> AppConfig:
    """
    Reads and validates the TOML configuration file.

    Args:
        config_file: Path to the TOML file, e.g. /etc/gddns/config.toml.

    Returns:
        The validated AppConfig.

    Raises:
        ConfigLoadError: If the file cannot be read, is not valid TOML, or
                         fails validation.
    """
    try:
        with open(config_file, "rb") as f:
            raw = tomllib.load(f)
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {config_file}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"Invalid TOML in {config_file}: {exc}") from exc

    try:
        config = AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigLoadError(f"Invalid config in {config_file}: {exc}") from exc

    logger.debug("Loaded config from %s with %d host(s).", config_file, len(config.hosts))
    return config


def resolve_cache_dir(cli_value: Path | None, config: AppConfig | None = None) -> Path:
    """
    Picks the cache directory: command line, then config file, then default.

    Args:
        cli_value: The --cache-dir argument, if given.
        config: The loaded config, if one was loaded.

    Returns:
        The directory to use for the response cache.
    """
    if cli_value is not None:
        return cli_value
    if config is not None and config.cache_dir is not None:
        return config.cache_dir
    return DEFAULT_CACHE_DIR
