"""Authentication and connection helpers for the backup appliance.

This module centralizes how a Connection is built from a profile file and
environment variables, and applies small normalization rules (such as
sanitizing the server address) so every request targets the same host.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path

import requests

from rbkops.core.endpoints import check_version

_CONFIG_FILE_ENV = "RBKOPS_CONFIG_FILE"
_DEFAULT_API_VERSION = "v1"
_SESSION_PATH = "/api/v1/session"
_LOGIN_TIMEOUT_SECONDS = 30

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class AuthError(RuntimeError):
    """Raised when appliance authentication fails or is not configured."""


@dataclass(frozen=True)
class Connection:
    """
    Target appliance plus the session used to talk to it.

    Attributes:
        server: Host name or address (no scheme, no trailing slash).
        api_version: Default API version for resolved endpoints.
        token: Bearer token sent with every request.
        verify_ssl: Whether TLS certificates are verified.
    """

    server: str
    api_version: str
    token: str
    verify_ssl: bool = True

    @property
    def base_url(self) -> str:
        return f"https://{self.server}"


@dataclass(frozen=True)
class Profile:
    """Raw settings read from the profile file and environment."""

    name: str
    values: dict[str, str]

    def get(self, key: str, default: str | None = None) -> str | None:
        env = os.getenv(f"RBKOPS_{key.upper()}")
        if env is not None and env != "":
            return env
        value = self.values.get(key)
        return value if value not in (None, "") else default

    def get_bool(self, key: str, default: bool = True) -> bool:
        raw = self.get(key)
        if raw is None:
            return default
        lowered = raw.strip().lower()
        if lowered in _TRUE:
            return True
        if lowered in _FALSE:
            return False
        raise AuthError(f"Invalid boolean for '{key}' in profile '{self.name}': {raw}")


def sanitize_host(host: str | None) -> str | None:
    """
    Normalize an appliance server value.

    - Removes a leading scheme (https://)
    - Removes query strings and paths
    - Removes trailing slashes
    """
    if not host:
        return host
    host = host.strip()
    if "://" in host:
        host = host.split("://", 1)[1]
    host = host.split("?", 1)[0]
    host = host.split("/", 1)[0]
    return host.rstrip("/")


def config_path() -> Path:
    """Return the profile file location, honoring RBKOPS_CONFIG_FILE."""
    override = os.getenv(_CONFIG_FILE_ENV)
    return Path(override) if override else Path.home() / ".rbkopscfg"


def load_profile(profile: str | None = None) -> Profile:
    """
    Load a named profile from the profile file.

    A missing file is not an error (everything may come from the
    environment), but naming a profile that does not exist is.
    """
    parser = configparser.ConfigParser()
    path = config_path()
    if path.exists():
        parser.read(path, encoding="utf-8")

    if profile:
        if not parser.has_section(profile):
            raise AuthError(f"Profile '{profile}' not found in {path}")
        return Profile(name=profile, values=dict(parser.items(profile)))

    return Profile(name="DEFAULT", values=dict(parser.defaults()))


def login(
    server: str,
    username: str,
    password: str,
    *,
    api_version: str = _DEFAULT_API_VERSION,
    verify_ssl: bool = True,
) -> Connection:
    """Exchange username/password for a session token."""
    host = sanitize_host(server)
    if not host:
        raise AuthError("No server configured for login.")
    try:
        response = requests.post(
            f"https://{host}{_SESSION_PATH}",
            auth=(username, password),
            headers={"Accept": "application/json"},
            verify=verify_ssl,
            timeout=_LOGIN_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise AuthError(f"Could not reach {host}: {exc}") from exc

    if response.status_code in (401, 403):
        raise AuthError(f"Authentication to {host} was rejected for user '{username}'.")
    if response.status_code >= 400:
        raise AuthError(f"Login to {host} failed with HTTP {response.status_code}.")

    token = (response.json() or {}).get("token")
    if not token:
        raise AuthError(f"Login to {host} returned no session token.")
    return Connection(
        server=host, api_version=api_version, token=token, verify_ssl=verify_ssl
    )


def get_connection(
    profile: str | None = None,
    *,
    server: str | None = None,
    api_version: str | None = None,
) -> Connection:
    """
    Create a Connection from a profile and environment variables.

    Explicit `server` / `api_version` arguments win over the profile. A
    configured API token is used as-is; otherwise username/password are
    exchanged for a session token.
    """
    settings = load_profile(profile)
    server = sanitize_host(server or settings.get("server"))
    if not server:
        raise AuthError(
            "No appliance server configured. Set RBKOPS_SERVER or add "
            f"'server' to profile '{settings.name}' in {config_path()}."
        )

    api_version = check_version(
        api_version or settings.get("api_version", _DEFAULT_API_VERSION)
    )
    verify_ssl = settings.get_bool("verify_ssl", True)

    token = settings.get("token")
    if token:
        return Connection(
            server=server, api_version=api_version, token=token, verify_ssl=verify_ssl
        )

    username = settings.get("username")
    password = settings.get("password")
    if not username or not password:
        raise AuthError(
            f"No credentials for {server}. Configure 'token', or 'username' and "
            "'password' (or RBKOPS_TOKEN / RBKOPS_USERNAME / RBKOPS_PASSWORD)."
        )
    return login(
        server, username, password, api_version=api_version, verify_ssl=verify_ssl
    )
