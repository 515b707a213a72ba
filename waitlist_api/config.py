"""Configuration management for the waitlist service."""
from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

from .database import resolve_database_path

logger = logging.getLogger("waitlist.config")

DEFAULT_PORT = 5000
DEFAULT_CLIENT_URL = "http://localhost:3000"
DEFAULT_FAILURE_REDIRECT = "/login"
DEFAULT_SESSION_TTL_HOURS = 24
DEFAULT_TRUSTED_PROXIES: Tuple[str, ...] = ("127.0.0.1",)

# Setting name -> environment variable that overrides it.
_ENV_OVERRIDES: Dict[str, str] = {
    "client_url": "CLIENT_URL",
    "session_secret": "SESSION_SECRET",
    "google_client_id": "GOOGLE_CLIENT_ID",
    "google_client_secret": "GOOGLE_CLIENT_SECRET",
    "google_callback_url": "GOOGLE_CALLBACK_URL",
    "port": "PORT",
    "database_path": "WAITLIST_DB_PATH",
    "secure_cookies": "WAITLIST_SESSION_SECURE",
    "failure_redirect": "LOGIN_FAILURE_REDIRECT",
    "session_ttl_hours": "WAITLIST_SESSION_TTL_HOURS",
    "trusted_proxies": "WAITLIST_TRUSTED_PROXIES",
}


def _env_flag(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _positive_int(name: str, value: object) -> int:
    try:
        number = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {number}")
    return number


def _host_list(value: object) -> Tuple[str, ...]:
    if value is None:
        return ()
    items = value.split(",") if isinstance(value, str) else value
    if not isinstance(items, (list, tuple)):
        raise ValueError(f"trusted_proxies must be a list or comma-separated string, got {value!r}")
    return tuple(str(item).strip() for item in items if str(item).strip())


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    client_url: str = DEFAULT_CLIENT_URL
    session_secret: Optional[str] = None
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_callback_url: Optional[str] = None
    port: int = DEFAULT_PORT
    database_path: Path = resolve_database_path(None)
    secure_cookies: bool = False
    failure_redirect: str = DEFAULT_FAILURE_REDIRECT
    session_ttl_hours: int = DEFAULT_SESSION_TTL_HOURS
    trusted_proxies: Tuple[str, ...] = DEFAULT_TRUSTED_PROXIES

    @property
    def oauth_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)

    @property
    def profile_redirect(self) -> str:
        return f"{self.client_url}/profile"

    @staticmethod
    def from_mapping(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw configuration values."""

        unknown = set(data.keys()) - set(_ENV_OVERRIDES)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        defaults = Settings()
        client_url = _optional_str(data.get("client_url")) or defaults.client_url
        raw_db_path = _optional_str(data.get("database_path"))

        return Settings(
            client_url=client_url.rstrip("/"),
            session_secret=_optional_str(data.get("session_secret")),
            google_client_id=_optional_str(data.get("google_client_id")),
            google_client_secret=_optional_str(data.get("google_client_secret")),
            google_callback_url=_optional_str(data.get("google_callback_url")),
            port=_positive_int("port", data.get("port", DEFAULT_PORT)),
            database_path=resolve_database_path(raw_db_path),
            secure_cookies=_env_flag(data.get("secure_cookies"), False),
            failure_redirect=_optional_str(data.get("failure_redirect")) or DEFAULT_FAILURE_REDIRECT,
            session_ttl_hours=_positive_int(
                "session_ttl_hours",
                data.get("session_ttl_hours", DEFAULT_SESSION_TTL_HOURS),
            ),
            trusted_proxies=_host_list(data.get("trusted_proxies")) or DEFAULT_TRUSTED_PROXIES,
        )

    def with_session_secret(self) -> "Settings":
        """Return settings guaranteed to carry a session secret."""

        if self.session_secret:
            return self
        logger.warning(
            "SESSION_SECRET is not set; generated a random secret. Sessions will not"
            " survive a restart."
        )
        return replace(self, session_secret=secrets.token_urlsafe(32))


def _load_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from an optional YAML file overlaid by the environment."""

    env = os.environ if environ is None else environ
    if config_path is None and env.get("WAITLIST_CONFIG"):
        config_path = Path(env["WAITLIST_CONFIG"]).expanduser()

    values: Dict[str, object] = {}
    if config_path is not None:
        values.update(_load_yaml(config_path))

    for key, env_name in _ENV_OVERRIDES.items():
        if env.get(env_name) is not None:
            values[key] = env[env_name]

    return Settings.from_mapping(values)


__all__ = ["Settings", "load_settings", "DEFAULT_PORT"]
