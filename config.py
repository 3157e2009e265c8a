"""Configuration constants and startup configuration for the static site server."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path

HOST: str = "127.0.0.1"
PORT: int = 8080
PORT_ENV_VAR: str = "FRONTEND_PORT"
DEV_MODE_ENV_VAR: str = "SITE_DEV_MODE"
HOSTNAME_ENV_VAR: str = "SITE_HOSTNAME"
STATIC_DIR: str = "."
DEFAULT_DOCUMENT: str = "index.html"
SERVER_NAME: str = "luganda-static/1.0"

READ_CHUNK_SIZE: int = 8192
WRITE_CHUNK_SIZE: int = 65_536
MAX_HEADER_BYTES: int = 16_384
MAX_TARGET_LENGTH: int = 4096
MAX_KEEPALIVE_REQUESTS: int = 100
MAX_ACTIVE_CONNECTIONS: int = 256
KEEPALIVE_TIMEOUT_SECS: int = 5
SELECT_TIMEOUT_SECS: float = 0.2
IDLE_SWEEP_INTERVAL_SECS: float = 1.0
DRAIN_TIMEOUT_SECS: float = 10.0
LOG_FORMAT: str = "plain"

HTTP_TIMEOUT_SECS: float = 10.0

PRODUCTION_HOSTS: frozenset[str] = frozenset({"watch.unrulymovies.com", "unrulymovies.com"})
PRODUCTION_HOST_SUFFIXES: tuple[str, ...] = (".netlify.app",)
LOCAL_HOSTS: frozenset[str] = frozenset({"localhost", "127.0.0.1", "::1"})
PRODUCTION_API_URL: str = "https://luganda-translated-movies-production.up.railway.app"
DEVELOPMENT_API_URL: str = "http://localhost:5000"


@dataclass(frozen=True, slots=True)
class SiteProfile:
    name: str
    port: int
    disable_cache: bool
    pages: tuple[str, ...] = ()


SITE_PROFILES: dict[str, SiteProfile] = {
    "frontend": SiteProfile(name="frontend", port=PORT, disable_cache=True),
    "tv": SiteProfile(
        name="tv",
        port=3000,
        disable_cache=False,
        pages=("uganda-tv.html", "index.html", "player.html"),
    ),
}


def _is_truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def detect_environment(hostname: str) -> str:
    """Classify a hostname as "production" or "development"."""
    normalized = hostname.strip().lower()
    if normalized in LOCAL_HOSTS:
        return "development"
    if normalized in PRODUCTION_HOSTS or normalized.endswith(PRODUCTION_HOST_SUFFIXES):
        return "production"
    # Unknown hosts talk to the production API, matching the deployed front end.
    return "production"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = HOST
    port: int = PORT
    root: Path = Path(STATIC_DIR)
    default_document: str = DEFAULT_DOCUMENT
    site: str = "frontend"
    disable_cache: bool = True
    environment: str = "development"
    api_base_url: str = DEVELOPMENT_API_URL
    log_format: str = LOG_FORMAT
    drain_timeout_secs: float = DRAIN_TIMEOUT_SECS

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str],
        *,
        site: str = "frontend",
        hostname: str | None = None,
        **overrides: object,
    ) -> "ServerConfig":
        """Build the configuration once from environment variables and a hostname.

        ``FRONTEND_PORT`` overrides the profile's port when present. The hostname
        (argument, then ``SITE_HOSTNAME``, then ``localhost``) selects the
        environment, and ``SITE_DEV_MODE`` forces development. Keyword overrides
        that are not ``None`` win over everything else.
        """
        try:
            profile = SITE_PROFILES[site]
        except KeyError as exc:
            raise ValueError(f"Unknown site profile: {site}") from exc

        port = profile.port
        raw_port = environ.get(PORT_ENV_VAR)
        if raw_port:
            try:
                port = int(raw_port)
            except ValueError as exc:
                raise ValueError(f"{PORT_ENV_VAR} must be an integer") from exc
            if not 0 <= port <= 65535:
                raise ValueError(f"{PORT_ENV_VAR} out of range")

        resolved_hostname = hostname or environ.get(HOSTNAME_ENV_VAR) or "localhost"
        environment = detect_environment(resolved_hostname)
        if _is_truthy(environ.get(DEV_MODE_ENV_VAR)):
            environment = "development"

        config = cls(
            port=port,
            site=profile.name,
            disable_cache=profile.disable_cache or environment == "development",
            environment=environment,
            api_base_url=(
                DEVELOPMENT_API_URL if environment == "development" else PRODUCTION_API_URL
            ),
        )
        applied = {key: value for key, value in overrides.items() if value is not None}
        if "root" in applied:
            applied["root"] = Path(str(applied["root"]))
        return replace(config, **applied)
