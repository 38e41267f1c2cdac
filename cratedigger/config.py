"""Runtime configuration for cratedigger.

Values resolve in the order process environment, then ``.env`` in the working
directory, then the defaults below.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any

from cratedigger.errors import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./cratedigger.db"
DEFAULT_SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
DEFAULT_REDDIT_SEARCH_URL = (
    "https://old.reddit.com/r/indieheads/search"
    "?q=fresh&restrict_sr=on&include_over_18=on&sort=top&t=day"
)
DEFAULT_REDDIT_READY_SELECTOR = ".thing"
DEFAULT_BROWSER_TIMEOUT_MS = 30_000
DEFAULT_BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_ADMIN_ROLE = "admin"

_TRUTHY = frozenset({"1", "true", "yes", "on"})

_runtime_env: dict[str, str] | None = None


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse ``KEY=value`` lines, ignoring blanks, comments and quotes."""

    values: dict[str, str] = {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return values
    for raw in lines:
        line = raw.strip()
        if line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip("'\"")
    return values


def load_runtime_env(
    *,
    env_file: str | os.PathLike[str] | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    env = parse_env_file(Path(env_file or ".env"))
    overrides = os.environ if base_env is None else base_env
    env.update({key: str(value) for key, value in overrides.items() if value is not None})
    return env


def get_runtime_env() -> Mapping[str, str]:
    global _runtime_env
    if _runtime_env is None:
        _runtime_env = load_runtime_env()
    return _runtime_env


def override_runtime_env(runtime_env: Mapping[str, str] | None) -> None:
    """Pin the runtime environment, or drop the cache with ``None``."""

    global _runtime_env
    _runtime_env = None if runtime_env is None else dict(runtime_env)


class _EnvReader:
    """Typed accessors over a raw environment mapping."""

    def __init__(self, env: Mapping[str, Any]) -> None:
        self._env = env

    def text(self, key: str, default: str | None = None) -> str | None:
        value = self._env.get(key)
        if value is None:
            return default
        stripped = str(value).strip()
        return stripped or default

    def flag(self, key: str, default: bool) -> bool:
        value = self.text(key)
        if value is None:
            return default
        return value.lower() in _TRUTHY

    def integer(self, key: str, default: int, *, low: int, high: int | None = None) -> int:
        try:
            value = int(self.text(key) or default)
        except ValueError:
            value = default
        value = max(low, value)
        return value if high is None else min(high, value)

    def number(self, key: str, default: float, *, low: float) -> float:
        try:
            value = float(self.text(key) or default)
        except ValueError:
            value = default
        return max(low, value)

    def items(self, key: str) -> tuple[str, ...]:
        raw = self.text(key) or ""
        return tuple(part.strip() for part in raw.replace("\n", ",").split(",") if part.strip())


@dataclass(slots=True)
class SpotifyConfig:
    client_id: str | None
    client_secret: str | None
    token_url: str
    http_timeout: float
    max_retries: int
    rate_limit_seconds: float

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def require_credentials(self) -> tuple[str, str]:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError(
                "Spotify credentials not configured: set SPOTIFY_CLIENT_ID and "
                "SPOTIFY_CLIENT_SECRET."
            )
        return self.client_id, self.client_secret


@dataclass(slots=True)
class ScraperConfig:
    search_url: str
    ready_selector: str
    timeout_ms: int
    headless: bool
    user_agent: str


@dataclass(slots=True)
class SecurityConfig:
    admin_role: str
    allowed_origins: tuple[str, ...]


@dataclass(slots=True)
class ImportConfig:
    genre_fallback: bool


@dataclass(slots=True)
class LoggingConfig:
    level: str
    log_file: str | None


@dataclass(slots=True)
class DatabaseConfig:
    url: str
    reset: bool


@dataclass(slots=True)
class AppConfig:
    spotify: SpotifyConfig
    scraper: ScraperConfig
    security: SecurityConfig
    imports: ImportConfig
    logging: LoggingConfig
    database: DatabaseConfig


def load_config(runtime_env: Mapping[str, Any] | None = None) -> AppConfig:
    read = _EnvReader(get_runtime_env() if runtime_env is None else runtime_env)

    return AppConfig(
        spotify=SpotifyConfig(
            client_id=read.text("SPOTIFY_CLIENT_ID"),
            client_secret=read.text("SPOTIFY_CLIENT_SECRET"),
            token_url=read.text("SPOTIFY_TOKEN_URL", DEFAULT_SPOTIFY_TOKEN_URL),
            http_timeout=read.number("SPOTIFY_HTTP_TIMEOUT", 10.0, low=1.0),
            max_retries=read.integer("SPOTIFY_MAX_RETRIES", 3, low=1, high=10),
            rate_limit_seconds=read.number("SPOTIFY_RATE_LIMIT_SECONDS", 0.2, low=0.0),
        ),
        scraper=ScraperConfig(
            search_url=read.text("REDDIT_SEARCH_URL", DEFAULT_REDDIT_SEARCH_URL),
            ready_selector=read.text("REDDIT_READY_SELECTOR", DEFAULT_REDDIT_READY_SELECTOR),
            timeout_ms=read.integer("BROWSER_TIMEOUT_MS", DEFAULT_BROWSER_TIMEOUT_MS, low=1000),
            headless=read.flag("BROWSER_HEADLESS", True),
            user_agent=read.text("BROWSER_USER_AGENT", DEFAULT_BROWSER_USER_AGENT),
        ),
        security=SecurityConfig(
            admin_role=read.text("ADMIN_ROLE", DEFAULT_ADMIN_ROLE),
            allowed_origins=read.items("ALLOWED_ORIGINS") or ("*",),
        ),
        imports=ImportConfig(genre_fallback=read.flag("IMPORT_GENRE_FALLBACK", True)),
        logging=LoggingConfig(
            level=read.text("LOG_LEVEL", "INFO").upper(),
            log_file=read.text("LOG_FILE"),
        ),
        database=DatabaseConfig(
            url=read.text("DATABASE_URL", DEFAULT_DATABASE_URL),
            reset=read.flag("DB_RESET", False),
        ),
    )


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "ImportConfig",
    "LoggingConfig",
    "ScraperConfig",
    "SecurityConfig",
    "SpotifyConfig",
    "get_runtime_env",
    "load_config",
    "load_runtime_env",
    "override_runtime_env",
    "parse_env_file",
]
