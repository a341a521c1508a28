"""
Runtime configuration.

Settings come from environment variables (optionally seeded from .env by
env.load_env). Credentials are kept apart from Settings: they are an opaque
capability handed to the API client and never read by the engine itself.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import ConfigError

DEFAULT_API_BASE = "https://bbs.uestc.edu.cn/_"
DEFAULT_DB_PATH = "data/bbsmirror.db"


@dataclass(frozen=True)
class Limits:
    """Per-invocation budgets.

    Defaults fit a host that allows roughly 50 outbound requests and
    6 simultaneous connections per invocation.
    """

    concurrency: int = 5
    new_thread_cap: int = 15
    listing_pages: int = 3
    reply_budget: int = 8
    backfill_window: int = 100
    comment_pages: int = 3
    max_rounds: int = 20


@dataclass(frozen=True)
class Credentials:
    """Auth headers for the forum API."""

    authorization: str = field(repr=False)
    cookie: Optional[str] = field(default=None, repr=False)

    def headers(self) -> dict:
        headers = {"authorization": self.authorization}
        if self.cookie:
            headers["Cookie"] = self.cookie
        return headers


@dataclass(frozen=True)
class Settings:
    api_base: str = DEFAULT_API_BASE
    db_path: Path = Path(DEFAULT_DB_PATH)
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    request_timeout: float = 15.0
    limits: Limits = field(default_factory=Limits)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


def load_limits() -> Limits:
    return Limits(
        concurrency=_env_int("BBSMIRROR_CONCURRENCY", 5),
        new_thread_cap=_env_int("BBSMIRROR_NEW_THREAD_CAP", 15),
        listing_pages=_env_int("BBSMIRROR_LISTING_PAGES", 3),
        reply_budget=_env_int("BBSMIRROR_REPLY_BUDGET", 8),
        backfill_window=_env_int("BBSMIRROR_BACKFILL_WINDOW", 100),
        comment_pages=_env_int("BBSMIRROR_COMMENT_PAGES", 3),
        max_rounds=_env_int("BBSMIRROR_MAX_ROUNDS", 20),
    )


def load_settings() -> Settings:
    """Build Settings from the process environment."""
    return Settings(
        api_base=os.getenv("BBS_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        db_path=Path(os.getenv("BBSMIRROR_DB", DEFAULT_DB_PATH)),
        log_dir=Path(os.getenv("BBSMIRROR_LOG_DIR", "logs")),
        log_level=os.getenv("BBSMIRROR_LOG_LEVEL", "INFO").upper(),
        request_timeout=_env_float("BBS_REQUEST_TIMEOUT", 15.0),
        limits=load_limits(),
    )


def load_credentials() -> Credentials:
    """Read BBS_AUTH / BBS_COOKIE.

    Raises:
        ConfigError: If BBS_AUTH is missing or blank
    """
    auth = os.getenv("BBS_AUTH", "").strip()
    if not auth:
        raise ConfigError("BBS_AUTH not set. Put the forum authorization token in the environment or .env.")
    cookie = os.getenv("BBS_COOKIE", "").strip() or None
    return Credentials(authorization=auth, cookie=cookie)
