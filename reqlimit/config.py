"""Limiter settings and environment loading utilities."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

DEFAULT_REJECTION_MESSAGE = "request limit exceeded"
DEFAULT_REJECTION_STATUS = 429
DEFAULT_SHARDS = 16

_TRUTHY = {"1", "true", "yes", "on"}


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


_load_dotenv()


class LimiterConfigError(ValueError):
    """Raised when a limiter is constructed with invalid settings."""


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer for environment variable: {name}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid number for environment variable: {name}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class LimiterConfig:
    """Immutable settings for one limiter instance.

    ``window`` is stored in seconds; a :class:`~datetime.timedelta` is
    accepted and converted.
    """

    limit: int
    window: Union[float, timedelta]
    rejection_message: str = DEFAULT_REJECTION_MESSAGE
    rejection_status: int = DEFAULT_REJECTION_STATUS
    trust_proxy_headers: bool = False
    shards: int = DEFAULT_SHARDS

    def __post_init__(self) -> None:
        window = self.window
        if isinstance(window, timedelta):
            window = window.total_seconds()
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise LimiterConfigError(f"limit must be a positive integer, got {self.limit!r}")
        if (
            isinstance(window, bool)
            or not isinstance(window, (int, float))
            or not math.isfinite(window)
            or window <= 0
        ):
            raise LimiterConfigError(f"window must be a positive duration, got {self.window!r}")
        if not 400 <= self.rejection_status <= 599:
            raise LimiterConfigError(
                f"rejection_status must be an HTTP error status, got {self.rejection_status!r}"
            )
        if isinstance(self.shards, bool) or not isinstance(self.shards, int) or self.shards <= 0:
            raise LimiterConfigError(f"shards must be a positive integer, got {self.shards!r}")
        object.__setattr__(self, "window", float(window))


@dataclass(frozen=True)
class Settings:
    """Runtime configuration derived from environment variables."""

    limit: int = 60
    window_seconds: float = 60.0
    trust_proxy_headers: bool = False
    rejection_message: str = DEFAULT_REJECTION_MESSAGE
    rejection_status: int = DEFAULT_REJECTION_STATUS
    sweep_interval_seconds: float = 60.0

    def limiter_config(self) -> LimiterConfig:
        return LimiterConfig(
            limit=self.limit,
            window=self.window_seconds,
            rejection_message=self.rejection_message,
            rejection_status=self.rejection_status,
            trust_proxy_headers=self.trust_proxy_headers,
        )

    @classmethod
    def from_env(cls) -> "Settings":
        message: Optional[str] = os.getenv("REQLIMIT_REJECTION_MESSAGE")

        return cls(
            limit=_env_int("REQLIMIT_LIMIT", 60),
            window_seconds=_env_float("REQLIMIT_WINDOW_SECONDS", 60.0),
            trust_proxy_headers=_env_bool("REQLIMIT_TRUST_PROXY_HEADERS", False),
            rejection_message=message or DEFAULT_REJECTION_MESSAGE,
            rejection_status=_env_int("REQLIMIT_REJECTION_STATUS", DEFAULT_REJECTION_STATUS),
            sweep_interval_seconds=_env_float("REQLIMIT_SWEEP_INTERVAL_SECONDS", 60.0),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached limiter settings."""

    return Settings.from_env()
