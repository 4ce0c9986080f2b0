"""Runtime settings read from the environment (.env is loaded by main)."""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_SERVICE = "https://bsky.social"


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}")


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return max(1, int(raw))
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class Settings:
    username: Optional[str]
    password: Optional[str]
    service: str = DEFAULT_SERVICE
    post_delay: float = 0.5
    resolve_attempts: int = 3
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            username=os.environ.get("BLUESKY_USERNAME"),
            password=os.environ.get("BLUESKY_PASSWORD"),
            service=os.environ.get("BLUESKY_SERVICE", "").strip() or DEFAULT_SERVICE,
            post_delay=_float_env("BLUESKY_POST_DELAY", 0.5),
            resolve_attempts=_int_env("BLUESKY_RESOLVE_ATTEMPTS", 3),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
