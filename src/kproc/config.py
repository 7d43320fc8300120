"""Environment-driven settings for kproc."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from .cache import DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)

__all__ = ["Settings", "TRUTHY"]

TRUTHY = {"1", "true", "yes", "on"}


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", key, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", key, raw, default)
        return default
    return value


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", key, raw, default)
        return default
    return max(value, 0)


@dataclass(frozen=True)
class Settings:
    """Process-wide defaults read once when a manager is built.

    ``max_concurrency`` of ``0`` means batch kills are not throttled.
    """

    probe: str = "auto"
    cache_ttl: float = DEFAULT_CACHE_TTL
    debug: bool = False
    log_file: str | None = None
    max_concurrency: int = 0

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            probe=(env.get("KPROC_PROBE") or "auto").strip().lower(),
            cache_ttl=_float(env, "KPROC_CACHE_TTL", DEFAULT_CACHE_TTL),
            debug=(env.get("KPROC_DEBUG") or "").strip().lower() in TRUTHY,
            log_file=env.get("KPROC_LOG_FILE") or None,
            max_concurrency=_int(env, "KPROC_MAX_CONCURRENCY", 0),
        )
