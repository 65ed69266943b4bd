"""Configuration helpers and .env loading for fluentrest."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .marshals import BODY_MARSHALS, Marshal
from .mime import MIME_ALIASES

LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_FILES: tuple[Path, ...] = (
    Path(".env"),
    Path("config/.env"),
)
DEFAULT_CHUNK_SIZE = 8192
DEFAULT_LOG_LEVEL = "WARNING"
TRUE_VALUES = {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def load_environment() -> dict[str, str]:
    """Load environment variables from .env files once per process."""

    for path in DEFAULT_ENV_FILES:
        try:
            if path.exists():
                load_dotenv(path, override=False)
        except OSError:
            continue

    load_dotenv(override=False)
    return dict(os.environ)


def _float_setting(environ: Mapping[str, str], name: str) -> Optional[float]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-numeric %s=%r", name, raw)
        return None
    if value <= 0:
        LOGGER.warning("Ignoring non-positive %s=%r", name, raw)
        return None
    return value


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        LOGGER.warning("Ignoring non-integer %s=%r", name, raw)
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    """Process-wide, read-only configuration injected into builders."""

    timeout: Optional[float] = None
    user_agent: Optional[str] = f"fluentrest/{__version__}"
    strict_ssl: bool = True
    chunk_size: int = DEFAULT_CHUNK_SIZE
    log_level: str = DEFAULT_LOG_LEVEL
    mime_aliases: Mapping[str, str] = field(default_factory=lambda: MIME_ALIASES)
    body_marshals: Mapping[str, Marshal] = field(default_factory=lambda: BODY_MARSHALS)

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        strict = env.get("FLUENTREST_STRICT_SSL")
        return cls(
            timeout=_float_setting(env, "FLUENTREST_TIMEOUT"),
            user_agent=env.get("FLUENTREST_USER_AGENT") or cls.user_agent,
            strict_ssl=True if strict is None else strict.strip().lower() in TRUE_VALUES,
            chunk_size=_int_setting(env, "FLUENTREST_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            log_level=(env.get("FLUENTREST_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once from the environment (after loading .env files)."""

    load_environment()
    return Settings.from_environ()


__all__ = [
    "DEFAULT_ENV_FILES",
    "Settings",
    "get_settings",
    "load_environment",
]
