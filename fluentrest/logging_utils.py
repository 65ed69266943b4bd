"""Structured logging helpers for fluentrest.

The library itself only attaches a ``NullHandler``; applications opt in to
console or file output through :func:`configure_logging`.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable, Mapping
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

from rich.logging import RichHandler

from .config import get_settings

PACKAGE_LOGGER = "fluentrest"

DEFAULT_MAX_BYTES = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))
DEFAULT_BACKUP_COUNT = int(os.environ.get("LOG_BACKUP_COUNT", "5"))

SENSITIVE_HEADERS = {"cookie", "set-cookie", "authorization", "proxy-authorization", "x-mashape-key"}
REDACTED = "[redacted]"

# LogRecord attributes that are not structured ``extra`` fields.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def redact_headers(headers: Mapping[str, object]) -> dict[str, object]:
    """Return a copy of ``headers`` with credential-bearing values replaced."""

    return {
        key: REDACTED if str(key).lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact_url(url: object, *, keep_path: bool = True) -> str:
    """Drop credentials, query and fragment from ``url`` before it is logged."""

    parts = urlsplit(str(url))
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        port = None
    if port:
        host = f"{host}:{port}"
    path = parts.path if keep_path else ""
    return urlunsplit((parts.scheme, host, path, "", ""))


class JsonFormatter(logging.Formatter):
    """Emit logs as JSON objects including ``extra`` fields such as ``event``."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True, default=str)


class SensitiveDataFilter(logging.Filter):
    """Redact cookie and authorization header values in log arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, Mapping):
            record.args = redact_headers(record.args)
        headers = getattr(record, "headers", None)
        if isinstance(headers, Mapping):
            record.headers = redact_headers(headers)
        return True


def _rich_handler(level: int) -> logging.Handler:
    return RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_path=False,
        level=level,
    )


def configure_logging(
    level: Union[int, str, None] = None,
    *,
    json_logs: bool = False,
    logfile: Optional[Union[Path, str]] = None,
    suppress: Optional[Iterable[str]] = None,
) -> None:
    """Configure root logging with a rich console and optional rotating file.

    ``level`` defaults to ``FLUENTREST_LOG_LEVEL``.
    """

    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers: list[logging.Handler] = []

    console_handler = _rich_handler(level)
    console_handler.addFilter(SensitiveDataFilter())
    handlers.append(console_handler)

    if logfile:
        path = Path(logfile)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=DEFAULT_MAX_BYTES,
            backupCount=DEFAULT_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.addFilter(SensitiveDataFilter())
        if json_logs:
            file_handler.setFormatter(JsonFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in suppress or ("urllib3",):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def install_null_handler() -> None:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        logger.addHandler(logging.NullHandler())


__all__ = [
    "JsonFormatter",
    "SensitiveDataFilter",
    "configure_logging",
    "install_null_handler",
    "redact_headers",
    "redact_url",
]
