"""Mime type lookup by short name, extension or file name."""

from __future__ import annotations

import mimetypes
from collections.abc import Mapping
from types import MappingProxyType
from typing import Optional

DEFAULT_MIMETYPE = "application/octet-stream"

MIME_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "form": "application/x-www-form-urlencoded",
        "urlencoded": "application/x-www-form-urlencoded",
        "form-data": "application/x-www-form-urlencoded",
        "json": "application/json",
        "html": "text/html",
        "text": "text/plain",
        "xml": "application/xml",
    }
)


def lookup(
    name: str,
    aliases: Mapping[str, str] = MIME_ALIASES,
    default: Optional[str] = DEFAULT_MIMETYPE,
) -> Optional[str]:
    """Resolve ``json``, ``.png`` or ``report.pdf`` to a mimetype."""

    key = str(name).strip().lower()
    if key in aliases:
        return aliases[key]
    extension = key.rsplit(".", 1)[-1]
    if extension in aliases:
        return aliases[extension]
    guessed, _ = mimetypes.guess_type(f"file.{extension}", strict=False)
    return guessed or default


__all__ = ["DEFAULT_MIMETYPE", "MIME_ALIASES", "lookup"]
