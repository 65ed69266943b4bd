"""String <-> structure codecs.

Every marshal exposes the same pair of functions:

* ``marshal(text)`` decodes a wire string into a Python structure.
* ``unmarshal(structure)`` encodes a structure into its wire string.

The direction is the same for bodies, headers, cookies and query strings.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Optional
from urllib.parse import quote, unquote_plus

LOGGER = logging.getLogger(__name__)

# Characters left untouched by JavaScript's encodeURIComponent.
URI_COMPONENT_SAFE = "-_.!~*'()"

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class Marshal:
    """A named codec pair."""

    name: str
    marshal: Callable[[Any], Any]
    unmarshal: Callable[[Any], Any]


def _scalar(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _encode_component(value: Any) -> str:
    return quote(_scalar(value), safe=URI_COMPONENT_SAFE)


def form_marshal(text: Any) -> dict[str, str]:
    """Decode ``a=1&b=2`` into ``{"a": "1", "b": "2"}``."""

    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("utf-8", errors="replace")
    decoded: dict[str, str] = {}
    if not isinstance(text, str) or not text:
        return decoded
    for pair in text.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        decoded[unquote_plus(key)] = unquote_plus(value)
    return decoded


def _flatten(value: Any, key: str) -> list[str]:
    if isinstance(value, Mapping):
        pieces: list[str] = []
        for nested in value.values():
            pieces.extend(_flatten(nested, key))
        return pieces
    if isinstance(value, (list, tuple)):
        pieces = []
        for nested in value:
            pieces.extend(_flatten(nested, key))
        return pieces
    return [f"{_encode_component(key)}={_encode_component(value)}"]


def form_unmarshal(structure: Any) -> Any:
    """Encode a mapping as ``application/x-www-form-urlencoded``.

    Nested mappings and sequences reuse the parent key for each of their
    scalar members, so ``{"a": [1, 2]}`` becomes ``a=1&a=2``. Anything that is
    not a mapping is returned unchanged.
    """

    if not isinstance(structure, Mapping):
        return structure
    pieces: list[str] = []
    for key, value in structure.items():
        pieces.extend(_flatten(value, str(key)))
    return "&".join(pieces)


def json_marshal(text: Any) -> Any:
    """Parse JSON, returning ``None`` instead of raising on malformed input."""

    if text is None:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        LOGGER.debug("Discarding unparseable JSON body: %s", exc)
        return None


def json_unmarshal(structure: Any) -> str:
    return json.dumps(structure)


def _trim(value: str) -> str:
    return value.strip(" \t\r\n\ufeff\xa0")


def cookie_marshal(source: Any) -> dict[str, Any]:
    """Decode ``Cookie``/``Set-Cookie`` values into a flat mapping.

    Accepts a single ``;`` delimited string or a list of them. Fragments with
    no ``=`` are skipped and fragments with an empty value map to ``True``.
    """

    cookies: dict[str, Any] = {}
    if not source:
        return cookies
    if isinstance(source, str):
        entries = [source]
    elif isinstance(source, (list, tuple)):
        entries = [entry for entry in source if isinstance(entry, str)]
    else:
        return cookies

    for entry in entries:
        for fragment in entry.split(";"):
            if "=" not in fragment:
                continue
            key, _, value = _trim(fragment).partition("=")
            key = _trim(key)
            if not key:
                continue
            value = _trim(value)
            cookies[key] = True if value == "" else value
    return cookies


def cookie_unmarshal(structure: Any) -> str:
    if not isinstance(structure, Mapping):
        return ""
    pieces = []
    for key, value in structure.items():
        rendered = "" if value is True else _scalar(value)
        pieces.append(f"{key}={rendered}")
    return "; ".join(pieces)


def normalize_header_name(name: str) -> str:
    """Return ``content-type`` as ``Content-Type``."""

    pieces = str(name).split("-")
    return "-".join(piece[:1].upper() + piece[1:] for piece in pieces)


def header_marshal(text: Any) -> dict[str, str]:
    """Decode a raw header block into a mapping keyed by lowercase field names."""

    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("latin-1")
    fields: dict[str, str] = {}
    if not isinstance(text, str) or not text:
        return fields
    lines = _LINE_SPLIT.split(text)
    # Trailing CRLF
    if lines and lines[-1] == "":
        lines.pop()
    for line in lines:
        index = line.find(":")
        if index == -1:
            continue
        fields[line[:index].strip().lower()] = _trim(line[index + 1 :])
    return fields


def header_unmarshal(structure: Any) -> str:
    if not isinstance(structure, Mapping):
        return ""
    return "".join(
        f"{normalize_header_name(key)}: {_scalar(value)}\r\n"
        for key, value in structure.items()
    )


FORM = Marshal("form", form_marshal, form_unmarshal)
QUERY = Marshal("query", form_marshal, form_unmarshal)
JSON = Marshal("json", json_marshal, json_unmarshal)
COOKIE = Marshal("cookie", cookie_marshal, cookie_unmarshal)
HEADERS = Marshal("headers", header_marshal, header_unmarshal)

FORM_MIMETYPE = "application/x-www-form-urlencoded"
JSON_MIMETYPE = "application/json"

BODY_MARSHALS: Mapping[str, Marshal] = MappingProxyType(
    {
        FORM_MIMETYPE: FORM,
        JSON_MIMETYPE: JSON,
        "text/javascript": JSON,
    }
)


def base_mimetype(content_type: Any) -> Optional[str]:
    """Return the part of a ``Content-Type`` value before the first ``;``."""

    if not isinstance(content_type, str) or not content_type.strip():
        return None
    return content_type.split(";", 1)[0].strip().lower()


def body_marshal_for(
    content_type: Any, registry: Mapping[str, Marshal] = BODY_MARSHALS
) -> Optional[Marshal]:
    mimetype = base_mimetype(content_type)
    if mimetype is None:
        return None
    marshal = registry.get(mimetype)
    if marshal is None and mimetype.endswith("+json"):
        marshal = registry.get(JSON_MIMETYPE)
    return marshal


def is_json_type(content_type: Any) -> bool:
    mimetype = base_mimetype(content_type)
    return mimetype is not None and (
        mimetype == JSON_MIMETYPE or mimetype.endswith("+json")
    )


__all__ = [
    "BODY_MARSHALS",
    "COOKIE",
    "FORM",
    "FORM_MIMETYPE",
    "HEADERS",
    "JSON",
    "JSON_MIMETYPE",
    "Marshal",
    "QUERY",
    "base_mimetype",
    "body_marshal_for",
    "cookie_marshal",
    "cookie_unmarshal",
    "form_marshal",
    "form_unmarshal",
    "header_marshal",
    "header_unmarshal",
    "is_json_type",
    "json_marshal",
    "json_unmarshal",
    "normalize_header_name",
]
