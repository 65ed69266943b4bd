"""Multipart parts and their encoders.

Three encodings are produced:

* buffered ``multipart/form-data`` via ``urllib3.encode_multipart_formdata``,
* streamed ``multipart/form-data`` where parts are written in order as their
  values are read, for attachments that cannot be rewound,
* ``multipart/related`` for raw parts added with ``Request.part``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, BinaryIO, Optional
from urllib.parse import urlparse

from urllib3.fields import RequestField
from urllib3.filepost import choose_boundary, encode_multipart_formdata

from . import marshals
from .mime import lookup
from .payload import is_stream

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8192
URL_PREFIXES = ("http://", "https://")

FileOpener = Callable[[str], BinaryIO]
UrlFetcher = Callable[[str], Any]


@dataclass(frozen=True)
class Part:
    """One named field or attachment of a ``multipart/form-data`` body."""

    name: str
    value: Any
    attachment: bool = False
    options: Mapping[str, Any] = field(default_factory=dict)

    @property
    def filename(self) -> Optional[str]:
        filename = self.options.get("filename")
        if filename:
            return str(filename)
        if not self.attachment:
            return None
        if isinstance(self.value, str):
            if self.value.startswith(URL_PREFIXES):
                return os.path.basename(urlparse(self.value).path) or self.name
            return os.path.basename(self.value) or self.name
        stream_name = getattr(self.value, "name", None)
        if isinstance(stream_name, str):
            return os.path.basename(stream_name)
        return self.name

    @property
    def content_type(self) -> Optional[str]:
        content_type = self.options.get("content_type") or self.options.get("contentType")
        if content_type:
            return str(content_type)
        filename = self.filename
        if self.attachment and filename:
            return lookup(filename)
        return None


def open_read_stream(path: str) -> BinaryIO:
    """File-stream collaborator: open ``path`` for binary reading."""

    return Path(path).expanduser().resolve().open("rb")


def marshal_field_value(value: Any) -> Any:
    """Prepare a non-attachment field value.

    Bytes, streams and strings pass through, mappings become JSON and any
    other value is converted with ``str``.
    """

    if isinstance(value, (str, bytes, bytearray)) or is_stream(value):
        return value
    if isinstance(value, Mapping):
        return marshals.JSON.unmarshal(value)
    return str(value)


def resolve_attachment(
    part: Part,
    *,
    fetch: UrlFetcher,
    opener: FileOpener = open_read_stream,
) -> Part:
    """Replace a path or URL attachment value with a readable stream."""

    if not part.attachment or not isinstance(part.value, str):
        return part
    options = dict(part.options)
    options.setdefault("filename", part.filename)
    if part.value.startswith(URL_PREFIXES):
        LOGGER.debug("Fetching remote attachment %s", part.value)
        stream = fetch(part.value)
    else:
        stream = opener(part.value)
    return replace(part, value=stream, options=options)


def _as_bytes(data: Any) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def iter_value(value: Any, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the bytes of a field value, reading streams lazily."""

    if value is None:
        return
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        yield _as_bytes(value)
        return
    reader = getattr(value, "read", None)
    if callable(reader):
        while True:
            chunk = reader(chunk_size)
            if not chunk:
                break
            yield _as_bytes(chunk)
        return
    if isinstance(value, Iterator):
        for chunk in value:
            if chunk:
                yield _as_bytes(chunk)
        return
    yield _as_bytes(str(value))


def read_value(value: Any) -> bytes:
    return b"".join(iter_value(value))


def _request_field(part: Part, data: Any) -> RequestField:
    request_field = RequestField(name=part.name, data=data, filename=part.filename)
    request_field.make_multipart(content_type=part.content_type)
    return request_field


def encode_form_data(
    parts: list[Part], boundary: Optional[str] = None
) -> tuple[bytes, str]:
    """Buffer every part and return ``(body, content_type)``."""

    fields = [_request_field(part, read_value(part.value)) for part in parts]
    return encode_multipart_formdata(fields, boundary=boundary)


def stream_form_data(
    parts: list[Part],
    boundary: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> tuple[Iterator[bytes], str]:
    """Return a lazy ``multipart/form-data`` body and its content type.

    Parts are written in the order given; each value is read only when the
    transport pulls the corresponding chunk.
    """

    boundary = boundary or choose_boundary()
    delimiter = f"--{boundary}\r\n".encode("latin-1")

    def generate() -> Iterator[bytes]:
        for part in parts:
            yield delimiter
            yield _request_field(part, b"").render_headers().encode("latin-1")
            yield from iter_value(part.value, chunk_size)
            yield b"\r\n"
        yield f"--{boundary}--\r\n".encode("latin-1")

    return generate(), f"multipart/form-data; boundary={boundary}"


def prepare_related_part(
    data: Any,
    registry: Mapping[str, marshals.Marshal] = marshals.BODY_MARSHALS,
) -> dict[str, Any]:
    """Normalize input to ``Request.part`` into a ``{headers..., "body": ...}`` dict."""

    if not isinstance(data, Mapping) or "body" not in data:
        return {"body": data}
    part = dict(data)
    content_type = part.pop("type", None) or part.get("content-type")
    if content_type:
        if "/" not in str(content_type):
            content_type = lookup(content_type)
        part["content-type"] = content_type
        marshal = marshals.body_marshal_for(content_type, registry)
        if marshal is not None and isinstance(part["body"], Mapping):
            part["body"] = marshal.unmarshal(part["body"])
    elif isinstance(part["body"], Mapping):
        part["content-type"] = marshals.JSON_MIMETYPE
        part["body"] = marshals.JSON.unmarshal(part["body"])
    return part


def encode_related(
    parts: list[Mapping[str, Any]], boundary: Optional[str] = None
) -> tuple[bytes, str]:
    """Encode raw parts as ``multipart/related``."""

    boundary = boundary or choose_boundary()
    lines: list[bytes] = []
    for part in parts:
        lines.append(f"--{boundary}\r\n".encode("latin-1"))
        for key, value in part.items():
            if key == "body":
                continue
            header = f"{marshals.normalize_header_name(key)}: {value}\r\n"
            lines.append(header.encode("latin-1"))
        lines.append(b"\r\n")
        lines.append(read_value(part.get("body")))
        lines.append(b"\r\n")
    lines.append(f"--{boundary}--\r\n".encode("latin-1"))
    return b"".join(lines), f"multipart/related; boundary={boundary}"


__all__ = [
    "Part",
    "encode_form_data",
    "encode_related",
    "iter_value",
    "marshal_field_value",
    "open_read_stream",
    "prepare_related_part",
    "read_value",
    "resolve_attachment",
    "stream_form_data",
]
