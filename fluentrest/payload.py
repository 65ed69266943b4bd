"""Tagged representation of request body values."""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any


class BodyKind(enum.Enum):
    ABSENT = "absent"
    RAW = "raw"
    TEXT = "text"
    STRUCTURED = "structured"
    STREAM = "stream"
    OTHER = "other"


def is_stream(value: Any) -> bool:
    """Return ``True`` for readable file-like objects and lazy iterators."""

    if isinstance(value, (str, bytes, bytearray, memoryview, Mapping)):
        return False
    return callable(getattr(value, "read", None)) or isinstance(value, Iterator)


@dataclass(frozen=True)
class Payload:
    kind: BodyKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> "Payload":
        if value is None:
            return cls(BodyKind.ABSENT, None)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(BodyKind.RAW, bytes(value))
        if isinstance(value, str):
            return cls(BodyKind.TEXT, value)
        if isinstance(value, Mapping):
            return cls(BodyKind.STRUCTURED, value)
        if is_stream(value):
            return cls(BodyKind.STREAM, value)
        return cls(BodyKind.OTHER, value)


__all__ = ["BodyKind", "Payload", "is_stream"]
