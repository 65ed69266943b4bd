"""Ordered key/value containers used for headers, query data and cookies.

A single ``OrderedMap`` implementation is parameterized by two strategies:

* ``fold`` normalizes keys for comparison (identity or lower-casing),
* ``marshal`` converts the container from and to its wire string.

``Headers`` and ``Query`` only swap those strategies. Storage always keeps the
casing a key was first inserted with.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any, Callable, ClassVar, Union

from . import marshals
from .marshals import Marshal

LOGGER = logging.getLogger(__name__)

_MISSING = object()

KeyFold = Callable[[str], str]


def _identity(key: str) -> str:
    return key


def _lower(key: str) -> str:
    return key.lower()


class OrderedMap(MutableMapping):
    """Case-sensitive map with bulk merge and marshal-backed string forms."""

    fold: ClassVar[KeyFold] = staticmethod(_identity)
    marshal: ClassVar[Marshal] = marshals.JSON

    def __init__(self, collection: Any = None) -> None:
        self.map: dict[str, Any] = {}
        if collection is not None:
            self.put_all(collection)

    def contains_key(self, key: Any) -> Union[str, bool]:
        """Return the stored key matching ``key`` or ``False``."""

        wanted = self.fold(str(key))
        for stored in self.map:
            if self.fold(stored) == wanted:
                return stored
        return False

    def _values_equal(self, stored: Any, value: Any) -> bool:
        return stored == value

    def contains_value(self, value: Any) -> Any:
        """Return the first stored value equal to ``value`` or ``False``."""

        for stored in self.map.values():
            if self._values_equal(stored, value):
                return stored
        return False

    def put(self, key: Any, value: Any = _MISSING) -> None:
        if value is _MISSING:
            self.put_all(key)
            return
        stored = self.contains_key(key)
        self.map[stored if stored is not False else str(key)] = value

    def put_all(self, collection: Any) -> None:
        """Copy every entry of ``collection`` into this map.

        ``collection`` may be another map of any flavour, a plain mapping, or a
        string decoded with this map's marshal. Other inputs are ignored.
        """

        if isinstance(collection, OrderedMap):
            collection = collection.map
        elif isinstance(collection, (str, bytes)):
            collection = self.marshal.marshal(collection)

        if not isinstance(collection, Mapping):
            LOGGER.debug(
                "Ignoring bulk merge of %s into %s",
                type(collection).__name__,
                type(self).__name__,
            )
            return
        for key, value in collection.items():
            self.put(key, value)

    def get(self, key: Any, default: Any = None) -> Any:
        stored = self.contains_key(key)
        if stored is False:
            return default
        return self.map[stored]

    def remove(self, key: Any) -> Any:
        """Remove ``key`` and return its value, or ``None`` when absent."""

        stored = self.contains_key(key)
        if stored is False:
            return None
        return self.map.pop(stored)

    def size(self) -> int:
        return len(self.map)

    def is_empty(self) -> bool:
        return self.size() == 0

    def clear(self) -> None:
        self.map = {}

    def to_dict(self) -> dict[str, Any]:
        return dict(self.map)

    def to_string(self) -> str:
        return self.marshal.unmarshal(self.map)

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.map!r})"

    # MutableMapping protocol

    def __getitem__(self, key: Any) -> Any:
        stored = self.contains_key(key)
        if stored is False:
            raise KeyError(key)
        return self.map[stored]

    def __setitem__(self, key: Any, value: Any) -> None:
        self.put(key, value)

    def __delitem__(self, key: Any) -> None:
        stored = self.contains_key(key)
        if stored is False:
            raise KeyError(key)
        del self.map[stored]

    def __contains__(self, key: object) -> bool:
        return self.contains_key(key) is not False

    def __iter__(self) -> Iterator[str]:
        return iter(self.map)

    def __len__(self) -> int:
        return len(self.map)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OrderedMap):
            return self.map == other.map
        if isinstance(other, Mapping):
            return self.map == dict(other)
        return NotImplemented


class Headers(OrderedMap):
    """Header container with case-insensitive keys.

    >>> headers = Headers({"Content-Type": "text/plain"})
    >>> headers.get("content-type")
    'text/plain'
    >>> headers.contains_key("CONTENT-TYPE")
    'Content-Type'
    """

    fold: ClassVar[KeyFold] = staticmethod(_lower)
    marshal: ClassVar[Marshal] = marshals.HEADERS

    def _values_equal(self, stored: Any, value: Any) -> bool:
        if isinstance(stored, str) and isinstance(value, str):
            return stored.lower() == value.lower()
        return stored == value


class Query(OrderedMap):
    """Query parameter container; keys stay case-sensitive."""

    marshal: ClassVar[Marshal] = marshals.QUERY


__all__ = ["Headers", "OrderedMap", "Query"]
