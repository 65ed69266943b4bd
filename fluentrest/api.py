"""Verb functions, the generic ``request`` entry point and shared defaults."""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from typing import Any, Optional, Union

from .config import Settings
from .cookies import jar
from .request import OPTION_ALIASES, Callback, Request
from .response import Response
from .transport import Transport

Result = Union[Request, Response]


class Defaults:
    """Builds requests that start from shared settings, headers and options.

    >>> api = defaults(headers={"Accept": "application/json"}, timeout=5)
    >>> api.get("http://example.com").options["timeout"]
    5
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        headers: Optional[Mapping[str, Any]] = None,
        **options: Any,
    ) -> None:
        unknown = sorted(set(options) - set(OPTION_ALIASES))
        if unknown:
            raise ValueError(f"Unknown request option(s): {', '.join(unknown)}")
        self.settings = settings
        self.transport = transport
        self.default_headers = dict(headers or {})
        self.request_options = dict(options)

    def request(
        self,
        method: str,
        url: Optional[str] = None,
        headers: Any = None,
        body: Any = None,
        callback: Optional[Callback] = None,
    ) -> Union[Result, Callable[..., Result]]:
        """Create a request for ``method``.

        ``headers`` or ``body`` may be the callback instead, in which case the
        following arguments are skipped. With a callback the request is sent
        and its :class:`Response` returned. Without ``url`` a function taking
        the remaining arguments is returned.
        """

        if url is None:
            return functools.partial(self.request, method)
        if callable(headers):
            callback, headers, body = headers, None, None
        elif callable(body):
            callback, body = body, None

        request = Request(method, url, transport=self.transport, settings=self.settings)
        if self.default_headers:
            request.header(self.default_headers)
        for name, value in self.request_options.items():
            getattr(request, name)(value)
        if headers:
            request.header(headers)
        if body is not None:
            request.send(body)
        return request.end(callback) if callback is not None else request

    def _verb(method: str) -> Callable[..., Result]:  # type: ignore[misc]
        def call(
            self: "Defaults",
            url: str,
            headers: Any = None,
            body: Any = None,
            callback: Optional[Callback] = None,
        ) -> Result:
            return self.request(method, url, headers, body, callback)

        call.__name__ = call.__qualname__ = method.lower()
        call.__doc__ = f"Create a {method} request; see :meth:`Defaults.request`."
        return call

    get = _verb("GET")
    head = _verb("HEAD")
    put = _verb("PUT")
    post = _verb("POST")
    patch = _verb("PATCH")
    delete = _verb("DELETE")
    options = _verb("OPTIONS")
    del _verb


def defaults(
    *,
    settings: Optional[Settings] = None,
    transport: Optional[Transport] = None,
    headers: Optional[Mapping[str, Any]] = None,
    **options: Any,
) -> Defaults:
    """Return verb functions whose requests all start from the given values."""

    return Defaults(settings=settings, transport=transport, headers=headers, **options)


_DEFAULTS = Defaults()

request = _DEFAULTS.request
get = _DEFAULTS.get
head = _DEFAULTS.head
put = _DEFAULTS.put
post = _DEFAULTS.post
patch = _DEFAULTS.patch
delete = _DEFAULTS.delete
options = _DEFAULTS.options

__all__ = [
    "Defaults",
    "defaults",
    "delete",
    "get",
    "head",
    "jar",
    "options",
    "patch",
    "post",
    "put",
    "request",
]
