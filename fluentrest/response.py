"""Normalized responses."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import NoResponseError, StatusError
from .maps import Headers, OrderedMap
from .marshals import BODY_MARSHALS, COOKIE, Marshal, base_mimetype, body_marshal_for
from .mime import DEFAULT_MIMETYPE

LOGGER = logging.getLogger(__name__)

BUG_REPORT_HINT = (
    "This indicates a transport contract violation; please report it with the "
    "request options that triggered it."
)


def _set_cookie_values(raw: Any, headers: Headers) -> list[str]:
    """Collect every ``Set-Cookie`` line, including repeated headers."""

    values: list[str] = []
    original = getattr(raw, "raw", None)
    raw_headers = getattr(original, "headers", None)
    if raw_headers is not None:
        if hasattr(raw_headers, "getlist"):
            values.extend(raw_headers.getlist("Set-Cookie"))
        elif hasattr(raw_headers, "get_all"):
            values.extend(raw_headers.get_all("Set-Cookie") or [])
    if not values:
        header = headers.get("set-cookie")
        if isinstance(header, (list, tuple)):
            values.extend(header)
        elif header:
            values.append(header)
    return values


@dataclass(frozen=True)
class Response:
    """A response with status flags, parsed cookies and a parsed body.

    Attributes not defined here are looked up on ``raw``, the underlying
    ``requests.Response``.
    """

    error: Optional[BaseException] = None
    raw: Any = None
    status_code: int = 0
    status_range: int = 0
    headers: Headers = field(default_factory=Headers)
    cookies: OrderedMap = field(default_factory=OrderedMap)
    raw_body: Any = None
    body: Any = None
    type: str = DEFAULT_MIMETYPE
    url: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def for_error(cls, error: BaseException) -> "Response":
        return cls(error=error)

    def __getattr__(self, name: str) -> Any:
        # Only reached for names missing from the dataclass itself.
        if name.startswith("__"):
            raise AttributeError(name)
        raw = self.__dict__.get("raw")
        if raw is None:
            raise AttributeError(name)
        return getattr(raw, name)

    @property
    def code(self) -> int:
        return self.status_code

    @property
    def status(self) -> int:
        return self.status_code

    @property
    def info(self) -> bool:
        return self.status_range == 1

    @property
    def ok(self) -> bool:
        return self.status_range == 2

    @property
    def redirection(self) -> bool:
        return self.status_range == 3

    @property
    def client_error(self) -> bool:
        return self.status_range == 4

    @property
    def server_error(self) -> bool:
        return self.status_range == 5

    @property
    def accepted(self) -> bool:
        return self.status_code == 202

    @property
    def no_content(self) -> bool:
        # 1223 is how some user agents report a 204.
        return self.status_code in (204, 1223)

    @property
    def bad_request(self) -> bool:
        return self.status_code == 400

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def forbidden(self) -> bool:
        return self.status_code == 403

    @property
    def not_found(self) -> bool:
        return self.status_code == 404

    @property
    def not_acceptable(self) -> bool:
        return self.status_code == 406

    def cookie(self, name: str) -> Any:
        return self.cookies.get(name)

    def content_type(self, parse: bool = True) -> str:
        """Return the base mimetype, or the full header value when ``parse`` is false."""

        if not parse:
            return self.type
        return base_mimetype(self.type) or DEFAULT_MIMETYPE


def parse_body(
    raw_body: Any,
    content_type: Any,
    registry: Mapping[str, Marshal] = BODY_MARSHALS,
) -> Any:
    """Parse ``raw_body`` with the marshal registered for ``content_type``."""

    marshal = body_marshal_for(content_type, registry)
    if marshal is None or raw_body is None:
        return raw_body
    if isinstance(raw_body, (bytes, bytearray)):
        raw_body = bytes(raw_body).decode("utf-8", errors="replace")
    if isinstance(raw_body, str) and not raw_body.strip():
        return raw_body
    return marshal.marshal(raw_body)


def normalize(
    error: Optional[BaseException],
    raw: Any,
    raw_body: Any,
    *,
    marshals: Mapping[str, Marshal] = BODY_MARSHALS,
) -> Response:
    """Build a :class:`Response` from a transport outcome. Never raises."""

    if raw is None:
        if error is not None:
            return Response.for_error(error)
        LOGGER.warning(
            "Transport returned neither an error nor a response. %s",
            BUG_REPORT_HINT,
            extra={"event": "response.missing"},
        )
        return Response.for_error(NoResponseError())

    headers = Headers(dict(raw.headers or {}))
    cookies = OrderedMap()
    cookies.put_all(COOKIE.marshal(headers.get("cookie")))
    cookies.put_all(COOKIE.marshal(_set_cookie_values(raw, headers)))

    content_type = headers.get("content-type") or DEFAULT_MIMETYPE
    body = parse_body(raw_body, content_type, marshals)

    status_code = int(raw.status_code or 0)
    status_range = status_code // 100
    status_error = StatusError(status_code, body) if status_range in (4, 5) else None
    if status_error is not None:
        LOGGER.debug(
            "%s for %s",
            status_error,
            getattr(raw, "url", None),
            extra={"event": "response.status_error", "status": status_code},
        )

    return Response(
        error=status_error,
        raw=raw,
        status_code=status_code,
        status_range=status_range,
        headers=headers,
        cookies=cookies,
        raw_body=raw_body,
        body=body,
        type=content_type,
        url=getattr(raw, "url", None),
        reason=getattr(raw, "reason", None),
    )


__all__ = ["Response", "normalize", "parse_body"]
