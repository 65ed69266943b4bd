"""Cookie jar factory shared with the ``requests`` transport."""

from __future__ import annotations

import http.cookiejar
import logging
import time
from http.cookies import CookieError, SimpleCookie
from typing import Any, Optional
from urllib.parse import urlparse

import requests
from requests.cookies import MockRequest, RequestsCookieJar, create_cookie, get_cookie_header

from .errors import CookieJarError

LOGGER = logging.getLogger(__name__)


def _host(url: Optional[str]) -> str:
    """Default cookie domain for ``url``.

    Dotless hosts such as ``localhost`` get the ``.local`` suffix that
    ``http.cookiejar`` matches them against.
    """

    host = urlparse(url).hostname if url else None
    if not host:
        return ""
    return host if "." in host else f"{host}.local"


def _expires(morsel: Any) -> Optional[int]:
    max_age = morsel["max-age"]
    if max_age:
        try:
            return int(time.time()) + int(max_age)
        except ValueError:
            return None
    expires = morsel["expires"]
    if expires:
        try:
            return int(http.cookiejar.http2time(expires) or 0) or None
        except (TypeError, ValueError):
            return None
    return None


class CookieJar(RequestsCookieJar):
    """``RequestsCookieJar`` accepting raw ``Set-Cookie`` strings.

    ``add`` and ``to_string`` alias :meth:`set_cookie_string` and
    :meth:`get_cookie_string`.
    """

    def set_cookie_string(self, cookie_string: str, url: Optional[str] = None) -> list[str]:
        """Store every cookie in ``cookie_string`` for ``url``; return the names kept."""

        parsed = SimpleCookie()
        try:
            parsed.load(cookie_string)
        except CookieError as exc:
            raise CookieJarError(f"Invalid cookie string: {cookie_string!r}") from exc
        if not parsed and cookie_string.strip():
            raise CookieJarError(f"Invalid cookie string: {cookie_string!r}")

        stored: list[str] = []
        request = MockRequest(requests.Request("GET", url)) if url else None
        for name, morsel in parsed.items():
            cookie = create_cookie(
                name,
                morsel.value,
                domain=morsel["domain"] or _host(url),
                path=morsel["path"] or "/",
                secure=bool(morsel["secure"]),
                expires=_expires(morsel),
                rest={"HttpOnly": None} if morsel["httponly"] else {},
            )
            if request is None:
                self.set_cookie(cookie)
                stored.append(name)
            elif self._policy.set_ok(cookie, request):
                self.set_cookie(cookie)
                stored.append(name)
            else:
                LOGGER.debug("Cookie policy rejected %s for %s", name, url)
        return stored

    def get_cookie_string(self, url: Optional[str] = None) -> str:
        """Render the ``Cookie`` header value that would be sent to ``url``."""

        if url:
            prepared = requests.Request("GET", url).prepare()
            return get_cookie_header(self, prepared) or ""
        return "; ".join(f"{cookie.name}={cookie.value}" for cookie in self)

    add = set_cookie_string
    to_string = get_cookie_string


def jar(
    store: Optional[http.cookiejar.CookieJar] = None,
    reject_public_suffixes: bool = False,
) -> CookieJar:
    """Create a cookie jar.

    ``store`` seeds the jar with the cookies of an existing jar.
    ``reject_public_suffixes`` refuses cookies scoped to shared second-level
    domains such as ``co.uk``.
    """

    policy = http.cookiejar.DefaultCookiePolicy(strict_domain=reject_public_suffixes)
    cookie_jar = CookieJar(policy=policy)
    if store is not None:
        for cookie in store:
            cookie_jar.set_cookie(cookie)
    return cookie_jar


def add_cookie(cookie_jar: Any, name: str, value: Any, url: Optional[str] = None) -> None:
    """Add ``name=value`` to any supported jar."""

    if isinstance(cookie_jar, CookieJar):
        cookie_jar.set_cookie_string(f"{name}={value}", url)
    elif isinstance(cookie_jar, http.cookiejar.CookieJar):
        cookie_jar.set_cookie(create_cookie(name, str(value), domain=_host(url)))
    else:
        raise CookieJarError(
            "Invalid cookie jar, please set cookies through your jar rather than the request."
        )


__all__ = ["CookieJar", "add_cookie", "jar"]
