"""``requests``-backed transport.

:class:`Transport` turns the option mapping accumulated by a
:class:`~fluentrest.request.Request` into a single ``requests`` call. Response
bodies are always streamed: the decompression interceptor is the first
``response`` hook, and ``data`` listeners see each chunk before the buffered
body is assembled.
"""

from __future__ import annotations

import codecs
import functools
import json
import logging
import ssl
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.auth import AuthBase, HTTPBasicAuth, HTTPDigestAuth
from urllib3.exceptions import HTTPError as Urllib3Error

from . import metrics, multipart
from .compression import STREAM_ATTRIBUTE, ResponseStream, decompression_interceptor
from .config import Settings, get_settings
from .errors import DecompressionError
from .logging_utils import redact_headers, redact_url
from .marshals import JSON_MIMETYPE, base_mimetype, is_json_type

LOGGER = logging.getLogger(__name__)

Listener = Callable[..., Any]

IGNORED_OPTIONS = ("tunnel", "har", "forever")
AUTH_OPTIONS = ("oauth", "hawk", "aws", "http_signature")
TEXTUAL_TYPES = ("application/x-www-form-urlencoded", "application/javascript", "application/xml")

SECURE_PROTOCOLS: Mapping[str, ssl.TLSVersion] = {
    "TLSv1_method": ssl.TLSVersion.TLSv1,
    "TLSv1_1_method": ssl.TLSVersion.TLSv1_1,
    "TLSv1_2_method": ssl.TLSVersion.TLSv1_2,
    "TLSv1_3_method": ssl.TLSVersion.TLSv1_3,
}

_UNSET = object()


@dataclass(frozen=True)
class TransportResult:
    """Outcome of :meth:`Transport.perform`.

    ``error`` is set only when no response was produced.
    """

    error: Optional[BaseException]
    response: Optional[requests.Response]
    body: Any = None


class BearerAuth(AuthBase):
    def __init__(self, token: str) -> None:
        self.token = token

    def __call__(self, request: requests.PreparedRequest) -> requests.PreparedRequest:
        request.headers["Authorization"] = f"Bearer {self.token}"
        return request


class TransportAdapter(HTTPAdapter):
    """``HTTPAdapter`` honouring ``local_address`` and ``secure_protocol``."""

    def __init__(
        self,
        *,
        local_address: Optional[str] = None,
        ssl_context: Optional[ssl.SSLContext] = None,
        **kwargs: Any,
    ) -> None:
        # init_poolmanager runs inside HTTPAdapter.__init__
        self.local_address = local_address
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, connections: int, maxsize: int, block: bool = False, **pool_kwargs: Any) -> None:
        if self.local_address:
            pool_kwargs["source_address"] = (self.local_address, 0)
        if self.ssl_context is not None:
            pool_kwargs["ssl_context"] = self.ssl_context
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)


def response_charset(content_type: Any) -> Optional[str]:
    """Return the ``charset`` parameter of a ``Content-Type`` value."""

    if not isinstance(content_type, str):
        return None
    for parameter in content_type.split(";")[1:]:
        key, _, value = parameter.strip().partition("=")
        if key.strip().lower() == "charset" and value.strip():
            return value.strip().strip("\"'")
    return None


def known_encoding(name: Any) -> bool:
    """True when ``name`` is a bytes-to-text codec Python can decode with."""

    try:
        info = codecs.lookup(str(name))
    except LookupError:
        return False
    # base64, rot13 and friends are codecs too but do not produce text.
    return getattr(info, "_is_text_encoding", True)


def _is_textual(mimetype: str) -> bool:
    return mimetype.startswith("text/") or is_json_type(mimetype) or mimetype in TEXTUAL_TYPES


def body_encoding(content_type: Any) -> Optional[str]:
    """Encoding used when the caller did not choose one.

    A declared charset wins when Python knows it; otherwise textual types
    fall back to utf-8 and every other type is left as bytes.
    """

    charset = response_charset(content_type)
    if charset:
        if known_encoding(charset):
            return charset
        LOGGER.debug(
            "Unknown charset %r in %r; using the default for the type",
            charset,
            content_type,
            extra={"event": "response.unknown_charset", "charset": charset},
        )
    mimetype = base_mimetype(content_type)
    if mimetype is None:
        return None
    return "utf-8" if _is_textual(mimetype) else None


def build_auth(value: Any) -> Any:
    """Translate an auth descriptor into something ``requests`` accepts."""

    if value is None or isinstance(value, (AuthBase, tuple)) or callable(value):
        return value
    if isinstance(value, Mapping):
        bearer = value.get("bearer")
        if bearer:
            return BearerAuth(bearer() if callable(bearer) else str(bearer))
        user = value.get("user", value.get("username", ""))
        password = value.get("pass", value.get("password", ""))
        send_immediately = value.get("sendImmediately", value.get("send_immediately", True))
        if send_immediately is False:
            return HTTPDigestAuth(str(user), str(password))
        return HTTPBasicAuth(str(user), str(password))
    LOGGER.debug("Ignoring unsupported auth descriptor %r", type(value).__name__)
    return None


def build_proxies(value: Any) -> Optional[dict[str, str]]:
    if not value:
        return None
    if isinstance(value, Mapping):
        return dict(value)
    return {"http": str(value), "https": str(value)}


def build_ssl_context(value: Any, verify: bool) -> Optional[ssl.SSLContext]:
    if value is None:
        return None
    if isinstance(value, ssl.SSLContext):
        return value
    version = value if isinstance(value, ssl.TLSVersion) else SECURE_PROTOCOLS.get(str(value))
    if version is None:
        LOGGER.warning("Ignoring unknown secure_protocol %r", value)
        return None
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    context.minimum_version = version
    context.maximum_version = version
    return context


def _pool_size(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, Mapping):
        size = value.get("maxSockets", value.get("max_sockets"))
        if isinstance(size, int) and not isinstance(size, bool):
            return size
    return None


def _has_header(headers: Mapping[str, Any], name: str) -> bool:
    return any(str(key).lower() == name for key in headers)


@dataclass
class SessionState:
    """The parts of a ``requests.Session`` that per-request options change."""

    cookies: Any
    max_redirects: int
    adapters: "OrderedDict[str, Any]"

    @classmethod
    def capture(cls, session: requests.Session) -> "SessionState":
        return cls(session.cookies, session.max_redirects, OrderedDict(session.adapters))

    def restore(self, session: requests.Session) -> None:
        """Put the captured state back, closing adapters mounted since capture."""

        kept = {id(adapter) for adapter in self.adapters.values()}
        for adapter in {id(a): a for a in session.adapters.values()}.values():
            if id(adapter) not in kept:
                adapter.close()
        session.cookies = self.cookies
        session.max_redirects = self.max_redirects
        session.adapters = self.adapters


class Transport:
    """Performs one HTTP exchange per :meth:`perform` call.

    A fresh ``requests.Session`` is used for every call unless ``session`` is
    injected, in which case the caller owns it and it is never closed here.
    Per-request ``jar``, ``max_redirects`` and adapter options are applied to
    an injected session only for the duration of the call.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._session = session
        self.settings = settings or get_settings()

    def request_kwargs(self, options: Mapping[str, Any]) -> dict[str, Any]:
        """Translate builder options into ``Session.request`` keyword arguments."""

        headers = dict(options.get("headers") or {})
        if self.settings.user_agent and not _has_header(headers, "user-agent"):
            headers["User-Agent"] = self.settings.user_agent

        kwargs: dict[str, Any] = {"headers": headers}
        if options.get("qs"):
            kwargs["params"] = options["qs"]

        body = options.get("body")
        json_option = options.get("json")
        if json_option is not None and not isinstance(json_option, bool):
            kwargs["json"] = json_option
        elif json_option is True and body is not None and not isinstance(body, (str, bytes, bytearray)):
            kwargs["data"] = json.dumps(body)
            if not _has_header(headers, "content-type"):
                headers["Content-Type"] = JSON_MIMETYPE
        elif body is not None:
            kwargs["data"] = body

        if options.get("form") is not None and "data" not in kwargs:
            kwargs["data"] = options["form"]
        if options.get("form_data"):
            kwargs["files"] = options["form_data"]
        if options.get("multipart"):
            data, content_type = multipart.encode_related(options["multipart"])
            kwargs["data"] = data
            if not _has_header(headers, "content-type"):
                headers["Content-Type"] = content_type

        auth = build_auth(options.get("auth"))
        for name in AUTH_OPTIONS:
            value = options.get(name)
            if value is None:
                continue
            if isinstance(value, AuthBase) and auth is None:
                auth = value
            else:
                LOGGER.debug("Ignoring %s option; pass a requests AuthBase instance", name)
        if auth is not None:
            kwargs["auth"] = auth

        timeout = options.get("timeout", self.settings.timeout)
        if timeout is not None:
            kwargs["timeout"] = timeout
        proxies = build_proxies(options.get("proxy"))
        if proxies:
            kwargs["proxies"] = proxies

        allow_redirects = options.get("follow_redirect", True)
        if options.get("follow_all_redirects"):
            allow_redirects = True
        kwargs["allow_redirects"] = bool(allow_redirects)
        kwargs["verify"] = bool(options.get("strict_ssl", self.settings.strict_ssl))

        for name in IGNORED_OPTIONS:
            if options.get(name) is not None:
                LOGGER.debug("Option %s has no requests equivalent; ignoring it", name)
        return kwargs

    def configure_session(self, session: requests.Session, options: Mapping[str, Any]) -> None:
        """Apply session-level options: redirect limit, cookie jar, adapters."""

        max_redirects = options.get("max_redirects")
        if isinstance(max_redirects, int) and not isinstance(max_redirects, bool):
            session.max_redirects = max_redirects

        cookie_jar = options.get("jar")
        if cookie_jar is not None and not isinstance(cookie_jar, bool):
            session.cookies = cookie_jar

        local_address = options.get("local_address")
        verify = bool(options.get("strict_ssl", self.settings.strict_ssl))
        ssl_context = build_ssl_context(options.get("secure_protocol"), verify)
        pool_size = _pool_size(options.get("pool"))
        if local_address or ssl_context is not None or pool_size:
            adapter_kwargs: dict[str, Any] = {}
            if pool_size:
                adapter_kwargs["pool_maxsize"] = pool_size
            adapter = TransportAdapter(
                local_address=local_address,
                ssl_context=ssl_context,
                **adapter_kwargs,
            )
            session.mount("http://", adapter)
            session.mount("https://", adapter)

    def _hooks(self, on_response: Iterable[Listener]) -> dict[str, list[Listener]]:
        interceptor = functools.partial(decompression_interceptor, chunk_size=self.settings.chunk_size)
        return {"response": [interceptor, *on_response]}

    def read_body(
        self,
        response: requests.Response,
        options: Mapping[str, Any],
        on_data: Sequence[Listener] = (),
    ) -> Any:
        """Drain the response stream, emitting ``data`` events per chunk."""

        stream: Optional[ResponseStream] = getattr(response, STREAM_ATTRIBUTE, None)
        if stream is None:
            decompression_interceptor(response, chunk_size=self.settings.chunk_size)
            stream = getattr(response, STREAM_ATTRIBUTE)

        encoding = options.get("encoding", _UNSET)
        if encoding and encoding is not _UNSET and not known_encoding(encoding):
            LOGGER.warning(
                "Unknown encoding %r requested; using the response default",
                encoding,
                extra={"event": "response.unknown_charset", "charset": str(encoding)},
            )
            encoding = _UNSET
        if encoding is _UNSET:
            encoding = body_encoding(response.headers.get("content-type"))
        if encoding:
            stream.set_encoding(encoding)

        chunks = []
        for chunk in stream:
            for listener in on_data:
                listener(chunk)
            chunks.append(chunk)
        body: Any = "".join(chunks) if encoding else b"".join(chunks)

        # Keep Response.content/.text usable on the raw response.
        response._content = body.encode(encoding, errors="replace") if encoding else body
        response._content_consumed = True
        return body

    def prepare(
        self,
        session: requests.Session,
        method: str,
        url: Any,
        kwargs: Mapping[str, Any],
    ) -> tuple[requests.PreparedRequest, dict[str, Any]]:
        """Prepare the request and the ``Session.send`` arguments the way ``Session.request`` does."""

        request = requests.Request(
            method=method,
            url=url,
            headers=kwargs.get("headers"),
            files=kwargs.get("files"),
            data=kwargs.get("data") or {},
            json=kwargs.get("json"),
            params=kwargs.get("params") or {},
            auth=kwargs.get("auth"),
            hooks=kwargs.get("hooks"),
        )
        prepared = session.prepare_request(request)
        environment = session.merge_environment_settings(
            prepared.url,
            kwargs.get("proxies") or {},
            kwargs.get("stream"),
            kwargs.get("verify"),
            None,
        )
        send_kwargs = {
            "timeout": kwargs.get("timeout"),
            "allow_redirects": kwargs.get("allow_redirects", True),
            **environment,
        }
        return prepared, send_kwargs

    def _failed(self, method: str, url: Any, exc: BaseException, started: float) -> TransportResult:
        duration = time.perf_counter() - started
        LOGGER.warning(
            "%s %s failed: %s",
            method,
            redact_url(url),
            exc,
            extra={"event": "request.failed", "reason": type(exc).__name__},
        )
        metrics.record_transport_failure(method, type(exc).__name__, duration)
        return TransportResult(exc, None, None)

    def perform(
        self,
        options: Mapping[str, Any],
        *,
        on_response: Sequence[Listener] = (),
        on_data: Sequence[Listener] = (),
        on_end: Sequence[Listener] = (),
    ) -> TransportResult:
        """Execute the request described by ``options``.

        Transport failures, including requests that cannot be prepared, are
        returned in :class:`TransportResult`, never raised. Listener
        exceptions propagate.
        """

        method = str(options.get("method") or "GET").upper()
        url = options.get("url")
        try:
            kwargs = self.request_kwargs(options)
        except (TypeError, ValueError) as exc:
            return self._failed(method, url, exc, time.perf_counter())
        kwargs["hooks"] = self._hooks(on_response)
        kwargs["stream"] = True

        session = self._session or requests.Session()
        owns_session = self._session is None
        state = None if owns_session else SessionState.capture(session)
        LOGGER.debug(
            "Dispatching %s %s",
            method,
            redact_url(url),
            extra={"event": "request.dispatch", "headers": redact_headers(kwargs["headers"])},
        )
        metrics.record_request_started(method, str(url))
        started = time.perf_counter()
        try:
            try:
                self.configure_session(session, options)
                prepared, send_kwargs = self.prepare(session, method, url, kwargs)
            except (TypeError, ValueError) as exc:
                # Bodies requests cannot encode and malformed URLs or headers.
                return self._failed(method, url, exc, started)
            try:
                response = session.send(prepared, **send_kwargs)
                try:
                    body = self.read_body(response, options, on_data)
                finally:
                    response.close()
            except (requests.RequestException, Urllib3Error, DecompressionError) as exc:
                return self._failed(method, url, exc, started)
        finally:
            if state is not None:
                state.restore(session)
            if owns_session:
                session.close()

        duration = time.perf_counter() - started
        LOGGER.info(
            "%s %s -> %s",
            method,
            redact_url(url),
            response.status_code,
            extra={"event": "request.completed", "status": response.status_code, "duration": duration},
        )
        metrics.record_request_completed(method, response.status_code, duration)
        for listener in on_end:
            listener()
        return TransportResult(None, response, body)

    def open_stream(self, url: str) -> Any:
        """GET ``url`` and return its decoded body as a readable stream.

        Used to resolve URL attachments; raises ``requests.RequestException``
        on failure or on a 4xx/5xx status.
        """

        kwargs: dict[str, Any] = {"stream": True, "verify": self.settings.strict_ssl}
        if self.settings.timeout is not None:
            kwargs["timeout"] = self.settings.timeout
        if self.settings.user_agent:
            kwargs["headers"] = {"User-Agent": self.settings.user_agent}
        session = self._session or requests.Session()
        try:
            response = session.get(url, **kwargs)
            response.raise_for_status()
        finally:
            if self._session is None:
                session.close()
        response.raw.decode_content = True
        return response.raw


__all__ = [
    "BearerAuth",
    "SessionState",
    "Transport",
    "TransportAdapter",
    "TransportResult",
    "body_encoding",
    "build_auth",
    "build_proxies",
    "known_encoding",
    "response_charset",
]
