"""The chainable request builder."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from contextlib import ExitStack
from functools import lru_cache
from typing import Any, Optional

import requests
from requests.auth import AuthBase

from . import cookies, multipart
from .config import Settings, get_settings
from .maps import Headers, OrderedMap, Query
from .marshals import FORM, FORM_MIMETYPE, QUERY, base_mimetype, is_json_type
from .mime import lookup
from .multipart import FileOpener, Part, open_read_stream
from .payload import BodyKind, Payload, is_stream
from .response import Response, normalize
from .transport import Transport

LOGGER = logging.getLogger(__name__)

METHODS = ("GET", "HEAD", "PUT", "POST", "PATCH", "DELETE", "OPTIONS")
EVENTS = ("response", "data", "end")

# Builder method name -> transport option it stores.
OPTION_ALIASES: Mapping[str, str] = {
    "url": "url",
    "uri": "url",
    "method": "method",
    "qs": "qs",
    "form": "form",
    "form_data": "form_data",
    "json": "json",
    "multipart": "multipart",
    "follow_redirect": "follow_redirect",
    "redirect": "follow_redirect",
    "follow_all_redirects": "follow_all_redirects",
    "max_redirects": "max_redirects",
    "redirects": "max_redirects",
    "encoding": "encoding",
    "pool": "pool",
    "timeout": "timeout",
    "proxy": "proxy",
    "tunnel": "tunnel",
    "oauth": "oauth",
    "hawk": "hawk",
    "strict_ssl": "strict_ssl",
    "ssl": "strict_ssl",
    "jar": "jar",
    "cookies": "jar",
    "aws": "aws",
    "http_signature": "http_signature",
    "local_address": "local_address",
    "ip": "local_address",
    "secure_protocol": "secure_protocol",
    "forever": "forever",
    "har": "har",
}

Callback = Callable[[Optional[BaseException], Optional[Response]], Any]

_MISSING = object()


@lru_cache(maxsize=1)
def default_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(thread_name_prefix="fluentrest")


def _chain(
    source: Future,
    on_fulfilled: Optional[Callable[[Any], Any]],
    on_rejected: Optional[Callable[[BaseException], Any]],
) -> Future:
    chained: Future = Future()

    def settle(completed: Future) -> None:
        try:
            error = completed.exception()
            if error is None:
                value = completed.result()
                outcome = on_fulfilled(value) if on_fulfilled is not None else value
            elif on_rejected is not None:
                outcome = on_rejected(error)
            else:
                chained.set_exception(error)
                return
        except Exception as exc:  # handler failures reject the chained future
            chained.set_exception(exc)
            return
        chained.set_result(outcome)

    source.add_done_callback(settle)
    return chained


class Request:
    """Accumulates request options until :meth:`end` dispatches them.

    Every builder method returns the request so calls can be chained::

        response = (
            Request("POST", "http://example.com/items")
            .header("Accept", "application/json")
            .type("json")
            .send({"name": "widget"})
            .end()
        )

    A request is single-use: calling builder methods after :meth:`end` has no
    defined effect.
    """

    def __init__(
        self,
        method: str = "GET",
        url: Optional[str] = None,
        *,
        transport: Optional[Transport] = None,
        settings: Optional[Settings] = None,
        file_opener: FileOpener = open_read_stream,
    ) -> None:
        self.settings = settings or get_settings()
        self.transport = transport or Transport(settings=self.settings)
        self.file_opener = file_opener
        self.options: dict[str, Any] = {
            "method": str(method).upper(),
            "url": url,
            "headers": Headers(),
            "body": None,
        }
        self.query_map = Query()
        self.form_parts: list[Part] = []
        self.listeners: dict[str, list[Callable[..., Any]]] = {event: [] for event in EVENTS}

    def __repr__(self) -> str:
        return f"<Request {self.options['method']} {self.options['url']}>"

    @property
    def content_type(self) -> Optional[str]:
        return self.options["headers"].get("content-type")

    # Headers, query and type

    def header(self, field: Any, value: Any = _MISSING) -> "Request":
        """Set one header, or merge a mapping of headers when ``value`` is omitted."""

        if value is _MISSING:
            self.options["headers"].put_all(field)
        else:
            self.options["headers"].put(field, value)
        return self

    headers = header
    set = header

    def query(self, value: Any) -> "Request":
        """Append ``value`` (a mapping or an encoded string) to the URL query."""

        if isinstance(value, Mapping):
            self.query_map.put_all(value)
            value = QUERY.unmarshal(value)
        elif isinstance(value, str):
            self.query_map.put_all(value)
        if not value:
            return self
        url = self.options["url"] or ""
        separator = "&" if "?" in url else "?"
        self.options["url"] = f"{url}{separator}{value}"
        return self

    def type(self, name: str) -> "Request":
        """Set ``Content-Type`` from a mimetype or a short name like ``json``."""

        content_type = name if "/" in name else lookup(name, self.settings.mime_aliases)
        return self.header("Content-Type", content_type)

    def auth(self, user: Any, password: Optional[str] = None, send_immediately: bool = True) -> "Request":
        """Store credentials for the transport.

        ``user`` may also be a mapping (``user``/``pass``/``sendImmediately``
        or ``bearer`` keys) or a ``requests.auth.AuthBase`` instance.
        """

        if isinstance(user, (Mapping, AuthBase)) or callable(user):
            self.options["auth"] = user
        else:
            self.options["auth"] = {
                "user": user,
                "pass": password,
                "sendImmediately": send_immediately,
            }
        return self

    def mashape(self, key: str) -> "Request":
        return self.header("X-Mashape-Key", key)

    # Body

    def send(self, data: Any) -> "Request":
        """Add ``data`` to the request body.

        Mappings merge into the body when the content type is JSON and are
        form-encoded otherwise. Lists replace a JSON body. Strings are joined
        with ``&`` for form bodies and concatenated for anything else. Bytes
        and streams replace the body.
        """

        payload = Payload.of(data)
        if payload.kind is BodyKind.ABSENT:
            return self

        content_type = self.content_type
        if payload.kind is BodyKind.STRUCTURED and is_json_type(content_type):
            current = self.options["body"]
            merged = dict(current) if isinstance(current, Mapping) else {}
            merged.update(payload.value)
            self.options["body"] = merged
            self.options["json"] = True
            return self

        if payload.kind is BodyKind.STRUCTURED:
            self.type("form")
            text = FORM.unmarshal(payload.value)
        elif payload.kind is BodyKind.TEXT:
            if not content_type:
                self.type("form")
            text = payload.value
        elif isinstance(payload.value, (list, tuple)) and is_json_type(content_type):
            self.options["body"] = list(payload.value)
            self.options["json"] = True
            return self
        else:
            self.options["body"] = payload.value
            return self

        current = self.options["body"]
        if not isinstance(current, str):
            current = None
        if base_mimetype(self.content_type) == FORM_MIMETYPE:
            self.options["body"] = f"{current}&{text}" if current else text
        else:
            self.options["body"] = (current or "") + text
        return self

    body = send
    payload = send

    def field(self, name: Any, value: Any = _MISSING, options: Optional[Mapping[str, Any]] = None) -> "Request":
        """Add a ``multipart/form-data`` field; lists add one part per item and None adds nothing."""

        if value is _MISSING and isinstance(name, Mapping):
            for key, item in name.items():
                self.field(key, item, options)
            return self
        if isinstance(value, (list, tuple)):
            for item in value:
                self.field(name, item, options)
            return self
        if value is None:
            return self
        options = dict(options or {})
        if not options.get("marshalled"):
            value = multipart.marshal_field_value(value)
        self.form_parts.append(Part(str(name), value, attachment=False, options=options))
        return self

    def attach(self, name: Any, value: Any = _MISSING, options: Optional[Mapping[str, Any]] = None) -> "Request":
        """Add a file attachment from a path, an ``http(s)`` URL, bytes or a stream."""

        if value is _MISSING and isinstance(name, Mapping):
            for key, item in name.items():
                self.attach(key, item, options)
            return self
        if isinstance(value, (list, tuple)):
            for item in value:
                self.attach(name, item, options)
            return self
        self.form_parts.append(Part(str(name), value, attachment=True, options=dict(options or {})))
        return self

    def part(self, data: Any) -> "Request":
        """Add a raw ``multipart/related`` part."""

        prepared = multipart.prepare_related_part(data, self.settings.body_marshals)
        self.options.setdefault("multipart", [])
        if not isinstance(self.options["multipart"], list):
            self.options["multipart"] = list(self.options["multipart"])
        self.options["multipart"].append(prepared)
        return self

    def stream(self) -> "Request":
        """Send form parts as a streamed body, reading each value as it is written."""

        self.options["stream"] = True
        return self

    # Cookies and events

    def cookie(self, name: str, value: Any, url: Optional[str] = None) -> "Request":
        cookie_jar = self.options.get("jar")
        if cookie_jar is None or isinstance(cookie_jar, bool):
            cookie_jar = cookies.jar()
            self.options["jar"] = cookie_jar
        cookies.add_cookie(cookie_jar, name, value, url or self.options["url"])
        return self

    def on(self, event: str, handler: Callable[..., Any]) -> "Request":
        """Listen for ``response`` (raw response), ``data`` (body chunk) or ``end``."""

        if event not in self.listeners:
            raise ValueError(f"Unsupported event {event!r}; expected one of {', '.join(EVENTS)}")
        self.listeners[event].append(handler)
        return self

    def _response_hooks(self) -> list[Callable[..., None]]:
        def wrap(handler: Callable[..., Any]) -> Callable[..., None]:
            def hook(response: requests.Response, *args: Any, **kwargs: Any) -> None:
                handler(response)

            return hook

        return [wrap(handler) for handler in self.listeners["response"]]

    # Dispatch

    def _prepare_form_body(self, stack: ExitStack) -> Any:
        parts = []
        for part in self.form_parts:
            resolved = multipart.resolve_attachment(
                part,
                fetch=self.transport.open_stream,
                opener=self.file_opener,
            )
            if resolved is not part and callable(getattr(resolved.value, "close", None)):
                stack.callback(resolved.value.close)
            parts.append(resolved)

        if self.options.get("stream"):
            body, content_type = multipart.stream_form_data(parts, chunk_size=self.settings.chunk_size)
        else:
            body, content_type = multipart.encode_form_data(parts)
        self.header("Content-Type", content_type)
        return body

    def transport_options(self, body: Any = _MISSING) -> dict[str, Any]:
        options = {key: value for key, value in self.options.items() if key != "stream"}
        options["headers"] = self.options["headers"].to_dict()
        if body is not _MISSING:
            options["body"] = body
        return options

    def end(self, callback: Optional[Callback] = None) -> Response:
        """Dispatch the request and return the normalized :class:`Response`.

        ``callback`` receives ``(None, response)`` whenever a response arrived,
        including 4xx/5xx ones, and ``(error, None)`` when none did. Neither
        case raises.
        """

        LOGGER.debug("Sending %r", self, extra={"event": "request.end"})
        with ExitStack() as stack:
            try:
                body = self._prepare_form_body(stack) if self.form_parts else _MISSING
            except (OSError, requests.RequestException) as exc:
                LOGGER.warning(
                    "Could not resolve attachments for %r: %s",
                    self,
                    exc,
                    extra={"event": "request.attachment_failed"},
                )
                response = Response.for_error(exc)
            else:
                result = self.transport.perform(
                    self.transport_options(body),
                    on_response=self._response_hooks(),
                    on_data=list(self.listeners["data"]),
                    on_end=list(self.listeners["end"]),
                )
                response = normalize(
                    result.error,
                    result.response,
                    result.body,
                    marshals=self.settings.body_marshals,
                )

        if callback is not None:
            if response.raw is None:
                callback(response.error, None)
            else:
                callback(None, response)
        return response

    complete = end

    # Futures

    def future(self, executor: Optional[Executor] = None) -> Future:
        """Run :meth:`end` on ``executor``.

        The future resolves with the :class:`Response` or fails with the
        transport error when no response arrived.
        """

        def run() -> Response:
            response = self.end()
            if response.raw is None:
                raise response.error
            return response

        return (executor or default_executor()).submit(run)

    def then(
        self,
        on_fulfilled: Optional[Callable[[Response], Any]] = None,
        on_rejected: Optional[Callable[[BaseException], Any]] = None,
    ) -> Future:
        return _chain(self.future(), on_fulfilled, on_rejected)

    def catch(self, on_rejected: Callable[[BaseException], Any]) -> Future:
        return self.then(None, on_rejected)


def _option_setter(option: str) -> Callable[[Request, Any], Request]:
    def setter(self: Request, value: Any) -> Request:
        self.options[option] = value
        return self

    setter.__doc__ = f"Set the ``{option}`` transport option."
    return setter


for _name, _option in OPTION_ALIASES.items():
    _setter = _option_setter(_option)
    _setter.__name__ = _setter.__qualname__ = _name
    setattr(Request, _name, _setter)
del _name, _option, _setter


__all__ = ["EVENTS", "METHODS", "OPTION_ALIASES", "Request"]
