"""Error types surfaced by fluentrest."""

from __future__ import annotations

from typing import Any

MAX_BODY_SUMMARY = 200

__all__ = [
    "CookieJarError",
    "DecompressionError",
    "FluentRestError",
    "NoResponseError",
    "StatusError",
]


class FluentRestError(Exception):
    """Base class for errors produced by fluentrest itself."""


def _summarize(body: Any) -> str:
    if body is None or body == "" or body == b"":
        return ""
    if isinstance(body, (bytes, bytearray)):
        text = bytes(body).decode("utf-8", errors="replace")
    else:
        text = str(body)
    text = " ".join(text.split())
    if len(text) <= MAX_BODY_SUMMARY:
        return text
    return text[: MAX_BODY_SUMMARY - 3] + "..."


class StatusError(FluentRestError):
    """Attached to responses in the 4xx and 5xx ranges. Never raised by the library."""

    def __init__(self, status: int, body: Any = None) -> None:
        self.status = status
        self.body = body
        message = f"got {status} response"
        summary = _summarize(body)
        if summary:
            message = f"{message}: {summary}"
        super().__init__(message)


class NoResponseError(FluentRestError):
    """The transport reported success without supplying a response."""

    def __init__(self, message: str = "Request returned empty response object") -> None:
        super().__init__(message)


class DecompressionError(FluentRestError):
    """A gzip or deflate encoded body could not be inflated."""


class CookieJarError(FluentRestError):
    """The configured cookie jar cannot accept cookies from the builder."""
