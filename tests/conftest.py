import io
import sys
from pathlib import Path
from typing import Any, Optional

import pytest
from requests import Response as RawResponse
from requests.structures import CaseInsensitiveDict

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fluentrest.config import Settings  # noqa: E402
from fluentrest.payload import is_stream  # noqa: E402
from fluentrest.transport import TransportResult  # noqa: E402


class _HeaderCollector:
    """Utility header container emulating urllib3's API."""

    def __init__(self, header_map: dict[str, list[str]]):
        self._header_map = header_map

    def getlist(self, name: str) -> list[str]:
        return self._header_map.get(name, [])


class _RawStream:
    def __init__(self, header_map: dict[str, list[str]]):
        self.headers = _HeaderCollector(header_map)


def build_response(
    status: int = 200,
    headers: Optional[dict[str, str]] = None,
    body: bytes = b"",
    raw_headers: Optional[dict[str, list[str]]] = None,
    url: str = "http://example.com/",
) -> RawResponse:
    """Create a minimal ``requests.Response`` for normalizer and builder tests."""

    response = RawResponse()
    response.status_code = status
    response.reason = "OK" if status < 400 else "Error"
    response.url = url
    response._content = body  # type: ignore[attr-defined]
    response.headers = CaseInsensitiveDict(headers or {})
    if raw_headers is not None:
        response.raw = _RawStream(raw_headers)  # type: ignore[attr-defined]
    return response


class FakeTransport:
    """Records the options of every call and replays a canned result."""

    def __init__(self, result: Optional[TransportResult] = None) -> None:
        self.result = result or TransportResult(None, build_response(), "")
        self.calls: list[dict[str, Any]] = []
        self.opened: list[str] = []

    def perform(self, options, *, on_response=(), on_data=(), on_end=()):
        options = dict(options)
        body = options.get("body")
        if is_stream(body):
            options["body"] = b"".join(body)
        self.calls.append(options)
        if self.result.response is not None:
            for hook in on_response:
                hook(self.result.response)
            if self.result.body:
                for listener in on_data:
                    listener(self.result.body)
            for listener in on_end:
                listener()
        return self.result

    def open_stream(self, url: str) -> io.BytesIO:
        self.opened.append(url)
        return io.BytesIO(f"remote:{url}".encode())

    @property
    def last(self) -> dict[str, Any]:
        return self.calls[-1]


@pytest.fixture
def settings() -> Settings:
    return Settings(timeout=5.0, user_agent="fluentrest-tests")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    for name in (
        "FLUENTREST_TIMEOUT",
        "FLUENTREST_USER_AGENT",
        "FLUENTREST_STRICT_SSL",
        "FLUENTREST_CHUNK_SIZE",
        "FLUENTREST_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
