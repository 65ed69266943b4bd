"""Response decompression for gzip and deflate encoded bodies.

The interceptor runs on the transport's ``response`` event, before any body
bytes are consumed. It attaches a :class:`ResponseStream` to the raw response
so both the buffered body and ``data`` listeners observe inflated bytes.
"""

from __future__ import annotations

import codecs
import logging
import re
import zlib
from collections.abc import Iterable, Iterator
from typing import Any, Optional, Union

from .errors import DecompressionError

LOGGER = logging.getLogger(__name__)

COMPRESSED_ENCODINGS = re.compile(r"^(deflate|gzip)$", re.IGNORECASE)
STREAM_ATTRIBUTE = "body_stream"
DEFAULT_CHUNK_SIZE = 8192

Chunk = Union[bytes, str]


class Inflater:
    """Incremental gunzip/inflate that also accepts headerless deflate data."""

    def __init__(self) -> None:
        # 32 + MAX_WBITS auto-detects gzip and zlib headers.
        self._decompressor = zlib.decompressobj(zlib.MAX_WBITS | 32)
        self._started = False

    def decompress(self, data: bytes) -> bytes:
        if not data:
            return b""
        try:
            output = self._decompressor.decompress(data)
        except zlib.error as exc:
            if self._started:
                raise DecompressionError(str(exc)) from exc
            # Some servers send raw deflate streams without the zlib header.
            self._decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
            try:
                output = self._decompressor.decompress(data)
            except zlib.error as raw_exc:
                raise DecompressionError(str(raw_exc)) from raw_exc
        self._started = True
        return output

    def flush(self) -> bytes:
        try:
            return self._decompressor.flush()
        except zlib.error as exc:
            raise DecompressionError(str(exc)) from exc


class ResponseStream:
    """Iterable over response body chunks.

    Bytes are emitted until :meth:`set_encoding` is called; after that every
    chunk is decoded incrementally so multi-byte characters split across
    chunks are never broken.
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        *,
        content_encoding: Optional[str] = None,
    ) -> None:
        self._chunks = chunks
        self._inflater: Optional[Inflater] = None
        if content_encoding and COMPRESSED_ENCODINGS.match(content_encoding.strip()):
            self._inflater = Inflater()
        self._decoder: Optional[codecs.IncrementalDecoder] = None
        self.encoding: Optional[str] = None

    @property
    def decompressing(self) -> bool:
        return self._inflater is not None

    def set_encoding(self, encoding: str) -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self.encoding = encoding

    def _emit(self, data: bytes, *, final: bool = False) -> Iterator[Chunk]:
        if self._decoder is None:
            if data:
                yield data
            return
        text = self._decoder.decode(data, final=final)
        if text:
            yield text

    def __iter__(self) -> Iterator[Chunk]:
        for chunk in self._chunks:
            if self._inflater is not None:
                chunk = self._inflater.decompress(chunk)
            yield from self._emit(chunk)
        tail = self._inflater.flush() if self._inflater is not None else b""
        yield from self._emit(tail, final=True)


def _raw_chunks(response: Any, *, decode_content: bool, chunk_size: int) -> Iterable[bytes]:
    raw = getattr(response, "raw", None)
    if raw is not None and callable(getattr(raw, "stream", None)):
        return raw.stream(chunk_size, decode_content=decode_content)
    return response.iter_content(chunk_size)


def decompression_interceptor(response: Any, *args: Any, **kwargs: Any) -> Any:
    """``response`` hook installing a :class:`ResponseStream` on ``response``.

    For gzip/deflate bodies the transport's own decoding is bypassed and the
    inflater runs here; other encodings are left to urllib3.
    """

    encoding = response.headers.get("content-encoding", "") or ""
    compressed = bool(COMPRESSED_ENCODINGS.match(encoding.strip()))
    chunk_size = kwargs.get("chunk_size", DEFAULT_CHUNK_SIZE)
    chunks = _raw_chunks(response, decode_content=not compressed, chunk_size=chunk_size)
    stream = ResponseStream(chunks, content_encoding=encoding if compressed else None)
    setattr(response, STREAM_ATTRIBUTE, stream)
    if compressed:
        LOGGER.debug(
            "Installed %s decompression for %s",
            encoding,
            getattr(response, "url", "<unknown>"),
            extra={"event": "response.decompress", "encoding": encoding},
        )
    return response


__all__ = [
    "COMPRESSED_ENCODINGS",
    "Inflater",
    "ResponseStream",
    "STREAM_ATTRIBUTE",
    "decompression_interceptor",
]
