from __future__ import annotations

import io
import json

from fluentrest import multipart
from fluentrest.multipart import Part


def test_part_filename_and_content_type_for_paths() -> None:
    part = Part("file", "/tmp/reports/summary.json", attachment=True)

    assert part.filename == "summary.json"
    assert part.content_type == "application/json"


def test_part_filename_for_urls_and_streams() -> None:
    remote = Part("file", "https://example.com/img/logo.png?size=2", attachment=True)
    stream = io.BytesIO(b"x")
    stream.name = "/var/data/blob.bin"  # type: ignore[attr-defined]

    assert remote.filename == "logo.png"
    assert Part("file", stream, attachment=True).filename == "blob.bin"
    assert Part("field", "value").filename is None
    assert Part("field", "value").content_type is None


def test_part_options_override_detection() -> None:
    part = Part("file", b"x", attachment=True, options={"filename": "a.txt", "contentType": "text/csv"})

    assert part.filename == "a.txt"
    assert part.content_type == "text/csv"


def test_marshal_field_value() -> None:
    stream = io.BytesIO(b"x")

    assert multipart.marshal_field_value("text") == "text"
    assert multipart.marshal_field_value(b"raw") == b"raw"
    assert multipart.marshal_field_value(stream) is stream
    assert json.loads(multipart.marshal_field_value({"a": 1})) == {"a": 1}
    assert multipart.marshal_field_value(12) == "12"
    assert multipart.marshal_field_value(None) == "None"


def test_resolve_attachment_uses_collaborators() -> None:
    opened: list[str] = []
    fetched: list[str] = []

    def opener(path: str) -> io.BytesIO:
        opened.append(path)
        return io.BytesIO(b"local")

    def fetch(url: str) -> io.BytesIO:
        fetched.append(url)
        return io.BytesIO(b"remote")

    local = multipart.resolve_attachment(Part("a", "notes.txt", True), fetch=fetch, opener=opener)
    remote = multipart.resolve_attachment(Part("b", "http://x.test/f.txt", True), fetch=fetch, opener=opener)
    field = Part("c", "value")

    assert opened == ["notes.txt"]
    assert fetched == ["http://x.test/f.txt"]
    assert local.value.read() == b"local"
    assert local.filename == "notes.txt"
    assert remote.filename == "f.txt"
    assert multipart.resolve_attachment(field, fetch=fetch, opener=opener) is field


def test_open_read_stream_reads_files(tmp_path) -> None:
    target = tmp_path / "data.bin"
    target.write_bytes(b"\x00\x01")

    with multipart.open_read_stream(str(target)) as handle:
        assert handle.read() == b"\x00\x01"


def test_iter_value_reads_streams_in_chunks() -> None:
    chunks = list(multipart.iter_value(io.BytesIO(b"abcdef"), chunk_size=4))

    assert chunks == [b"abcd", b"ef"]
    assert list(multipart.iter_value(iter(["a", b"b"]))) == [b"a", b"b"]
    assert list(multipart.iter_value(None)) == []


def test_encode_form_data_renders_fields_and_files() -> None:
    parts = [
        Part("name", "widget"),
        Part("file", io.BytesIO(b"PNGDATA"), attachment=True, options={"filename": "a.png"}),
    ]

    body, content_type = multipart.encode_form_data(parts, boundary="xyz")

    assert content_type == "multipart/form-data; boundary=xyz"
    assert b'Content-Disposition: form-data; name="name"\r\n\r\nwidget\r\n' in body
    assert b'name="file"; filename="a.png"' in body
    assert b"Content-Type: image/png\r\n\r\nPNGDATA\r\n" in body
    assert body.endswith(b"--xyz--\r\n")


def test_stream_form_data_reads_values_lazily() -> None:
    reads: list[int] = []

    class TrackingStream(io.BytesIO):
        def read(self, size: int = -1) -> bytes:  # type: ignore[override]
            reads.append(size)
            return super().read(size)

    parts = [Part("first", "1"), Part("upload", TrackingStream(b"payload"), attachment=True)]
    body, content_type = multipart.stream_form_data(parts, boundary="b", chunk_size=3)

    assert content_type == "multipart/form-data; boundary=b"
    assert reads == []

    rendered = b"".join(body)
    assert reads == [3, 3, 3, 3]
    assert rendered.index(b'name="first"') < rendered.index(b'name="upload"')
    assert b"\r\n\r\npayload\r\n" in rendered
    assert rendered.endswith(b"--b--\r\n")


def test_prepare_related_part() -> None:
    assert multipart.prepare_related_part("plain") == {"body": "plain"}
    assert multipart.prepare_related_part({"body": {"a": 1}}) == {
        "body": '{"a": 1}',
        "content-type": "application/json",
    }
    assert multipart.prepare_related_part({"type": "application/x-www-form-urlencoded", "body": {"a": 1}}) == {
        "body": "a=1",
        "content-type": "application/x-www-form-urlencoded",
    }
    assert multipart.prepare_related_part({"content-type": "text/plain", "body": "hi"}) == {
        "content-type": "text/plain",
        "body": "hi",
    }


def test_encode_related() -> None:
    body, content_type = multipart.encode_related(
        [{"content-type": "application/json", "body": '{"a": 1}'}, {"body": b"raw"}],
        boundary="rel",
    )

    assert content_type == "multipart/related; boundary=rel"
    assert body == (
        b"--rel\r\nContent-Type: application/json\r\n\r\n{\"a\": 1}\r\n"
        b"--rel\r\n\r\nraw\r\n"
        b"--rel--\r\n"
    )
