import pytest

from services.download import (
    content_disposition_attachment,
    content_type_for,
    sanitize_download_filename,
)
from services.errors import InvalidPath, NotFound, ReadFailure
from services.sinks import BufferSink
from tests.conftest import METRICS, README, non_utf8_names, open_zip, write_raw_name


def test_file_download_headers_and_body(dispatcher):
    sink = BufferSink()
    dispatcher.download("/static-files/data/metrics.csv", sink)
    assert sink.headers["Content-Disposition"] == 'attachment; filename="metrics.csv"'
    assert sink.headers["Content-Type"] == "text/csv"
    assert sink.headers["Cache-Control"] == "no-cache"
    assert sink.headers["Pragma"] == "no-cache"
    assert sink.getvalue() == METRICS
    assert sink.bytes_written == 10


def test_directory_download_is_a_zip(dispatcher):
    sink = BufferSink()
    dispatcher.download("/static-files", sink)
    assert sink.headers["Content-Disposition"] == 'attachment; filename="static-files.zip"'
    assert sink.headers["Content-Type"] == "application/zip"
    zf = open_zip(sink.getvalue())
    assert zf.read("static-files/docs/README.md") == README


@pytest.mark.parametrize(
    "name, expected",
    [
        ("notes.txt", "text/plain"),
        ("a.JSON", "application/json"),
        ("README.md", "text/markdown"),
        ("conf.yml", "application/x-yaml"),
        ("photo.JPEG", "image/jpeg"),
        ("archive.tar.gz", "application/octet-stream"),
        ("Makefile", "application/octet-stream"),
    ],
)
def test_content_type_for(name, expected):
    assert content_type_for(name) == expected


def test_unknown_extension_downloads_as_octet_stream(root, dispatcher):
    (root / "blob.bin").write_bytes(b"\x00\x01")
    sink = BufferSink()
    dispatcher.download("/blob.bin", sink)
    assert sink.headers["Content-Type"] == "application/octet-stream"
    assert sink.getvalue() == b"\x00\x01"


def test_non_ascii_filename_gets_rfc5987_parameter():
    value = content_disposition_attachment("résumé.pdf")
    assert value.startswith('attachment; filename="r_sum_.pdf"')
    assert "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf" in value


def test_sanitize_download_filename():
    assert sanitize_download_filename('a"b\r\n.txt') == "ab.txt"
    assert sanitize_download_filename("../../etc/passwd") == "passwd"
    assert sanitize_download_filename("   ") == "download"
    assert len(sanitize_download_filename("x" * 500)) == 180


def test_missing_item_leaves_the_sink_untouched(dispatcher):
    sink = BufferSink()
    with pytest.raises(NotFound):
        dispatcher.download("/static-files/nope.csv", sink)
    assert sink.headers == {}
    assert sink.bytes_written == 0


def test_traversal_is_rejected(dispatcher):
    with pytest.raises(InvalidPath):
        dispatcher.download("/../secret", BufferSink())


def test_describe_file(dispatcher):
    info = dispatcher.describe("/static-files/data/metrics.csv")
    assert info == {
        "message": "Download available",
        "itemName": "metrics.csv",
        "isDirectory": False,
        "size": 10,
        "filename": "metrics.csv",
        "contentType": "text/csv",
        "downloadUrl": "/api/download?path=/static-files/data/metrics.csv",
    }


def test_describe_directory(dispatcher):
    info = dispatcher.describe("/static-files/docs")
    assert info["isDirectory"] is True
    assert info["size"] == 0
    assert info["filename"] == "docs.zip"
    assert info["contentType"] == "application/zip"


@non_utf8_names
def test_undecodable_file_name_download(root, dispatcher):
    name = write_raw_name(root, b"caf\xe9.txt", b"bytes")
    sink = BufferSink()
    dispatcher.download("/" + name, sink)
    assert sink.headers["Content-Disposition"] == (
        "attachment; filename=\"caf_.txt\"; filename*=UTF-8''caf%EF%BF%BD.txt"
    )
    assert sink.getvalue() == b"bytes"

    info = dispatcher.describe("/" + name)
    assert info["itemName"] == "caf\ufffd.txt"
    assert info["downloadUrl"] == "/api/download?path=/caf%E9.txt"


def test_prepare_opens_files_up_front(monkeypatch, dispatcher):
    def denied(*args, **kwargs):
        raise PermissionError(13, "Permission denied")

    monkeypatch.setattr("services.content.open", denied, raising=False)
    with pytest.raises(ReadFailure):
        dispatcher.prepare("/static-files/data/metrics.csv")
    # Directories have nothing to open.
    assert dispatcher.prepare("/static-files").source is None


def test_prepared_file_can_be_released_unsent(dispatcher):
    prepared = dispatcher.prepare("/static-files/data/metrics.csv")
    fp = prepared.source
    prepared.close()
    assert fp.closed
    assert prepared.source is None
