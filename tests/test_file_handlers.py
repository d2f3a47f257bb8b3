"""Unit tests for upload and download handlers."""

from file_storage import (
    FileStorage,
    MemoryFileStorage,
    StorageReadError,
    StorageWriteError,
    StoredFile,
)
from handlers.file_handlers import DownloadHandler, UploadHandler
from request import HTTPRequest


class BrokenStorage(FileStorage):
    def put(self, key: str, content: bytes, content_type: str | None = None) -> bool:
        raise StorageWriteError("disk full")

    def get(self, key: str) -> StoredFile:
        raise StorageReadError("connection lost")


def _upload_request(body: bytes, content_type: str | None = None) -> HTTPRequest:
    headers = {"content-length": str(len(body))}
    if content_type is not None:
        headers["content-type"] = content_type
    return HTTPRequest(
        method="PUT",
        path="/files/report.pdf",
        http_version="HTTP/1.1",
        headers=headers,
        body=body,
    )


def _download_request() -> HTTPRequest:
    return HTTPRequest(method="GET", path="/files/report.pdf", http_version="HTTP/1.1")


def test_upload_creates_then_replaces() -> None:
    storage = MemoryFileStorage()
    upload = UploadHandler(storage)

    created = upload(_upload_request(b"%PDF-1.4..."), key="files/report.pdf")
    replaced = upload(_upload_request(b"%PDF-1.5"), key="files/report.pdf")

    assert created.status_code == 201
    assert created.headers["Location"] == "/files/report.pdf"
    assert b"11 bytes" in created.body
    assert replaced.status_code == 200
    assert storage.get("files/report.pdf").content == b"%PDF-1.5"


def test_upload_location_is_percent_encoded() -> None:
    response = UploadHandler(MemoryFileStorage())(_upload_request(b"x"), key="my notes.txt")

    assert response.headers["Location"] == "/my%20notes.txt"


def test_download_returns_stored_bytes_and_type() -> None:
    storage = MemoryFileStorage()
    UploadHandler(storage)(
        _upload_request(b"%PDF-1.4...", "application/pdf"),
        key="files/report.pdf",
    )

    response = DownloadHandler(storage)(_download_request(), key="files/report.pdf")

    assert response.status_code == 200
    assert response.body == b"%PDF-1.4..."
    assert response.headers["Content-Type"] == "application/pdf"


def test_download_guesses_type_when_none_stored() -> None:
    storage = MemoryFileStorage()
    storage.put("docs/readme.txt", b"hello")

    response = DownloadHandler(storage)(_download_request(), key="docs/readme.txt")

    assert response.headers["Content-Type"] == "text/plain"


def test_download_unknown_extension_is_octet_stream() -> None:
    storage = MemoryFileStorage()
    storage.put("blob.zzz-unknown", b"\x00")

    response = DownloadHandler(storage)(_download_request(), key="blob.zzz-unknown")

    assert response.headers["Content-Type"] == "application/octet-stream"


def test_download_miss_is_empty_404() -> None:
    response = DownloadHandler(MemoryFileStorage())(_download_request(), key="files/report.pdf")

    assert response.status_code == 404
    assert response.body == b""


def test_storage_failures_become_500() -> None:
    storage = BrokenStorage()

    upload_response = UploadHandler(storage)(_upload_request(b"data"), key="a.bin")
    download_response = DownloadHandler(storage)(_download_request(), key="a.bin")

    assert upload_response.status_code == 500
    assert download_response.status_code == 500


def test_upload_drops_content_type_with_control_characters() -> None:
    storage = MemoryFileStorage()
    request = _upload_request(b"hello", "text/plain\nX-Injected: yes")

    UploadHandler(storage)(request, key="x.txt")
    response = DownloadHandler(storage)(_download_request(), key="x.txt")

    assert storage.get("x.txt").content_type is None
    assert response.headers["Content-Type"] == "text/plain"
