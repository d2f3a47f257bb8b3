"""HTTP response model and serializer."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from email.utils import formatdate

from config import SERVER_NAME, WRITE_CHUNK_SIZE

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    201: "Created",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    413: "Payload Too Large",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}


@dataclass(slots=True)
class PreparedResponse:
    head: bytes
    body: bytes


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        elif not isinstance(self.body, bytes):
            self.body = bytes(self.body)

    @property
    def reason(self) -> str:
        return self.reason_phrase or REASON_PHRASES.get(self.status_code, "Unknown")

    def to_bytes(self) -> bytes:
        """Serialize the response into wire format bytes."""
        prepared = prepare_response(self)
        return prepared.head + prepared.body


def error_response(status_code: int, *, headers: dict[str, str] | None = None) -> HTTPResponse:
    reason = REASON_PHRASES.get(status_code, "Error")
    return HTTPResponse(status_code=status_code, headers=dict(headers or {}), body=reason)


def prepare_response(response: HTTPResponse) -> PreparedResponse:
    normalized_headers = dict(response.headers)
    normalized_headers.setdefault(
        "Date",
        formatdate(timeval=None, localtime=False, usegmt=True),
    )
    normalized_headers.setdefault("Server", SERVER_NAME)
    normalized_headers.setdefault("Content-Type", "text/plain; charset=utf-8")
    # One request per connection, so the length header is always exact.
    normalized_headers["Content-Length"] = str(len(response.body))
    normalized_headers["Connection"] = "close"

    header_lines = [f"HTTP/1.1 {response.status_code} {response.reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in normalized_headers.items())
    head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
    return PreparedResponse(head=head, body=response.body)


def iter_body_chunks(body: bytes, chunk_size: int = WRITE_CHUNK_SIZE) -> Iterator[memoryview]:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    view = memoryview(body)
    for offset in range(0, len(view), chunk_size):
        yield view[offset : offset + chunk_size]
