"""HTTP request model and parser."""

from dataclasses import dataclass, field

from config import MAX_BODY_BYTES, MAX_HEADER_BYTES

SUPPORTED_METHODS = ("GET", "POST", "PUT")
ALLOWED_HTTP_VERSIONS = {"HTTP/1.1", "HTTP/1.0"}
KNOWN_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",
    "PATCH",
    "TRACE",
    "CONNECT",
}
HEAD_TERMINATOR = b"\r\n\r\n"


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class MalformedRequestLineError(HTTPRequestParseError):
    pass


class MalformedHeadersError(HTTPRequestParseError):
    pass


class BodyTruncatedError(HTTPRequestParseError):
    pass


class UnsupportedMethodError(HTTPRequestParseError):
    status_code = 501


class UnsupportedVersionError(HTTPRequestParseError):
    status_code = 505


class HeaderTooLargeError(HTTPRequestParseError):
    status_code = 431


class PayloadTooLargeError(HTTPRequestParseError):
    status_code = 413


class RequestTimeoutError(HTTPRequestParseError):
    status_code = 408


@dataclass(slots=True)
class RequestHead:
    method: str
    path: str
    http_version: str
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def content_length(self) -> int:
        return parse_content_length(self.headers)


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def content_type(self) -> str | None:
        return self.headers.get("content-type")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse one complete request buffer; trailing bytes past Content-Length are ignored."""
        header_end = raw.find(HEAD_TERMINATOR)
        if header_end == -1:
            if not raw.strip():
                raise MalformedRequestLineError("Empty request")
            raise MalformedHeadersError("Missing CRLF CRLF request separator")

        head = parse_request_head(raw[:header_end])
        expected_length = head.content_length
        body = raw[header_end + len(HEAD_TERMINATOR) :]
        if len(body) < expected_length:
            raise BodyTruncatedError(
                f"Body truncated: expected {expected_length} bytes, got {len(body)}"
            )
        return cls.from_head(head, body[:expected_length])

    @classmethod
    def from_head(cls, head: RequestHead, body: bytes) -> "HTTPRequest":
        return cls(
            method=head.method,
            path=head.path,
            http_version=head.http_version,
            headers=head.headers,
            body=body,
        )

    def to_bytes(self) -> bytes:
        """Serialize back into wire format, with Content-Length matching the body."""
        lines = [f"{self.method} {self.path} {self.http_version}"]
        headers = {
            name: value for name, value in self.headers.items() if name != "content-length"
        }
        if self.body or "content-length" in self.headers:
            headers["content-length"] = str(len(self.body))
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = "\r\n".join(lines).encode("iso-8859-1")
        return head + HEAD_TERMINATOR + self.body


def parse_request_head(header_bytes: bytes) -> RequestHead:
    """Parse the request line and header block (without the blank line)."""
    if len(header_bytes) + len(HEAD_TERMINATOR) > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    lines = header_bytes.decode("iso-8859-1").split("\r\n")
    if not lines or not lines[0]:
        raise MalformedRequestLineError("Missing request line")
    if has_control_characters(lines[0]):
        raise MalformedRequestLineError("Control character in request line")

    method, path, http_version = _parse_request_line(lines[0])

    headers: dict[str, str] = {}
    for line in lines[1:]:
        if has_control_characters(line):
            raise MalformedHeadersError("Control character in header line")
        if ":" not in line:
            raise MalformedHeadersError("Malformed header line")
        name, value = line.split(":", 1)
        header_name = name.strip().lower()
        if not header_name:
            raise MalformedHeadersError("Header name cannot be empty")
        headers[header_name] = value.lstrip()

    content_length = parse_content_length(headers)
    if content_length > MAX_BODY_BYTES:
        raise PayloadTooLargeError("Body exceeded MAX_BODY_BYTES")

    return RequestHead(method=method, path=path, http_version=http_version, headers=headers)


def has_control_characters(value: str) -> bool:
    """True when ``value`` holds a bare CR, LF or any other control character except HTAB."""
    return any((ord(char) < 32 and char != "\t") or ord(char) == 127 for char in value)


def parse_content_length(headers: dict[str, str]) -> int:
    raw_value = headers.get("content-length")
    if raw_value is None:
        return 0
    value = raw_value.strip()
    if not (value.isascii() and value.isdigit()):
        raise MalformedHeadersError("Invalid Content-Length")
    return int(value)


def _parse_request_line(line: str) -> tuple[str, str, str]:
    parts = line.split(" ")
    if len(parts) != 3:
        raise MalformedRequestLineError("Invalid request line")

    method, path, http_version = parts
    if not method or not path or not http_version:
        raise MalformedRequestLineError("Request line contains empty tokens")

    if not http_version.startswith("HTTP/"):
        raise MalformedRequestLineError("Invalid HTTP version token")
    if http_version not in ALLOWED_HTTP_VERSIONS:
        raise UnsupportedVersionError("Unsupported HTTP version")

    if method not in SUPPORTED_METHODS:
        if method in KNOWN_METHODS:
            raise UnsupportedMethodError("Method not allowed", status_code=405)
        raise UnsupportedMethodError("Method not implemented")

    if not path.startswith("/"):
        raise MalformedRequestLineError("Request target must be an absolute path")

    return method, path, http_version
