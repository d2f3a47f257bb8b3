"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket
import time

from config import (
    MAX_HEADER_BYTES,
    READ_CHUNK_SIZE,
    REQUEST_DEADLINE_SECS,
    SOCKET_TIMEOUT_SECS,
    WRITE_CHUNK_SIZE,
)
from request import (
    HEAD_TERMINATOR,
    BodyTruncatedError,
    HeaderTooLargeError,
    HTTPRequest,
    MalformedHeadersError,
    MalformedRequestLineError,
    RequestTimeoutError,
    parse_request_head,
)
from response import HTTPResponse, iter_body_chunks, prepare_response


class _BoundedReader:
    """recv() wrapper enforcing a per-read timeout and an overall deadline."""

    def __init__(self, client_socket: socket.socket, read_timeout: float, deadline: float) -> None:
        self._socket = client_socket
        self._read_timeout = read_timeout
        self._deadline = time.monotonic() + deadline

    def recv(self, size: int) -> bytes:
        remaining = self._deadline - time.monotonic()
        if remaining <= 0:
            raise RequestTimeoutError("Request deadline exceeded")
        self._socket.settimeout(min(self._read_timeout, remaining))
        try:
            return self._socket.recv(size)
        except socket.timeout as exc:
            raise RequestTimeoutError("Timed out waiting for request bytes") from exc


def read_http_request(
    client_socket: socket.socket,
    *,
    read_timeout: float = SOCKET_TIMEOUT_SECS,
    deadline: float = REQUEST_DEADLINE_SECS,
) -> HTTPRequest:
    """Read exactly one request: the head up to the blank line, then Content-Length bytes."""
    reader = _BoundedReader(client_socket, read_timeout, deadline)
    buffer = bytearray()

    while True:
        header_end = buffer.find(HEAD_TERMINATOR)
        if header_end != -1:
            break
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

        chunk = reader.recv(READ_CHUNK_SIZE)
        if not chunk:
            if not buffer.strip():
                raise MalformedRequestLineError("Connection closed before a request was sent")
            raise MalformedHeadersError("Connection closed before headers completed")
        buffer.extend(chunk)

    head = parse_request_head(bytes(buffer[:header_end]))
    expected_length = head.content_length

    body = bytearray(buffer[header_end + len(HEAD_TERMINATOR) :])
    while len(body) < expected_length:
        chunk = reader.recv(min(READ_CHUNK_SIZE, expected_length - len(body)))
        if not chunk:
            raise BodyTruncatedError(
                f"Body truncated: expected {expected_length} bytes, got {len(body)}"
            )
        body.extend(chunk)

    return HTTPRequest.from_head(head, bytes(body[:expected_length]))


def write_http_response_message(
    client_socket: socket.socket,
    response: HTTPResponse,
    *,
    write_chunk_size: int = WRITE_CHUNK_SIZE,
) -> int:
    """Write an HTTPResponse, sending the body in bounded slices."""
    prepared = prepare_response(response)
    client_socket.sendall(prepared.head)
    bytes_sent = len(prepared.head)

    for chunk in iter_body_chunks(prepared.body, write_chunk_size):
        client_socket.sendall(chunk)
        bytes_sent += len(chunk)
    return bytes_sent
