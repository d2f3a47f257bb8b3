"""Listening socket lifecycle: create, bind, listen, accept, close."""

from __future__ import annotations

import errno
import ipaddress
import logging
import socket
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType

from config import LISTEN_BACKLOG

logger = logging.getLogger(__name__)

SocketFactory = Callable[..., socket.socket]
Address = tuple[str, int]

ANY_ADDRESS = "0.0.0.0"


class ListeningSocketError(OSError):
    """Base class for listening socket failures."""


class SocketCreateError(ListeningSocketError):
    pass


class BindError(ListeningSocketError):
    pass


class AddressInUseError(BindError):
    pass


class PermissionDeniedError(BindError):
    pass


class InvalidAddressError(BindError):
    pass


class ListenError(ListeningSocketError):
    pass


class AcceptError(ListeningSocketError):
    """Raised when accept() fails; the caller may retry."""


def ipv4_address(host: str | None, port: int) -> Address:
    """Build an IPv4 bind address; empty host or INADDR_ANY binds every interface."""
    if not 0 <= port <= 65535:
        raise InvalidAddressError(f"Port out of range: {port}")

    normalized = (host or "").strip()
    if not normalized or normalized.upper() == "INADDR_ANY":
        return ANY_ADDRESS, port

    try:
        address = ipaddress.IPv4Address(normalized)
    except ValueError as exc:
        raise InvalidAddressError(f"Invalid IPv4 address: {normalized!r}") from exc
    return str(address), port


@dataclass(slots=True)
class Connection:
    """One accepted client socket; closing is idempotent."""

    sock: socket.socket
    address: Address
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            self.sock.close()
        except OSError as exc:
            logger.debug("Error closing connection from %s: %s", self.address[0], exc)

    def __enter__(self) -> "Connection":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def _bind_error(exc: OSError, address: Address) -> BindError:
    message = f"Could not bind {address[0]}:{address[1]}: {exc.strerror or exc}"
    if exc.errno == errno.EADDRINUSE:
        return AddressInUseError(exc.errno, message)
    if exc.errno in (errno.EACCES, errno.EPERM):
        return PermissionDeniedError(exc.errno, message)
    if exc.errno == errno.EADDRNOTAVAIL:
        return InvalidAddressError(exc.errno, message)
    return BindError(exc.errno, message)


class ListeningSocket:
    def __init__(self, *, socket_factory: SocketFactory = socket.socket) -> None:
        self._socket_factory = socket_factory
        self._sock: socket.socket | None = None
        self._bound_address: Address | None = None

    @classmethod
    def open(
        cls,
        host: str | None,
        port: int,
        *,
        backlog: int = LISTEN_BACKLOG,
        socket_factory: SocketFactory = socket.socket,
    ) -> "ListeningSocket":
        """Create, bind and listen; on any failure everything acquired so far is released."""
        listener = cls(socket_factory=socket_factory)
        try:
            listener.create()
            listener.bind(host, port)
            listener.listen(backlog)
        except BaseException:
            listener.close()
            raise
        return listener

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    @property
    def bound_address(self) -> Address | None:
        return self._bound_address

    def fileno(self) -> int:
        if self._sock is None:
            return -1
        return self._sock.fileno()

    def create(self) -> socket.socket:
        if self._sock is not None:
            raise SocketCreateError("Listening socket already created")
        try:
            sock = self._socket_factory(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as exc:
            raise SocketCreateError(exc.errno, f"Socket creation failed: {exc}") from exc

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as exc:
            sock.close()
            raise SocketCreateError(exc.errno, f"Could not configure socket: {exc}") from exc

        self._sock = sock
        return sock

    def bind(self, host: str | None, port: int) -> Address:
        sock = self._require_socket()
        address = ipv4_address(host, port)
        try:
            sock.bind(address)
        except OSError as exc:
            raise _bind_error(exc, address) from exc
        self._bound_address = sock.getsockname()[:2]
        return self._bound_address

    def listen(self, backlog: int = LISTEN_BACKLOG) -> None:
        sock = self._require_socket()
        try:
            sock.listen(backlog)
        except OSError as exc:
            raise ListenError(exc.errno, f"Listen failed: {exc}") from exc

    def settimeout(self, timeout: float | None) -> None:
        self._require_socket().settimeout(timeout)

    def accept(self) -> Connection:
        sock = self._sock
        if sock is None:
            raise AcceptError(errno.EBADF, "Listening socket is closed")
        try:
            client_socket, address = sock.accept()
        except socket.timeout:
            raise
        except OSError as exc:
            raise AcceptError(exc.errno, f"Accept failed: {exc}") from exc
        return Connection(sock=client_socket, address=address[:2])

    def close(self) -> None:
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        except OSError as exc:
            logger.debug("Error closing listening socket: %s", exc)

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise ListeningSocketError(errno.EBADF, "Listening socket has not been created")
        return self._sock

    def __enter__(self) -> "ListeningSocket":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()
