"""Main HTTP file server entry point and accept loop."""

from __future__ import annotations

import argparse
import logging
import signal
import socket
import sys
from collections.abc import Sequence

from address_resolver import AddressResolver, AddressUnavailableError, CommandAddressResolver
from config import (
    ACCEPT_POLL_SECS,
    DRAIN_TIMEOUT_SECS,
    LISTEN_BACKLOG,
    LOG_FORMAT,
    LOG_LEVEL,
    PORT,
    REQUEST_DEADLINE_SECS,
    REQUEST_QUEUE_SIZE,
    SERVER_ENGINE,
    SOCKET_TIMEOUT_SECS,
    STORAGE_BACKEND,
    STORAGE_DB_FILE,
    WORKER_COUNT,
)
from connection_handler import ConnectionHandler
from file_storage import FileStorage, StorageInitError, create_file_storage
from listening_socket import AcceptError, Connection, ListeningSocket, ListeningSocketError
from router import Router, build_file_router
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

ENGINES = ("threadpool", "serial")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class HTTPServer:
    def __init__(
        self,
        storage: FileStorage,
        host: str | None = None,
        port: int = PORT,
        router: Router | None = None,
        address_resolver: AddressResolver | None = None,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        engine: str = SERVER_ENGINE,
        backlog: int = LISTEN_BACKLOG,
        read_timeout_secs: float = SOCKET_TIMEOUT_SECS,
        request_deadline_secs: float = REQUEST_DEADLINE_SECS,
        drain_timeout_secs: float = DRAIN_TIMEOUT_SECS,
        log_format: str = LOG_FORMAT,
    ) -> None:
        if engine not in ENGINES:
            raise ValueError(f"Unsupported engine: {engine}")

        self.storage = storage
        self.host = host
        self.port = port
        self.router = router or build_file_router(storage)
        self.address_resolver = address_resolver or CommandAddressResolver()
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.engine = engine
        self.backlog = backlog
        self.drain_timeout_secs = drain_timeout_secs
        self.connection_handler = ConnectionHandler(
            self.router,
            read_timeout_secs=read_timeout_secs,
            request_deadline_secs=request_deadline_secs,
            log_format=log_format,
        )

        self._listener: ListeningSocket | None = None
        self._pool: ThreadPool | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Bind, listen, and serve until stop() is called. Startup errors propagate."""
        if self.host is None:
            self.host = self.address_resolver.discover_ipv4()

        with ListeningSocket.open(self.host, self.port, backlog=self.backlog) as listener:
            self._listener = listener
            listener.settimeout(ACCEPT_POLL_SECS)
            bound_host, self.port = listener.bound_address or (self.host, self.port)
            logger.info(
                "Serving files on http://%s:%s (engine=%s)", bound_host, self.port, self.engine
            )

            if self.engine == "threadpool":
                self._pool = ThreadPool(
                    worker_count=self.worker_count,
                    queue_size=self.request_queue_size,
                    handler=self._handle_connection,
                    on_discard=self.connection_handler.reject,
                )
                self._pool.start()

            self._running = True
            try:
                self._accept_loop(listener)
            finally:
                self._running = False
                listener.close()
                if self._pool is not None:
                    self._pool.shutdown(graceful=True, timeout=self.drain_timeout_secs)
                    self._pool = None
                self._listener = None

    def stop(self) -> None:
        """Stop accepting; the listening socket is closed before workers drain."""
        self._running = False
        if self._listener is not None:
            self._listener.close()

    def _accept_loop(self, listener: ListeningSocket) -> None:
        while self._running:
            try:
                connection = listener.accept()
            except socket.timeout:
                continue
            except AcceptError as exc:
                if not self._running or not listener.is_open:
                    break
                logger.warning("Accept failed, continuing: %s", exc)
                continue

            if self._pool is None:
                self._handle_connection(connection)
            elif not self._pool.submit(connection):
                logger.warning(
                    "Worker queue full (%d pending), rejecting %s",
                    self._pool.pending,
                    connection.address[0],
                )
                self.connection_handler.reject(connection, 503)

    def _handle_connection(self, connection: Connection) -> None:
        try:
            self.connection_handler.handle(connection)
        except Exception:
            logger.exception("Unhandled error while serving %s", connection.address[0])


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port out of range: {port}")
    return port


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {number}")
    return number


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if not 0 < number < float("inf"):
        raise argparse.ArgumentTypeError(f"must be a positive finite number: {value}")
    return number


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the raw-socket HTTP file server")
    parser.add_argument("port", type=_port)
    parser.add_argument(
        "--host",
        default=None,
        help="IPv4 address to bind (INADDR_ANY for all); discovered when omitted",
    )
    parser.add_argument("--engine", choices=ENGINES, default=SERVER_ENGINE)
    parser.add_argument("--workers", type=_positive_int, default=WORKER_COUNT)
    parser.add_argument("--queue-size", type=_positive_int, default=REQUEST_QUEUE_SIZE)
    parser.add_argument("--storage", choices=["sqlite", "memory"], default=STORAGE_BACKEND)
    parser.add_argument("--db-file", default=STORAGE_DB_FILE)
    parser.add_argument("--timeout", type=_positive_float, default=SOCKET_TIMEOUT_SECS)
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=LOG_LEVEL,
    )
    return parser.parse_args(argv)


def main(
    argv: Sequence[str] | None = None,
    *,
    address_resolver: AddressResolver | None = None,
) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level)

    try:
        storage = create_file_storage(backend=args.storage, sqlite_file=args.db_file)
    except StorageInitError as exc:
        logger.error("Storage initialization failed: %s", exc)
        return 1

    with storage:
        server = HTTPServer(
            storage,
            host=args.host,
            port=args.port,
            address_resolver=address_resolver,
            worker_count=args.workers,
            request_queue_size=args.queue_size,
            engine=args.engine,
            read_timeout_secs=args.timeout,
            log_format=args.log_format,
        )
        previous_handler = signal.signal(signal.SIGTERM, lambda _signum, _frame: server.stop())
        try:
            server.start()
        except AddressUnavailableError as exc:
            logger.error("Address discovery failed: %s", exc)
            return 1
        except ListeningSocketError as exc:
            logger.error("Could not open listening socket: %s", exc)
            return 1
        except KeyboardInterrupt:
            server.stop()
        finally:
            signal.signal(signal.SIGTERM, previous_handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())
