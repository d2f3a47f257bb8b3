"""Tests for the bounded connection worker pool."""

import socket
import threading

from listening_socket import Connection
from thread_pool import ThreadPool


def _connection() -> tuple[Connection, socket.socket]:
    server_sock, client_sock = socket.socketpair()
    return Connection(sock=server_sock, address=("127.0.0.1", 0)), client_sock


def test_thread_pool_starts_fixed_worker_count() -> None:
    pool = ThreadPool(worker_count=3, queue_size=4, handler=lambda _connection: None)
    pool.start()

    try:
        assert pool.worker_count == 3
        assert len(pool.threads) == 3
        assert all(thread.is_alive() for thread in pool.threads)
    finally:
        pool.shutdown()


def test_thread_pool_submit_returns_false_when_full() -> None:
    pool = ThreadPool(worker_count=1, queue_size=1, handler=lambda _connection: None)
    first, first_peer = _connection()
    second, second_peer = _connection()

    try:
        assert pool.submit(first) is True
        assert pool.submit(second) is False
    finally:
        pool.shutdown()
        second.close()
        first_peer.close()
        second_peer.close()


def test_workers_handle_submitted_connections() -> None:
    handled: list[Connection] = []
    done = threading.Event()

    def handler(connection: Connection) -> None:
        handled.append(connection)
        connection.close()
        done.set()

    pool = ThreadPool(worker_count=2, queue_size=2, handler=handler)
    pool.start()
    connection, peer = _connection()
    try:
        assert pool.submit(connection) is True
        assert done.wait(timeout=2.0)
        assert pool.wait_for_drain(timeout=2.0) is True
    finally:
        pool.shutdown()
        peer.close()

    assert handled == [connection]
    assert connection.closed is True


def test_shutdown_discards_queued_connections() -> None:
    discarded: list[Connection] = []

    def discard(connection: Connection) -> None:
        discarded.append(connection)
        connection.close()

    pool = ThreadPool(
        worker_count=1,
        queue_size=2,
        handler=lambda _connection: None,
        on_discard=discard,
    )
    connection, peer = _connection()

    assert pool.submit(connection) is True
    pool.shutdown()
    peer.close()

    assert discarded == [connection]
    assert connection.closed is True
    assert pool.submit(connection) is False


def test_thread_pool_rejects_invalid_sizes() -> None:
    for worker_count, queue_size in ((0, 1), (1, 0)):
        try:
            ThreadPool(worker_count=worker_count, queue_size=queue_size, handler=print)
        except ValueError:
            continue
        raise AssertionError("Expected ValueError for invalid pool size")


def test_pending_counts_queued_connections() -> None:
    pool = ThreadPool(worker_count=1, queue_size=2, handler=lambda _connection: None)
    first, first_peer = _connection()
    second, second_peer = _connection()

    try:
        assert pool.pending == 0
        pool.submit(first)
        pool.submit(second)
        assert pool.pending == 2
    finally:
        pool.shutdown()
        first_peer.close()
        second_peer.close()

    assert pool.pending == 0
    assert first.closed is True
    assert second.closed is True


def test_taken_but_unfinished_connection_is_not_drained() -> None:
    started = threading.Event()
    release = threading.Event()

    def handler(connection: Connection) -> None:
        started.set()
        release.wait(timeout=2.0)
        connection.close()

    pool = ThreadPool(worker_count=1, queue_size=1, handler=handler)
    pool.start()
    connection, peer = _connection()
    try:
        assert pool.wait_for_drain(timeout=0.05) is True
        assert pool.submit(connection) is True
        assert pool.wait_for_drain(timeout=0.05) is False
        assert started.wait(timeout=2.0)
        assert pool.pending == 0
        assert pool.wait_for_drain(timeout=0.05) is False
        release.set()
        assert pool.wait_for_drain(timeout=2.0) is True
    finally:
        release.set()
        pool.shutdown()
        peer.close()
