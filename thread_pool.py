"""Bounded worker pool for accepted connections."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable

from listening_socket import Connection

ConnectionCallback = Callable[[Connection], object]


class ThreadPool:
    """Fixed-size thread pool with a bounded queue of pending connections."""

    def __init__(
        self,
        worker_count: int,
        queue_size: int,
        handler: ConnectionCallback,
        *,
        on_discard: ConnectionCallback | None = None,
    ) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._on_discard = on_discard or Connection.close
        self._queue: queue.Queue[Connection] = queue.Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._worker_count = worker_count
        self._drain_condition = threading.Condition(threading.Lock())
        self._shutdown_lock = threading.Lock()
        self._shutdown_started = False

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._threads)

    @property
    def pending(self) -> int:
        """Approximate number of queued connections not yet picked up by a worker."""
        return self._queue.qsize()

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"file-server-worker-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(self, connection: Connection) -> bool:
        if self._stop_event.is_set():
            return False
        try:
            self._queue.put_nowait(connection)
        except queue.Full:
            return False
        return True

    def wait_for_drain(self, timeout: float | None = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._drain_condition:
            while not self._is_drained_locked():
                if deadline is None:
                    self._drain_condition.wait(timeout=0.1)
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._drain_condition.wait(timeout=min(remaining, 0.1))
            return True

    def shutdown(self, *, graceful: bool = False, timeout: float | None = None) -> None:
        with self._shutdown_lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True

        if graceful:
            self.wait_for_drain(timeout=timeout)

        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=1.0)

        # Whatever is still queued never reached a worker.
        while True:
            try:
                connection = self._queue.get_nowait()
            except queue.Empty:
                break
            self._on_discard(connection)
            self._queue.task_done()

    def _is_drained_locked(self) -> bool:
        # Counts queued connections plus any a worker has taken but not finished.
        return self._queue.unfinished_tasks == 0

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                connection = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            try:
                self._handler(connection)
            finally:
                with self._drain_condition:
                    self._queue.task_done()
                    self._drain_condition.notify_all()
