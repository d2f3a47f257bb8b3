"""Per-connection request lifecycle: parse, route, execute, respond, close."""

from __future__ import annotations

import enum
import json
import logging
import time
from dataclasses import dataclass, field

from config import LOG_FORMAT, REQUEST_DEADLINE_SECS, SOCKET_TIMEOUT_SECS
from listening_socket import Connection
from request import SUPPORTED_METHODS, HTTPRequestParseError
from response import HTTPResponse, error_response
from router import Router
from socket_handler import read_http_request, write_http_response_message

logger = logging.getLogger(__name__)


class ConnectionPhase(enum.Enum):
    ACCEPTED = "accepted"
    PARSING = "parsing"
    ROUTING = "routing"
    EXECUTING = "executing"
    RESPONDING = "responding"
    ERROR = "error"
    CLOSED = "closed"


@dataclass(slots=True)
class ConnectionRecord:
    """What happened to one connection, kept for the access log and for tests."""

    address: tuple[str, int]
    phases: list[ConnectionPhase] = field(default_factory=list)
    method: str = "-"
    path: str = "-"
    status_code: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    error: str | None = None

    @property
    def phase(self) -> ConnectionPhase | None:
        return self.phases[-1] if self.phases else None

    def enter(self, phase: ConnectionPhase) -> None:
        if self.phase is ConnectionPhase.CLOSED:
            raise RuntimeError("Connection already closed")
        self.phases.append(phase)


class ConnectionHandler:
    def __init__(
        self,
        router: Router,
        *,
        read_timeout_secs: float = SOCKET_TIMEOUT_SECS,
        request_deadline_secs: float = REQUEST_DEADLINE_SECS,
        log_format: str = LOG_FORMAT,
    ) -> None:
        self.router = router
        self.read_timeout_secs = read_timeout_secs
        self.request_deadline_secs = request_deadline_secs
        self.log_format = log_format

    def handle(self, connection: Connection) -> ConnectionRecord:
        """Drive one connection from ACCEPTED to CLOSED."""
        started_at = time.perf_counter()
        record = ConnectionRecord(address=connection.address)
        try:
            with connection:
                record.enter(ConnectionPhase.ACCEPTED)
                response = self._process(connection, record)
                self._respond(connection, record, response)
        finally:
            record.enter(ConnectionPhase.CLOSED)
            self._log(record, started_at)
        return record

    def reject(self, connection: Connection, status_code: int = 503) -> ConnectionRecord:
        """Answer a connection that will not be processed, then close it."""
        started_at = time.perf_counter()
        record = ConnectionRecord(address=connection.address)
        try:
            with connection:
                record.enter(ConnectionPhase.ACCEPTED)
                record.enter(ConnectionPhase.ERROR)
                record.error = "Rejected"
                self._respond(connection, record, error_response(status_code))
        finally:
            record.enter(ConnectionPhase.CLOSED)
            self._log(record, started_at)
        return record

    def _process(self, connection: Connection, record: ConnectionRecord) -> HTTPResponse:
        record.enter(ConnectionPhase.PARSING)
        try:
            request = read_http_request(
                connection.sock,
                read_timeout=self.read_timeout_secs,
                deadline=self.request_deadline_secs,
            )
        except HTTPRequestParseError as exc:
            record.enter(ConnectionPhase.ERROR)
            record.error = exc.__class__.__name__
            logger.debug("Rejecting request from %s: %s", record.address[0], exc)
            headers: dict[str, str] = {}
            if exc.status_code == 405:
                headers["Allow"] = ", ".join(SUPPORTED_METHODS)
            return error_response(exc.status_code, headers=headers)
        except OSError as exc:
            record.enter(ConnectionPhase.ERROR)
            record.error = exc.__class__.__name__
            return error_response(400)

        record.method = request.method
        record.path = request.path
        record.bytes_in = request.content_length

        record.enter(ConnectionPhase.ROUTING)
        handler = self.router.route(request)

        record.enter(ConnectionPhase.EXECUTING)
        try:
            return handler(request)
        except Exception:
            logger.exception("Unhandled error in route handler")
            record.enter(ConnectionPhase.ERROR)
            record.error = "HandlerError"
            return error_response(500)

    def _respond(
        self,
        connection: Connection,
        record: ConnectionRecord,
        response: HTTPResponse,
    ) -> None:
        record.enter(ConnectionPhase.RESPONDING)
        record.status_code = response.status_code
        try:
            connection.sock.settimeout(self.read_timeout_secs)
            record.bytes_out = write_http_response_message(connection.sock, response)
        except OSError as exc:
            record.error = record.error or exc.__class__.__name__
            logger.debug("Could not write response to %s: %s", record.address[0], exc)

    def _log(self, record: ConnectionRecord, started_at: float) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        event = {
            "client": record.address[0],
            "method": record.method,
            "path": record.path,
            "status": record.status_code,
            "bytes_in": record.bytes_in,
            "bytes_out": record.bytes_out,
            "latency_ms": round(duration_ms, 3),
            "error": record.error,
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_in=%s bytes_out=%s duration_ms=%.2f error=%s",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
            event["error"] or "-",
        )
