"""Static site server entry point and connection lifecycle orchestration."""

from __future__ import annotations

import argparse
import errno
import json
import logging
import os
import selectors
import signal
import socket
import sys
import threading
import time
from collections import deque
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import BinaryIO

from config import (
    IDLE_SWEEP_INTERVAL_SECS,
    KEEPALIVE_TIMEOUT_SECS,
    LOG_FORMAT,
    MAX_ACTIVE_CONNECTIONS,
    MAX_KEEPALIVE_REQUESTS,
    READ_CHUNK_SIZE,
    SELECT_TIMEOUT_SECS,
    SITE_PROFILES,
    WRITE_CHUNK_SIZE,
    ServerConfig,
)
from handlers.static_files import StaticSite
from request import HTTPRequest, HTTPRequestParseError
from response import REASON_PHRASES, HTTPResponse, as_head_response, prepare_head
from socket_handler import (
    HeaderTooLargeError,
    MalformedRequestError,
    PayloadTooLargeError,
    extract_http_request_head,
    write_http_response_message,
)

logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]
SERVED_METHODS = ("GET", "HEAD")


class BindError(RuntimeError):
    """Raised when the listening socket cannot be bound."""

    def __init__(self, host: str, port: int, cause: OSError) -> None:
        if cause.errno == errno.EADDRINUSE:
            reason = f"Port {port} is already in use"
        else:
            reason = f"Cannot bind {host}:{port} ({errno.errorcode.get(cause.errno or 0, 'EIO')})"
        super().__init__(reason)
        self.host = host
        self.port = port
        self.cause = cause


@dataclass(slots=True)
class OutboundResponse:
    """Tracks incremental write state for a queued HTTP response."""

    status_code: int
    method: str
    path: str
    started_at: float
    connection_id: int
    request_id: int
    close_after: bool
    pending_chunks: deque[memoryview] = field(default_factory=deque)
    file_obj: BinaryIO | None = None
    bytes_sent: int = 0

    @classmethod
    def from_http_response(
        cls,
        *,
        response: HTTPResponse,
        method: str,
        path: str,
        started_at: float,
        connection_id: int,
        request_id: int,
        close_after: bool,
    ) -> "OutboundResponse":
        if close_after:
            response.headers["Connection"] = "close"
        outbound = cls(
            status_code=response.status_code,
            method=method,
            path=path,
            started_at=started_at,
            connection_id=connection_id,
            request_id=request_id,
            close_after=close_after,
        )
        outbound.pending_chunks.append(memoryview(prepare_head(response)))
        if response.file_obj is not None:
            outbound.file_obj = response.file_obj
            response.file_obj = None
        elif response.body:
            outbound.pending_chunks.append(memoryview(response.body))
        return outbound

    def refill(self) -> None:
        """Queue the next file chunk once earlier chunks are flushed."""
        if self.pending_chunks or self.file_obj is None:
            return
        chunk = self.file_obj.read(WRITE_CHUNK_SIZE)
        if chunk:
            self.pending_chunks.append(memoryview(chunk))
        else:
            self.close_resources()

    @property
    def finished(self) -> bool:
        return not self.pending_chunks and self.file_obj is None

    def close_resources(self) -> None:
        if self.file_obj is not None:
            self.file_obj.close()
            self.file_obj = None


@dataclass(slots=True)
class ConnectionState:
    sock: socket.socket
    address: tuple[str, int]
    connection_id: int
    recv_buffer: bytearray = field(default_factory=bytearray)
    queued_responses: deque[OutboundResponse] = field(default_factory=deque)
    current_response: OutboundResponse | None = None
    requests_served: int = 0
    last_activity: float = field(default_factory=time.monotonic)
    closing: bool = False

    @property
    def has_output(self) -> bool:
        return self.current_response is not None or bool(self.queued_responses)


class StaticServer:
    """Single-threaded selectors server for one static site root."""

    def __init__(
        self,
        config: ServerConfig | None = None,
        handler: Handler | None = None,
        *,
        max_active_connections: int = MAX_ACTIVE_CONNECTIONS,
        keepalive_timeout_secs: int = KEEPALIVE_TIMEOUT_SECS,
    ) -> None:
        self.config = config or ServerConfig()
        self.host = self.config.host
        self.port = self.config.port
        self.handler = handler or StaticSite(
            self.config.root,
            default_document=self.config.default_document,
            disable_cache=self.config.disable_cache,
        )
        self.max_active_connections = max_active_connections
        self.keepalive_timeout_secs = keepalive_timeout_secs
        self.log_format = self.config.log_format or LOG_FORMAT

        self._connections: dict[int, ConnectionState] = {}
        self._next_connection_id = 0
        self._stop_requested = False
        self._draining = False
        self._server_socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    def bind(self) -> None:
        """Open the listening socket now so bind failures surface to the caller."""
        if self._server_socket is None:
            self._server_socket = self._bind()

    def start(self) -> None:
        """Bind if needed, then serve until ``stop()`` has drained in-flight responses."""
        self.bind()
        server_socket = self._server_socket
        self._server_socket = None
        with server_socket, selectors.DefaultSelector() as selector:
            selector.register(server_socket, selectors.EVENT_READ, data=None)
            self._log_banner()

            last_idle_sweep = time.monotonic()
            try:
                while True:
                    if self._stop_requested and not self._draining:
                        self._begin_drain(server_socket, selector)
                    if self._draining and self._drain_complete(selector):
                        break

                    for key, mask in selector.select(timeout=SELECT_TIMEOUT_SECS):
                        if key.data is None:
                            self._accept_clients(server_socket, selector)
                            continue

                        state: ConnectionState = key.data
                        if mask & selectors.EVENT_READ:
                            self._handle_read(state, selector)
                        if mask & selectors.EVENT_WRITE and state.sock.fileno() != -1:
                            self._handle_write(state, selector)

                    now = time.monotonic()
                    if now - last_idle_sweep >= IDLE_SWEEP_INTERVAL_SECS:
                        self._sweep_idle_connections(selector, now)
                        last_idle_sweep = now
            finally:
                for state in list(self._connections.values()):
                    self._close_connection(state, selector)
                self._connections.clear()
        logger.info("Static server stopped")

    def stop(self) -> None:
        """Request a graceful shutdown; safe from signal handlers and other threads."""
        self._stop_requested = True

    def serve_in_background(self) -> None:
        self.bind()
        self._thread = threading.Thread(target=self.start, name="static-server", daemon=True)
        self._thread.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for a background server to finish draining; True once it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _bind(self) -> socket.socket:
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(128)
        except OSError as exc:
            server_socket.close()
            raise BindError(self.host, self.port, exc) from exc
        server_socket.setblocking(False)
        self.port = server_socket.getsockname()[1]
        return server_socket

    def _log_banner(self) -> None:
        logger.info("Static server running (site=%s)", self.config.site)
        logger.info("Port: %s", self.port)
        logger.info("URL:  http://%s:%s", self.host, self.port)
        logger.info("Root: %s", self.config.root)
        logger.info("Environment: %s", self.config.environment)
        profile = SITE_PROFILES.get(self.config.site)
        if profile is not None:
            for page in profile.pages:
                logger.info("  http://%s:%s/%s", self.host, self.port, page)
        logger.info("Press Ctrl+C to stop")

    def _begin_drain(
        self,
        server_socket: socket.socket,
        selector: selectors.BaseSelector,
    ) -> None:
        logger.info("Shutting down static server...")
        self._draining = True
        selector.unregister(server_socket)
        server_socket.close()
        for state in list(self._connections.values()):
            if not state.has_output:
                self._close_connection(state, selector)

    def _drain_complete(self, selector: selectors.BaseSelector) -> bool:
        """Drop connections whose writes have stalled; True once none remain.

        A response that keeps making progress is never cut short.
        """
        now = time.monotonic()
        for state in list(self._connections.values()):
            if now - state.last_activity >= self.config.drain_timeout_secs:
                logger.warning(
                    "Dropping connection %s: no progress for %.1fs while draining",
                    state.connection_id,
                    now - state.last_activity,
                )
                self._close_connection(state, selector)
        return not self._connections

    def _accept_clients(
        self,
        server_socket: socket.socket,
        selector: selectors.BaseSelector,
    ) -> None:
        while True:
            try:
                client_socket, address = server_socket.accept()
            except (BlockingIOError, InterruptedError):
                return
            except OSError:
                return

            if len(self._connections) >= self.max_active_connections:
                self._send_unavailable(client_socket)
                continue

            client_socket.setblocking(False)
            self._next_connection_id += 1
            state = ConnectionState(
                sock=client_socket,
                address=address,
                connection_id=self._next_connection_id,
            )
            self._connections[client_socket.fileno()] = state
            selector.register(client_socket, selectors.EVENT_READ, data=state)

    def _send_unavailable(self, client_socket: socket.socket) -> None:
        with client_socket:
            response = HTTPResponse(
                status_code=503,
                headers={"Connection": "close", "Retry-After": "2"},
                body="Service Unavailable",
            )
            try:
                write_http_response_message(client_socket, response)
            except OSError:
                return

    def _handle_read(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        try:
            chunk = state.sock.recv(READ_CHUNK_SIZE)
        except (BlockingIOError, InterruptedError):
            return
        except OSError:
            self._close_connection(state, selector)
            return

        if not chunk:
            state.closing = True
            self._update_interest(state, selector)
            return

        state.last_activity = time.monotonic()
        state.recv_buffer.extend(chunk)

        while not state.closing:
            started_at = time.perf_counter()
            try:
                extracted = extract_http_request_head(bytes(state.recv_buffer))
            except HeaderTooLargeError:
                self._queue_error(state, 431, started_at)
                break
            except PayloadTooLargeError:
                self._queue_error(state, 413, started_at)
                break
            except MalformedRequestError:
                self._queue_error(state, 400, started_at)
                break

            if extracted is None:
                break

            raw_request, leftover = extracted
            state.recv_buffer = bytearray(leftover)

            try:
                request = HTTPRequest.from_bytes(raw_request)
            except HTTPRequestParseError as exc:
                self._queue_error(state, exc.status_code, started_at)
                break

            state.requests_served += 1
            should_close = (
                self._draining
                or not request.keep_alive
                or state.requests_served >= MAX_KEEPALIVE_REQUESTS
            )
            response = self._dispatch(request)
            if not should_close:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault(
                    "Keep-Alive",
                    (
                        f"timeout={self.keepalive_timeout_secs}, "
                        f"max={MAX_KEEPALIVE_REQUESTS - state.requests_served}"
                    ),
                )
            self._queue_response(
                state,
                response,
                method=request.method,
                path=request.path,
                started_at=started_at,
                close_after=should_close,
            )

        self._update_interest(state, selector)

    def _queue_error(self, state: ConnectionState, status_code: int, started_at: float) -> None:
        self._queue_response(
            state,
            HTTPResponse(
                status_code=status_code,
                body=REASON_PHRASES.get(status_code, "Bad Request"),
            ),
            method="-",
            path="-",
            started_at=started_at,
            close_after=True,
        )

    def _queue_response(
        self,
        state: ConnectionState,
        response: HTTPResponse,
        *,
        method: str,
        path: str,
        started_at: float,
        close_after: bool,
    ) -> None:
        outbound = OutboundResponse.from_http_response(
            response=response,
            method=method,
            path=path,
            started_at=started_at,
            connection_id=state.connection_id,
            request_id=state.requests_served,
            close_after=close_after,
        )
        state.queued_responses.append(outbound)
        if close_after:
            state.closing = True

    def _handle_write(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        while True:
            if state.current_response is None:
                if not state.queued_responses:
                    break
                state.current_response = state.queued_responses.popleft()

            outbound = state.current_response
            try:
                outbound.refill()
            except OSError as exc:
                logger.error("Static file read failed mid-response: %s", exc)
                self._close_connection(state, selector)
                return

            if outbound.pending_chunks:
                view = outbound.pending_chunks[0]
                try:
                    sent = state.sock.send(view)
                except (BlockingIOError, InterruptedError):
                    return
                except OSError:
                    self._close_connection(state, selector)
                    return

                state.last_activity = time.monotonic()
                outbound.bytes_sent += sent
                if sent < len(view):
                    outbound.pending_chunks[0] = view[sent:]
                    return
                outbound.pending_chunks.popleft()
                continue

            if outbound.finished:
                state.current_response = None
                self._record_and_log(state, outbound)
                if outbound.close_after:
                    self._close_connection(state, selector)
                    return

        if self._draining and not state.has_output:
            self._close_connection(state, selector)
            return
        self._update_interest(state, selector)

    def _sweep_idle_connections(self, selector: selectors.BaseSelector, now: float) -> None:
        for state in list(self._connections.values()):
            if state.has_output:
                continue
            if now - state.last_activity >= self.keepalive_timeout_secs:
                self._close_connection(state, selector)

    def _update_interest(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        events = 0
        if not state.closing:
            events |= selectors.EVENT_READ
        if state.has_output:
            events |= selectors.EVENT_WRITE

        if events == 0:
            self._close_connection(state, selector)
            return
        selector.modify(state.sock, events, data=state)

    def _close_connection(
        self,
        state: ConnectionState,
        selector: selectors.BaseSelector,
    ) -> None:
        fileno = state.sock.fileno()
        if fileno == -1:
            return

        try:
            selector.unregister(state.sock)
        except (KeyError, ValueError):
            pass

        if state.current_response is not None:
            state.current_response.close_resources()
            state.current_response = None
        while state.queued_responses:
            state.queued_responses.popleft().close_resources()

        try:
            state.sock.close()
        except OSError:
            pass
        self._connections.pop(fileno, None)

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        if request.method not in SERVED_METHODS:
            return HTTPResponse(
                status_code=405,
                headers={"Allow": ", ".join(SERVED_METHODS)},
                body="Method Not Allowed",
            )

        try:
            response = self.handler(request)
        except Exception:
            logger.exception("Unhandled error while serving %s", request.path)
            response = HTTPResponse(status_code=500, body="Server Error: EIO")

        if request.method == "HEAD":
            return as_head_response(response)
        return response

    def _record_and_log(self, state: ConnectionState, outbound: OutboundResponse) -> None:
        duration_ms = (time.perf_counter() - outbound.started_at) * 1000
        event = {
            "client": state.address[0],
            "method": outbound.method,
            "path": outbound.path,
            "status": outbound.status_code,
            "connection_id": outbound.connection_id,
            "request_id": outbound.request_id,
            "bytes_out": outbound.bytes_sent,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            (
                "client=%s method=%s path=%s status=%s connection_id=%s "
                "request_id=%s bytes_out=%s duration_ms=%.2f"
            ),
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["connection_id"],
            event["request_id"],
            event["bytes_out"],
            duration_ms,
        )


def listen(port: int, config: ServerConfig | None = None, **server_options) -> StaticServer:
    """Bind ``port`` and serve on a background thread; returns the running server.

    Raises BindError right away when the port cannot be bound.
    """
    server = StaticServer(replace(config or ServerConfig(), port=port), **server_options)
    server.serve_in_background()
    return server


def install_signal_handlers(server: StaticServer) -> None:
    def _handle_signal(signum: int, _frame: object) -> None:
        logger.info("Received %s", signal.Signals(signum).name)
        server.stop()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the movie site's static assets")
    parser.add_argument("--site", choices=sorted(SITE_PROFILES), default="frontend")
    parser.add_argument("--root", default=None, help="directory to serve")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--hostname", default=None, help="public hostname for environment detection")
    parser.add_argument("--default-document", default=None)
    parser.add_argument("--no-cache", action="store_true", default=None)
    parser.add_argument("--log-format", choices=["plain", "json"], default=None)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, stream=sys.stdout)

    try:
        config = ServerConfig.from_env(
            os.environ,
            site=args.site,
            hostname=args.hostname,
            host=args.host,
            port=args.port,
            root=args.root,
            default_document=args.default_document,
            disable_cache=args.no_cache,
            log_format=args.log_format,
        )
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if not config.root.is_dir():
        logger.error("Static root is not a directory: %s", config.root)
        return 2

    server = StaticServer(config)
    install_signal_handlers(server)
    try:
        server.start()
    except BindError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
