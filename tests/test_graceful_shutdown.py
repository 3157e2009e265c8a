"""Tests for graceful draining shutdown semantics."""

from __future__ import annotations

import socket
import threading
import time
from pathlib import Path

import pytest

from config import ServerConfig
from server import BindError, StaticServer, listen

PAYLOAD_SIZE = 8 * 1024 * 1024


def _start_server(
    root: Path,
    port: int = 0,
    drain_timeout_secs: float = 5.0,
) -> tuple[StaticServer, threading.Thread]:
    server = StaticServer(
        ServerConfig(port=port, root=root, drain_timeout_secs=drain_timeout_secs)
    )
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()

    deadline = time.time() + 3
    while server.port == 0 and time.time() < deadline:
        time.sleep(0.01)

    if server.port == 0:
        raise RuntimeError("Server did not bind to a port")
    return server, thread


def _read_response(sock: socket.socket) -> tuple[bytes, bytes]:
    """Read one response head plus exactly Content-Length body bytes."""
    buffer = bytearray()
    while b"\r\n\r\n" not in buffer:
        chunk = sock.recv(4096)
        if not chunk:
            raise AssertionError("connection closed before the response head")
        buffer.extend(chunk)
    head, body = bytes(buffer).split(b"\r\n\r\n", 1)
    length = 0
    for line in head.split(b"\r\n")[1:]:
        name, _, value = line.partition(b":")
        if name.strip().lower() == b"content-length":
            length = int(value.strip())
    body = bytearray(body)
    while len(body) < length:
        chunk = sock.recv(length - len(body))
        if not chunk:
            raise AssertionError("connection closed mid-body")
        body.extend(chunk)
    return head, bytes(body)


def test_inflight_response_completes_while_server_is_draining(tmp_path: Path) -> None:
    content = bytes(range(256)) * (PAYLOAD_SIZE // 256)
    (tmp_path / "movie.mp4").write_bytes(content)
    server, thread = _start_server(tmp_path, drain_timeout_secs=1.0)

    with socket.create_connection((server.host, server.port), timeout=5) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 4096)
        sock.sendall(b"GET /movie.mp4 HTTP/1.1\r\nHost: localhost\r\n\r\n")
        buffer = bytearray(sock.recv(4096))

        server.stop()
        time.sleep(0.3)
        with pytest.raises(OSError):
            socket.create_connection((server.host, server.port), timeout=1).close()

        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            buffer.extend(chunk)

    thread.join(timeout=5)

    head, body = bytes(buffer).split(b"\r\n\r\n", 1)
    assert head.startswith(b"HTTP/1.1 200 OK")
    assert body == content
    assert not thread.is_alive()


def test_stalled_client_is_dropped_after_drain_timeout(tmp_path: Path) -> None:
    (tmp_path / "movie.mp4").write_bytes(b"\0" * (4 * PAYLOAD_SIZE))
    server, thread = _start_server(tmp_path, drain_timeout_secs=0.5)

    with socket.create_connection((server.host, server.port), timeout=5) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 4096)
        sock.sendall(b"GET /movie.mp4 HTTP/1.1\r\nHost: localhost\r\n\r\n")
        sock.recv(4096)
        time.sleep(0.3)
        server.stop()
        thread.join(timeout=5)

    assert not thread.is_alive()


def test_idle_keepalive_connection_is_closed_on_stop(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("ok")
    server, thread = _start_server(tmp_path)

    with socket.create_connection((server.host, server.port), timeout=3) as sock:
        sock.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\n\r\n")
        head, body = _read_response(sock)
        server.stop()
        thread.join(timeout=3)
        trailing = sock.recv(4096)

    assert head.startswith(b"HTTP/1.1 200 OK")
    assert body == b"ok"
    assert trailing == b""
    assert not thread.is_alive()


def test_stop_without_connections_returns_promptly(tmp_path: Path) -> None:
    server, thread = _start_server(tmp_path)

    started = time.monotonic()
    server.stop()
    thread.join(timeout=3)

    assert not thread.is_alive()
    assert time.monotonic() - started < 2


def test_bind_failure_raises_bind_error(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen(1)
        port = occupied.getsockname()[1]

        server = StaticServer(ServerConfig(port=port, root=tmp_path))
        with pytest.raises(BindError) as exc_info:
            server.start()

    assert exc_info.value.port == port
    assert str(exc_info.value) == f"Port {port} is already in use"


def test_listen_returns_running_server(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<h1>home</h1>")
    server = listen(0, ServerConfig(root=tmp_path))

    assert server.port != 0
    with socket.create_connection((server.host, server.port), timeout=5) as sock:
        sock.sendall(b"GET / HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n")
        response = bytearray()
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            response.extend(chunk)

    server.stop()
    assert server.join(timeout=3)
    assert response.startswith(b"HTTP/1.1 200 OK\r\n")
    assert response.endswith(b"<h1>home</h1>")


def test_listen_reports_port_in_use_before_serving(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as occupied:
        occupied.bind(("127.0.0.1", 0))
        occupied.listen(1)
        port = occupied.getsockname()[1]

        with pytest.raises(BindError, match=f"Port {port} is already in use"):
            listen(port, ServerConfig(root=tmp_path))
