"""Request framing over a receive buffer and blocking response writes."""

from __future__ import annotations

import socket

from config import MAX_HEADER_BYTES, WRITE_CHUNK_SIZE
from response import HTTPResponse, prepare_head


class HTTPReadError(Exception):
    """Raised when a client request cannot be safely read from the socket."""


class MalformedRequestError(HTTPReadError):
    """Raised when socket bytes do not form a valid HTTP request head."""


class HeaderTooLargeError(HTTPReadError):
    """Raised when HTTP headers exceed configured maximum size."""


class PayloadTooLargeError(HTTPReadError):
    """Raised when a request announces a body; static assets accept none."""


def _announces_body(header_bytes: bytes) -> bool:
    headers = header_bytes.decode("iso-8859-1").split("\r\n")
    for line in headers[1:]:
        if not line:
            continue
        if ":" not in line:
            raise MalformedRequestError("Malformed header while reading request")
        name, value = line.split(":", 1)
        name = name.strip().lower()
        if name == "transfer-encoding":
            return True
        if name == "content-length":
            try:
                length = int(value.strip())
            except ValueError as exc:
                raise MalformedRequestError("Invalid Content-Length header") from exc
            if length < 0:
                raise MalformedRequestError("Negative Content-Length header")
            if length > 0:
                return True
    return False


def extract_http_request_head(buffer: bytes) -> tuple[bytes, bytes] | None:
    """Split one complete request head off a buffer, returning (head, leftover)."""
    header_end_index = buffer.find(b"\r\n\r\n")
    if header_end_index == -1:
        if len(buffer) > MAX_HEADER_BYTES:
            raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")
        return None

    request_length = header_end_index + 4
    if request_length > MAX_HEADER_BYTES:
        raise HeaderTooLargeError("Headers exceeded MAX_HEADER_BYTES")

    head = bytes(buffer[:request_length])
    if _announces_body(head[:header_end_index]):
        raise PayloadTooLargeError("Request bodies are not accepted")
    return head, bytes(buffer[request_length:])


def write_http_response_message(
    client_socket: socket.socket,
    response: HTTPResponse,
    *,
    write_chunk_size: int = WRITE_CHUNK_SIZE,
) -> int:
    """Write an HTTPResponse on a blocking socket, closing any file it carries."""
    try:
        head = prepare_head(response)
        client_socket.sendall(head)
        bytes_sent = len(head)

        if response.file_obj is None:
            if response.body:
                client_socket.sendall(response.body)
                bytes_sent += len(response.body)
            return bytes_sent

        while True:
            chunk = response.file_obj.read(write_chunk_size)
            if not chunk:
                break
            client_socket.sendall(chunk)
            bytes_sent += len(chunk)
        return bytes_sent
    finally:
        response.close()
