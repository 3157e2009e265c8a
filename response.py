"""HTTP response model, header preparation and canned error pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from email.utils import formatdate
from typing import BinaryIO

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    413: "Payload Too Large",
    414: "URI Too Long",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}

NOT_FOUND_HTML = "<h1>404 - File Not Found</h1><p>The requested file was not found.</p>"
NO_LISTING_HTML = "<h1>404 - Directory listing not allowed</h1>"


@dataclass(slots=True)
class HTTPResponse:
    """A response whose payload is either an in-memory body or an open file.

    A file-backed response owns ``file_obj`` until it is written or closed.
    """

    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    file_obj: BinaryIO | None = None
    content_length: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.file_obj is not None and self.body:
            raise ValueError("Response cannot set both body and file_obj")
        if self.file_obj is not None and self.content_length is None:
            raise ValueError("File responses need a content_length")

    def close(self) -> None:
        if self.file_obj is not None:
            self.file_obj.close()
            self.file_obj = None

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        payload = bytearray(prepare_head(self))
        if self.file_obj is not None:
            try:
                payload.extend(self.file_obj.read())
            finally:
                self.close()
        else:
            payload.extend(self.body)
        return bytes(payload)


def prepare_head(response: HTTPResponse) -> bytes:
    reason = response.reason_phrase or REASON_PHRASES.get(response.status_code, "Unknown")
    normalized_headers = dict(response.headers)
    normalized_headers.setdefault(
        "Date",
        formatdate(timeval=None, localtime=False, usegmt=True),
    )
    normalized_headers.setdefault("Server", SERVER_NAME)
    normalized_headers.setdefault("Content-Type", "text/plain; charset=utf-8")

    content_length = response.content_length
    if content_length is None:
        content_length = len(response.body)
    normalized_headers["Content-Length"] = str(content_length)

    header_lines = [f"HTTP/1.1 {response.status_code} {reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in normalized_headers.items())
    return "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"


def as_head_response(response: HTTPResponse) -> HTTPResponse:
    """Drop the payload of a GET response while keeping its length."""
    content_length = response.content_length
    if content_length is None:
        content_length = len(response.body)
    response.close()
    return HTTPResponse(
        status_code=response.status_code,
        reason_phrase=response.reason_phrase,
        headers=dict(response.headers),
        body=b"",
        content_length=content_length,
    )


def html_error(status_code: int, body: str) -> HTTPResponse:
    return HTTPResponse(
        status_code=status_code,
        headers={"Content-Type": "text/html"},
        body=body,
    )


def not_found(body: str = NOT_FOUND_HTML) -> HTTPResponse:
    return html_error(404, body)


def server_error(error_code: str) -> HTTPResponse:
    return HTTPResponse(status_code=500, body=f"Server Error: {error_code}")
