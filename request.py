"""Request-head parsing for the static server.

Only the request line and headers are read; the static server never accepts
a body, so framing rejects those before a head reaches this module.
"""

from dataclasses import dataclass, field
from urllib.parse import urlsplit

from config import MAX_TARGET_LENGTH
from utils import strip_query

SUPPORTED_VERSIONS = ("HTTP/1.1", "HTTP/1.0")

# Methods we recognise; anything outside this set is 501, the rest of the
# non-GET/HEAD ones get 405 from the server.
KNOWN_METHODS = frozenset(
    {"GET", "HEAD", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "TRACE", "CONNECT"}
)


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str
    headers: dict[str, str] = field(default_factory=dict)
    keep_alive: bool = False

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse a raw request head (request line plus headers)."""
        head = raw.split(b"\r\n\r\n", 1)[0].decode("iso-8859-1")
        request_line, _, header_block = head.partition("\r\n")
        method, path, http_version = _parse_request_line(request_line)
        headers = _parse_headers(header_block)

        if http_version == "HTTP/1.1" and "host" not in headers:
            raise HTTPRequestParseError("Host header required for HTTP/1.1")

        return cls(
            method=method,
            path=path,
            http_version=http_version,
            headers=headers,
            keep_alive=_wants_keep_alive(http_version, headers.get("connection", "")),
        )


def _parse_request_line(line: str) -> tuple[str, str, str]:
    if not line:
        raise HTTPRequestParseError("Missing request line")

    parts = line.split(" ")
    if len(parts) != 3 or not all(parts):
        raise HTTPRequestParseError("Invalid request line")
    method, target, http_version = parts

    method = method.upper()
    if method not in KNOWN_METHODS:
        raise HTTPRequestParseError("Method not implemented", status_code=501)
    if http_version not in SUPPORTED_VERSIONS:
        raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)
    if len(target) > MAX_TARGET_LENGTH:
        raise HTTPRequestParseError("Request target too long", status_code=414)

    return method, _target_path(target), http_version


def _target_path(target: str) -> str:
    """Reduce a request target to its still-encoded path.

    Origin-form targets are cut at ``?``/``#`` only, so ``//css/app.css`` stays
    a path instead of being read as a network location.
    """
    if target.startswith("/"):
        return strip_query(target)
    if target.lower().startswith(("http://", "https://")):
        return urlsplit(target).path or "/"
    raise HTTPRequestParseError("Unsupported request target form")


def _parse_headers(block: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in block.split("\r\n"):
        if not line:
            continue
        name, sep, value = line.partition(":")
        name = name.strip().lower()
        if not sep or not name:
            raise HTTPRequestParseError("Malformed header line")
        headers[name] = value.strip()
    return headers


def _wants_keep_alive(http_version: str, connection_header: str) -> bool:
    token = connection_header.lower()
    if http_version == "HTTP/1.1":
        return "close" not in token
    return "keep-alive" in token
