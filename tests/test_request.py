"""Unit tests for HTTP request-head parsing."""

import pytest

from request import HTTPRequest, HTTPRequestParseError


def test_parse_get_strips_query_from_path() -> None:
    raw = (
        b"GET /movies/index.html?page=2&sort=new HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )

    request = HTTPRequest.from_bytes(raw)

    assert request.method == "GET"
    assert request.path == "/movies/index.html"
    assert request.http_version == "HTTP/1.1"
    assert request.headers["host"] == "localhost"
    assert request.keep_alive is True


def test_double_slash_target_stays_a_path() -> None:
    raw = b"GET //css/app.css?v=3 HTTP/1.1\r\nHost: localhost\r\n\r\n"

    assert HTTPRequest.from_bytes(raw).path == "//css/app.css"


def test_absolute_form_target_keeps_only_path() -> None:
    raw = b"GET http://localhost:8080/player.html?ch=ntv HTTP/1.1\r\nHost: localhost\r\n\r\n"

    assert HTTPRequest.from_bytes(raw).path == "/player.html"


def test_asterisk_target_is_rejected() -> None:
    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(b"OPTIONS * HTTP/1.1\r\nHost: localhost\r\n\r\n")

    assert exc_info.value.status_code == 400


def test_header_without_colon_is_rejected() -> None:
    with pytest.raises(HTTPRequestParseError, match="Malformed header line"):
        HTTPRequest.from_bytes(b"GET / HTTP/1.1\r\nHost localhost\r\n\r\n")


def test_parse_keeps_percent_encoding_in_path() -> None:
    raw = b"GET /assets/tv%20logos/ntv.png HTTP/1.1\r\nHost: localhost\r\n\r\n"

    request = HTTPRequest.from_bytes(raw)

    assert request.path == "/assets/tv%20logos/ntv.png"


def test_http10_defaults_to_close() -> None:
    request = HTTPRequest.from_bytes(b"GET / HTTP/1.0\r\n\r\n")

    assert request.keep_alive is False


def test_connection_close_disables_keep_alive() -> None:
    raw = b"GET / HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n"

    assert HTTPRequest.from_bytes(raw).keep_alive is False


def test_parse_invalid_request_line_raises_value_error() -> None:
    raw = b"BROKEN-LINE\r\nHost: localhost\r\n\r\n"

    with pytest.raises(ValueError, match="Invalid request line"):
        HTTPRequest.from_bytes(raw)


def test_missing_host_on_http11_is_rejected() -> None:
    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(b"GET / HTTP/1.1\r\n\r\n")

    assert exc_info.value.status_code == 400


def test_unknown_method_maps_to_501() -> None:
    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(b"BREW / HTTP/1.1\r\nHost: localhost\r\n\r\n")

    assert exc_info.value.status_code == 501


def test_unsupported_version_maps_to_505() -> None:
    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(b"GET / HTTP/2.0\r\nHost: localhost\r\n\r\n")

    assert exc_info.value.status_code == 505


def test_overlong_target_maps_to_414() -> None:
    raw = b"GET /" + b"a" * 5000 + b" HTTP/1.1\r\nHost: localhost\r\n\r\n"

    with pytest.raises(HTTPRequestParseError) as exc_info:
        HTTPRequest.from_bytes(raw)

    assert exc_info.value.status_code == 414
