"""Unit tests for HTTP response serialization."""

import io

import pytest

from response import HTTPResponse, as_head_response, not_found, server_error


def test_response_serialization_sets_length_and_default_content_type() -> None:
    response = HTTPResponse(status_code=200, body="hello")

    raw = response.to_bytes()

    assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/plain; charset=utf-8\r\n" in raw
    assert b"Content-Length: 5\r\n" in raw
    assert raw.endswith(b"\r\n\r\nhello")


def test_file_response_serializes_file_bytes_and_closes_it() -> None:
    file_obj = io.BytesIO(b"\x00\x01binary\xff")
    response = HTTPResponse(
        status_code=200,
        headers={"Content-Type": "image/png"},
        file_obj=file_obj,
        content_length=9,
    )

    raw = response.to_bytes()

    assert b"Content-Length: 9\r\n" in raw
    assert raw.endswith(b"\r\n\r\n\x00\x01binary\xff")
    assert file_obj.closed
    assert response.file_obj is None


def test_file_response_requires_content_length() -> None:
    with pytest.raises(ValueError):
        HTTPResponse(status_code=200, file_obj=io.BytesIO(b"x"))


def test_head_response_keeps_length_and_drops_body() -> None:
    file_obj = io.BytesIO(b"body")
    get_response = HTTPResponse(status_code=200, file_obj=file_obj, content_length=4)

    head = as_head_response(get_response)
    raw = head.to_bytes()

    assert b"Content-Length: 4\r\n" in raw
    assert raw.endswith(b"\r\n\r\n")
    assert file_obj.closed


def test_not_found_page_is_html() -> None:
    raw = not_found().to_bytes()

    assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"Content-Type: text/html\r\n" in raw
    assert b"404 - File Not Found" in raw


def test_server_error_carries_only_the_error_code() -> None:
    raw = server_error("EACCES").to_bytes()

    assert raw.startswith(b"HTTP/1.1 500 Internal Server Error\r\n")
    assert raw.endswith(b"Server Error: EACCES")
