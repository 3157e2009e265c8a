"""Static asset handler: request path in, file-backed response out."""

from __future__ import annotations

import errno
import logging
import os
from pathlib import Path
from typing import BinaryIO

from config import DEFAULT_DOCUMENT
from request import HTTPRequest
from response import NO_LISTING_HTML, HTTPResponse, not_found, server_error
from utils import get_content_type, normalize_request_path, resolve_static_file

logger = logging.getLogger(__name__)


def serve(
    request_path: str,
    root: Path,
    *,
    default_document: str = DEFAULT_DOCUMENT,
    disable_cache: bool = False,
) -> HTTPResponse:
    """Resolve ``request_path`` under ``root`` and open the file it names.

    Escapes from the root and missing files both answer 404 with the same
    body. A directory answers with its default document or 404, never a
    listing. Any other OS error answers 500 with only the errno name.
    """
    relative_path = normalize_request_path(request_path, default_document)
    if relative_path is None:
        return not_found()

    file_path = resolve_static_file(relative_path, root)
    if file_path is None:
        return not_found()

    content_type = get_content_type(relative_path)
    try:
        file_obj = _open_regular_file(file_path)
    except (FileNotFoundError, NotADirectoryError):
        return not_found()
    except IsADirectoryError:
        index_path = resolve_static_file(f"{relative_path}/{default_document}", root)
        if index_path is None:
            return not_found(NO_LISTING_HTML)
        try:
            file_obj = _open_regular_file(index_path)
        except OSError:
            return not_found(NO_LISTING_HTML)
        content_type = get_content_type(default_document)
    except OSError as exc:
        logger.error("Failed to open static file %s: %s", file_path, exc)
        return server_error(errno.errorcode.get(exc.errno or 0, "EIO"))

    headers = {
        "Content-Type": content_type,
        "Access-Control-Allow-Origin": "*",
    }
    if disable_cache:
        headers["Cache-Control"] = "no-cache"
    return HTTPResponse(
        status_code=200,
        headers=headers,
        file_obj=file_obj,
        content_length=os.fstat(file_obj.fileno()).st_size,
    )


def _open_regular_file(path: Path) -> BinaryIO:
    if path.is_dir():
        raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), str(path))
    return path.open("rb")


class StaticSite:
    """Route handler bound to one root directory and its serving options."""

    def __init__(
        self,
        root: Path,
        *,
        default_document: str = DEFAULT_DOCUMENT,
        disable_cache: bool = False,
    ) -> None:
        self.root = root.resolve()
        self.default_document = default_document
        self.disable_cache = disable_cache

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return serve(
            request.path,
            self.root,
            default_document=self.default_document,
            disable_cache=self.disable_cache,
        )
