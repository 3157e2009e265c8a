"""Content-type lookup and request path containment helpers."""

from __future__ import annotations

import posixpath
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from urllib.parse import unquote

from config import DEFAULT_DOCUMENT

DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES = MappingProxyType(
    {
        ".html": "text/html",
        ".htm": "text/html",
        ".js": "text/javascript",
        ".mjs": "text/javascript",
        ".css": "text/css",
        ".json": "application/json",
        ".webmanifest": "application/manifest+json",
        ".txt": "text/plain",
        ".xml": "application/xml",
        ".png": "image/png",
        ".jpg": "image/jpg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
        ".webp": "image/webp",
        ".svg": "image/svg+xml",
        ".ico": "image/x-icon",
        ".m3u8": "application/vnd.apple.mpegurl",
        ".ts": "video/mp2t",
        ".mp4": "video/mp4",
        ".webm": "video/webm",
        ".woff": "font/woff",
        ".woff2": "font/woff2",
        ".ttf": "font/ttf",
    }
)


def get_content_type(path: str | PurePosixPath | Path) -> str:
    suffix = PurePosixPath(str(path)).suffix.lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_CONTENT_TYPE)


def strip_query(request_path: str) -> str:
    return request_path.split("?", 1)[0].split("#", 1)[0]


def normalize_request_path(
    request_path: str,
    default_document: str = DEFAULT_DOCUMENT,
) -> str | None:
    """Map an untrusted request path to a clean root-relative path.

    Returns None when the path escapes the root or cannot name a file.
    No filesystem access happens here.
    """
    path = strip_query(request_path)
    if path in ("", "/"):
        return default_document

    decoded = unquote(path).replace("\\", "/")
    if "\x00" in decoded or _escapes_root(decoded):
        return None

    relative = posixpath.normpath(decoded.lstrip("/"))
    if relative == ".":
        return default_document
    return relative


def _escapes_root(decoded: str) -> bool:
    depth = 0
    for segment in decoded.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            depth -= 1
            if depth < 0:
                return True
        else:
            depth += 1
    return False


def resolve_static_file(relative_path: str, root: Path) -> Path | None:
    """Join a normalized path onto root, refusing symlinks that leave it."""
    static_root = root.resolve()
    candidate = (static_root / relative_path).resolve()

    try:
        candidate.relative_to(static_root)
    except ValueError:
        return None

    return candidate
