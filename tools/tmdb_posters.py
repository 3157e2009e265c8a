"""Look up movie poster URLs on TMDB by title."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Sequence
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import HTTP_TIMEOUT_SECS

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "TMDB_API_TOKEN"
TMDB_API_URL = "https://api.themoviedb.org/3"
TMDB_IMAGE_URL = "https://image.tmdb.org/t/p"
POSTER_SIZE = "w500"
LOOKUP_DELAY_SECS = 0.25

PLACEHOLDER_URL = "https://placehold.co/500x750"
PLACEHOLDER_TITLE_CHARS = 20
# background/foreground per genre
PLACEHOLDER_COLORS = {
    "action": "8B0000/FFFFFF",
    "comedy": "FFD700/000000",
    "horror": "2F4F4F/FF0000",
    "romance": "FF69B4/FFFFFF",
    "sci-fi": "191970/00FFFF",
    "thriller": "1C1C1C/FF4500",
    "crime": "36454F/FFFFFF",
    "drama": "4A4A4A/FFFFFF",
}
DEFAULT_PLACEHOLDER_COLORS = "2D2D2D/7CFC00"

_TITLE_SUFFIXES = (
    re.compile(r" - Luganda$", re.IGNORECASE),
    re.compile(r" Part \d+.*$", re.IGNORECASE),
    re.compile(r" Hindi$", re.IGNORECASE),
)


class TMDBError(Exception):
    """Raised when a TMDB request fails or returns something unusable."""


def clean_title(title: str) -> str:
    """Strip catalog suffixes (translator tags, part numbers) from a title."""
    cleaned = title.strip()
    for pattern in _TITLE_SUFFIXES:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def poster_url(poster_path: str, size: str = POSTER_SIZE) -> str:
    return f"{TMDB_IMAGE_URL}/{size}{poster_path}"


def placeholder_url(title: str, genre: str | None = None) -> str:
    """Generated poster image showing the start of the title, colored by genre."""
    colors = PLACEHOLDER_COLORS.get((genre or "").lower(), DEFAULT_PLACEHOLDER_COLORS)
    text = urllib.parse.quote(title[:PLACEHOLDER_TITLE_CHARS], safe="!'()*")
    return f"{PLACEHOLDER_URL}/{colors}?text={text}&font=roboto"


def _get_json(url: str, token: str, timeout: float) -> dict[str, Any]:
    request = urllib.request.Request(
        url,
        headers={"Accept": "application/json", "Authorization": f"Bearer {token}"},
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except urllib.error.HTTPError as exc:
        raise TMDBError(f"TMDB answered {exc.code}") from exc
    except (urllib.error.URLError, OSError, ValueError) as exc:
        raise TMDBError(f"TMDB request failed: {exc.__class__.__name__}") from exc
    if not isinstance(payload, dict):
        raise TMDBError("TMDB returned a non-object payload")
    return payload


def search_movie(
    title: str,
    year: int | None = None,
    *,
    token: str,
    api_url: str = TMDB_API_URL,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> dict[str, Any] | None:
    params = {"query": clean_title(title)}
    if year is not None:
        params["year"] = str(year)
    url = f"{api_url}/search/movie?{urllib.parse.urlencode(params)}"
    results = _get_json(url, token, timeout).get("results")
    if results is None:
        return None
    if not isinstance(results, list):
        raise TMDBError("TMDB returned non-list results")
    if not results:
        return None
    if not isinstance(results[0], dict):
        raise TMDBError("TMDB returned a non-object result")
    return results[0]


def fetch_poster_url(
    title: str,
    year: int | None = None,
    *,
    token: str,
    api_url: str = TMDB_API_URL,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> str | None:
    """Return a poster URL for the first match, or None.

    A search with ``year`` that finds nothing is retried without it. Request
    failures are logged and reported as None.
    """
    try:
        match = search_movie(title, year, token=token, api_url=api_url, timeout=timeout)
        if match is None and year is not None:
            match = search_movie(title, token=token, api_url=api_url, timeout=timeout)
    except TMDBError as exc:
        logger.warning("Poster lookup for %r failed: %s", title, exc)
        return None

    poster_path = match.get("poster_path") if match else None
    if not isinstance(poster_path, str) or not poster_path:
        return None
    return poster_url(poster_path)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch TMDB poster URLs for movie titles")
    parser.add_argument("titles", nargs="+")
    parser.add_argument("--year", type=int, default=None)
    parser.add_argument("--timeout", type=float, default=HTTP_TIMEOUT_SECS)
    parser.add_argument(
        "--delay",
        type=float,
        default=LOOKUP_DELAY_SECS,
        help="seconds to wait between lookups (TMDB rate limit)",
    )
    parser.add_argument(
        "--placeholder",
        action="store_true",
        help="print a generated placeholder poster when TMDB has no match",
    )
    parser.add_argument("--genre", default=None, help="genre used to color placeholders")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    token = os.environ.get(TOKEN_ENV_VAR)
    if not token:
        logger.error("%s is not set", TOKEN_ENV_VAR)
        return 2

    found = placeholders = 0
    for index, title in enumerate(args.titles):
        if index and args.delay > 0:
            time.sleep(args.delay)
        url = fetch_poster_url(title, args.year, token=token, timeout=args.timeout)
        if url is not None:
            found += 1
        elif args.placeholder:
            url = placeholder_url(title, args.genre)
            placeholders += 1
        print(f"{title}\t{url or '-'}")
    print(f"Found posters for {found}/{len(args.titles)} titles")
    if args.placeholder:
        print(f"Using placeholders for {placeholders} titles")
    return 0


if __name__ == "__main__":
    sys.exit(main())
