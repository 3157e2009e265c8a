"""Download the Uganda TV channel logos into the site's assets folder."""

from __future__ import annotations

import argparse
import logging
import os
import shutil
import sys
import tempfile
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import HTTP_TIMEOUT_SECS
from tools.channels import CHANNELS, Channel

logger = logging.getLogger(__name__)

DEFAULT_DEST = Path("assets") / "tv-logos"


@dataclass(slots=True)
class DownloadSummary:
    saved: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def download(url: str, dest: Path, timeout: float = HTTP_TIMEOUT_SECS) -> None:
    """Fetch ``url`` into ``dest``; a failed download leaves no file behind."""
    with urllib.request.urlopen(url, timeout=timeout) as response:
        if response.status != 200:
            raise urllib.error.HTTPError(
                url, response.status, "unexpected status", response.headers, None
            )
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, suffix=".part")
        try:
            with os.fdopen(fd, "wb") as tmp_file:
                shutil.copyfileobj(response, tmp_file)
            os.replace(tmp_name, dest)
        except BaseException:
            os.unlink(tmp_name)
            raise


def download_logos(
    dest_dir: Path,
    channels: Iterable[Channel] = CHANNELS,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> DownloadSummary:
    dest_dir.mkdir(parents=True, exist_ok=True)
    summary = DownloadSummary()
    for channel in channels:
        logger.info("Downloading %s...", channel.channel_id)
        try:
            download(channel.logo_url, dest_dir / f"{channel.channel_id}.png", timeout=timeout)
        except urllib.error.HTTPError as exc:
            summary.failed[channel.channel_id] = f"HTTP {exc.code}"
        except (urllib.error.URLError, OSError, ValueError) as exc:
            summary.failed[channel.channel_id] = exc.__class__.__name__
        else:
            summary.saved.append(channel.channel_id)
            logger.info("Saved %s logo", channel.channel_id)
            continue
        logger.warning(
            "Failed to download %s: %s",
            channel.channel_id,
            summary.failed[channel.channel_id],
        )
    return summary


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download Uganda TV channel logos")
    parser.add_argument("--dest", type=Path, default=DEFAULT_DEST)
    parser.add_argument("--timeout", type=float, default=HTTP_TIMEOUT_SECS)
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    summary = download_logos(args.dest, timeout=args.timeout)
    logger.info(
        "All downloads complete: %s saved, %s failed",
        len(summary.saved),
        len(summary.failed),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
