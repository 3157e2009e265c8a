"""Report HTTP status for each live-stream URL of the Uganda TV channels."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import urllib.error
import urllib.request
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import HTTP_TIMEOUT_SECS
from tools.channels import CHANNELS, Channel

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
OFFLINE = "offline"


@dataclass(slots=True)
class StreamStatus:
    url: str
    status: int | str
    kind: str
    accessible: bool
    note: str = ""


@dataclass(slots=True)
class ChannelReport:
    channel_id: str
    name: str
    results: list[StreamStatus]

    @property
    def working(self) -> int:
        return sum(1 for result in self.results if result.accessible)


def check_stream(url: str, timeout: float = HTTP_TIMEOUT_SECS) -> StreamStatus:
    """Issue one HEAD request; never raises for network failures."""
    if "youtube.com/embed" in url:
        # Embeds always load; an offline channel shows its error in the player.
        return StreamStatus(
            url=url,
            kind="youtube-embed",
            status="embed",
            accessible=True,
            note="not probed",
        )

    request = urllib.request.Request(url, method="HEAD", headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = response.status
            content_type = response.headers.get("Content-Type", "")
    except urllib.error.HTTPError as exc:
        return StreamStatus(url=url, kind="hls-stream", status=exc.code, accessible=False)
    except (urllib.error.URLError, OSError, ValueError) as exc:
        logger.debug("HEAD %s failed: %s", url, exc)
        return StreamStatus(
            url=url,
            kind="hls-stream",
            status=OFFLINE,
            accessible=False,
            note=exc.__class__.__name__,
        )

    return StreamStatus(
        url=url,
        kind="hls-stream",
        status=status,
        accessible=200 <= status < 400,
        note=content_type,
    )


def check_channels(
    channels: Iterable[Channel] = CHANNELS,
    timeout: float = HTTP_TIMEOUT_SECS,
) -> list[ChannelReport]:
    reports = []
    for channel in channels:
        results = [check_stream(url, timeout=timeout) for url in channel.streams]
        reports.append(ChannelReport(channel.channel_id, channel.name, results))
    return reports


def _print_reports(reports: list[ChannelReport]) -> None:
    for report in reports:
        print(f"{report.name} ({report.channel_id})")
        for result in report.results:
            marker = "OK " if result.accessible else "ERR"
            print(f"  [{marker}] {result.status} {result.url}")
        print(f"  {report.working}/{len(report.results)} streams accessible")

    with_working = sum(1 for report in reports if report.working)
    print(f"Channels with a working stream: {with_working}/{len(reports)}")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check Uganda TV stream URLs")
    parser.add_argument("channels", nargs="*", help="channel ids (default: all)")
    parser.add_argument("--timeout", type=float, default=HTTP_TIMEOUT_SECS)
    parser.add_argument("--json", action="store_true", help="print JSON instead of text")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    selected = [
        channel
        for channel in CHANNELS
        if not args.channels or channel.channel_id in args.channels
    ]
    unknown = set(args.channels) - {channel.channel_id for channel in CHANNELS}
    if unknown:
        logger.error("Unknown channel ids: %s", ", ".join(sorted(unknown)))
        return 2

    reports = check_channels(selected, timeout=args.timeout)
    if args.json:
        payload = [
            {
                "channel_id": report.channel_id,
                "name": report.name,
                "results": [asdict(result) for result in report.results],
            }
            for report in reports
        ]
        print(json.dumps(payload, indent=2))
    else:
        _print_reports(reports)
    return 0


if __name__ == "__main__":
    sys.exit(main())
