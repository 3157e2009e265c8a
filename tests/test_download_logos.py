"""Tests for the channel logo downloader."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from config import ServerConfig
from server import StaticServer
from tools.channels import Channel
from tools.download_logos import download_logos

LOGO_BYTES = b"\x89PNG\r\n\x1a\n" + bytes(range(64))


@pytest.fixture()
def logo_server(tmp_path: Path):
    root = tmp_path / "upstream"
    root.mkdir()
    (root / "ntv.png").write_bytes(LOGO_BYTES)
    server = StaticServer(ServerConfig(port=0, root=root))
    thread = threading.Thread(target=server.start, daemon=True)
    thread.start()
    deadline = time.time() + 3
    while server.port == 0 and time.time() < deadline:
        time.sleep(0.01)
    yield f"http://{server.host}:{server.port}"
    server.stop()
    thread.join(timeout=3)


def test_downloads_logos_and_skips_failures(logo_server: str, tmp_path: Path) -> None:
    dest = tmp_path / "assets" / "tv-logos"
    channels = [
        Channel("ntv-uganda", "NTV Uganda", (), f"{logo_server}/ntv.png"),
        Channel("nbs-tv", "NBS TV", (), f"{logo_server}/missing.png"),
    ]

    summary = download_logos(dest, channels, timeout=2)

    assert summary.saved == ["ntv-uganda"]
    assert summary.failed == {"nbs-tv": "HTTP 404"}
    assert (dest / "ntv-uganda.png").read_bytes() == LOGO_BYTES
    assert not (dest / "nbs-tv.png").exists()
    assert list(dest.glob("*.part")) == []


def test_unreachable_host_is_recorded(tmp_path: Path) -> None:
    channels = [Channel("tv-west", "TV West", (), "http://127.0.0.1:9/logo.png")]

    summary = download_logos(tmp_path, channels, timeout=1)

    assert summary.saved == []
    assert "tv-west" in summary.failed
    assert not (tmp_path / "tv-west.png").exists()
