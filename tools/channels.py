"""Uganda TV channel registry shared by the stream checker and logo downloader."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Channel:
    channel_id: str
    name: str
    streams: tuple[str, ...]
    logo_url: str


def _youtube(channel: str) -> str:
    return f"https://www.youtube.com/embed/live_stream?channel={channel}&autoplay=1"


_WIKIMEDIA = "https://upload.wikimedia.org/wikipedia"

CHANNELS: tuple[Channel, ...] = (
    Channel(
        "ntv-uganda",
        "NTV Uganda",
        (_youtube("UCwga1dPCqBddbtq5KYRii2g"),),
        f"{_WIKIMEDIA}/commons/f/f8/NTV_Uganda_logo.png",
    ),
    Channel(
        "nbs-tv",
        "NBS TV",
        (_youtube("UCT0bVGYRe-Qg_CAjJ7RQb0g"),),
        f"{_WIKIMEDIA}/en/d/d7/NBS_Television_logo.png",
    ),
    Channel(
        "ubc-tv",
        "UBC TV",
        (_youtube("UCVktcIoQvZgmNdmNwXOYPxg"),),
        f"{_WIKIMEDIA}/en/6/6f/Uganda_Broadcasting_Corporation_logo.png",
    ),
    Channel(
        "bukedde-tv",
        "Bukedde TV",
        (
            "https://stream.hydeinnovations.com/bukedde1flussonic/index.m3u8",
            "https://stream.hydeinnovations.com/bukedde2flussonic/index.m3u8",
            _youtube("UCouBdXAhnJbVpXlLi5YYkxg"),
        ),
        f"{_WIKIMEDIA}/commons/2/2e/Bukedde_TV_logo.png",
    ),
    Channel(
        "urban-tv",
        "Urban TV",
        (_youtube("UCxS3-UXJjVdOZmnPpzgRXOg"),),
        f"{_WIKIMEDIA}/commons/2/2a/Urban_TV_Uganda_logo.png",
    ),
    Channel(
        "spark-tv",
        "Spark TV",
        (_youtube("UCVktcIoQvZgmNdmNwXOYPxg"),),
        f"{_WIKIMEDIA}/commons/7/7d/Spark_TV_Uganda_logo.png",
    ),
    Channel(
        "tv-west",
        "TV West",
        ("https://stream.hydeinnovations.com/tvwest-flussonic/index.m3u8",),
        f"{_WIKIMEDIA}/commons/2/2c/TV_West_Uganda_logo.png",
    ),
    Channel(
        "salt-tv",
        "Salt TV",
        (_youtube("UCVktcIoQvZgmNdmNwXOYPxg"),),
        "https://saltmedia.ug/images/logo.png",
    ),
    Channel(
        "tv-east",
        "TV East",
        (_youtube("UCVktcIoQvZgmNdmNwXOYPxg"),),
        f"{_WIKIMEDIA}/commons/7/7e/TV_East_Uganda_logo.png",
    ),
    Channel(
        "bbs-tv",
        "BBS TV",
        (_youtube("UCgLpjHjfGTbBBi5T5JaBcKg"),),
        f"{_WIKIMEDIA}/commons/2/2d/BBS_Television_logo.png",
    ),
    Channel(
        "tv-north",
        "TV North",
        (_youtube("UCVktcIoQvZgmNdmNwXOYPxg"),),
        f"{_WIKIMEDIA}/commons/6/6a/TV_North_Uganda_logo.png",
    ),
    Channel(
        "wan-luo-tv",
        "Wan Luo TV",
        ("https://stream.hydeinnovations.com/luotv-flussonic/index.m3u8",),
        f"{_WIKIMEDIA}/commons/2/2b/Wan_Luo_TV_logo.png",
    ),
)


def get_channel(channel_id: str) -> Channel:
    for channel in CHANNELS:
        if channel.channel_id == channel_id:
            return channel
    raise KeyError(channel_id)
