"""
Classification of ``<iframe>`` embeds found in legacy content.

YouTube and Twitch players get dedicated blocks with the parameters the
destination needs to rebuild the player; anything else is kept as a plain
iframe pointing at the original URL.
"""

from __future__ import annotations

import enum
import re
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from models.content_blocks import ContentBlock
from .block_schema import iframe_block, twitch_block, youtube_block

_YOUTUBE_EMBED = re.compile(
    r"^(?:https?:)?(?://)?(?:www\.|m\.)?youtube(?:-nocookie)?\.com/embed/", re.IGNORECASE
)
_TWITCH_PLAYER_HOSTS = {"player.twitch.tv"}


class MalformedEmbedUrl(ValueError):
    """An embed ``src`` that cannot be parsed as a URL."""


class EmbedKind(enum.Enum):
    YOUTUBE = "youtube"
    TWITCH = "twitch"
    IFRAME = "iframe"


def _first(params: Dict[str, list], key: str) -> Optional[str]:
    values = params.get(key)
    if values and values[0]:
        return values[0]
    return None


def _with_scheme(src: str) -> str:
    """Schemeless (``//host/...``) and bare (``host/...``) URLs get ``https:``."""
    if src.startswith("//"):
        return f"https:{src}"
    if "://" not in src and re.match(r"^[\w.-]+\.[a-z]{2,}/", src, re.IGNORECASE):
        return f"https://{src}"
    return src


def _parse(src: str):
    try:
        parsed = urlparse(src)
        # Accessing the port validates it; urlparse alone is lenient.
        parsed.port
    except ValueError as e:
        raise MalformedEmbedUrl(src) from e
    return parsed


def youtube_id(src: str) -> Optional[str]:
    """Video id of a YouTube embed URL, or ``None`` if ``src`` is not one."""
    if not _YOUTUBE_EMBED.match(src or ""):
        return None
    parsed = _parse(_with_scheme(src))
    vid = _first(parse_qs(parsed.query), "v")
    if vid:
        return vid
    last = parsed.path.rstrip("/").rsplit("/", 1)[-1]
    return last if last and last != "embed" else None


def classify_embed(src: str) -> Tuple[EmbedKind, Dict[str, Optional[str]]]:
    """
    Work out what an iframe ``src`` points at.

    :return: ``(kind, params)``.  ``params`` holds ``youtube_id`` for
        YouTube, ``video_id``/``channel_id``/``collection_id`` for Twitch
        (each may be ``None``) and ``src`` for everything else.
    :raises MalformedEmbedUrl: if ``src`` cannot be parsed.
    """
    src = (src or "").strip()
    vid = youtube_id(src)
    if vid:
        return EmbedKind.YOUTUBE, {"youtube_id": vid}

    parsed = _parse(_with_scheme(src))
    if (parsed.hostname or "").lower() in _TWITCH_PLAYER_HOSTS:
        params = parse_qs(parsed.query)
        return EmbedKind.TWITCH, {
            "video_id": _first(params, "video"),
            "channel_id": _first(params, "channel"),
            "collection_id": _first(params, "collection"),
        }

    return EmbedKind.IFRAME, {"src": src}


def embed_block(src: str) -> ContentBlock:
    """Block for an iframe ``src``; unparseable URLs fall back to a plain iframe."""
    try:
        kind, params = classify_embed(src)
    except MalformedEmbedUrl:
        return iframe_block(src)
    if kind is EmbedKind.YOUTUBE:
        return youtube_block(params["youtube_id"] or "")
    if kind is EmbedKind.TWITCH:
        return twitch_block(params["video_id"], params["channel_id"], params["collection_id"])
    return iframe_block(src)
