"""
Playlist inspection for Live Recorder.
Classifies HLS manifests and resolves master playlists to their best variant.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional
from urllib.parse import urljoin

import m3u8

from .logger import get_logger


STREAM_INF_TAG = '#EXT-X-STREAM-INF'
END_LIST_TAG = '#EXT-X-ENDLIST'
VOD_TYPE_TAG = '#EXT-X-PLAYLIST-TYPE:VOD'


class PlaylistKind(Enum):
    """What a manifest turned out to be."""
    MASTER = "master"   # Lists variant streams
    LIVE = "live"       # Media playlist still growing
    CLOSED = "closed"   # VOD or ended event


@dataclass
class Variant:
    """One variant stream declared by a master playlist."""
    url: str
    bandwidth: int = 0
    width: int = 0
    height: int = 0

    @property
    def resolution(self) -> str:
        if not self.height:
            return "unknown"
        return f"{self.width}x{self.height}"


def has_end_list(text: str) -> bool:
    """True if the manifest carries the end-of-list marker."""
    return END_LIST_TAG in text


def classify_playlist(text: str) -> PlaylistKind:
    """
    Classify manifest text.

    A master playlist is never reported as live or closed; it only points
    to media playlists.
    """
    if STREAM_INF_TAG in text:
        return PlaylistKind.MASTER
    if has_end_list(text):
        return PlaylistKind.CLOSED
    if VOD_TYPE_TAG in text:
        return PlaylistKind.CLOSED
    return PlaylistKind.LIVE


async def classify_url(client, url: str) -> PlaylistKind:
    """
    Fetch and classify a playlist.

    Any fetch or parse failure degrades to CLOSED so callers treat the
    stream as not recordable.
    """
    logger = get_logger('playlist')
    try:
        text = await client.fetch_text(url)
        kind = classify_playlist(text)
    except Exception as e:
        logger.warning(f"Error checking stream type: {e}")
        return PlaylistKind.CLOSED

    logger.debug(f"Checked {url[:60]}: {kind.value}")
    return kind


async def is_live_stream(client, url: str) -> bool:
    """Check whether a URL is a recordable live media playlist."""
    return await classify_url(client, url) == PlaylistKind.LIVE


def parse_segment_uris(text: str) -> List[str]:
    """Return the raw segment URIs of a media playlist, in manifest order."""
    playlist = m3u8.loads(text)
    return [segment.uri for segment in playlist.segments if segment.uri]


def parse_variants(text: str, base_url: str) -> List[Variant]:
    """
    Parse the variant declarations of a master playlist.

    Relative variant URIs are resolved against ``base_url``. Returns an
    empty list for media playlists.
    """
    playlist = m3u8.loads(text)
    variants = []

    for entry in playlist.playlists:
        if not entry.uri:
            continue

        info = entry.stream_info
        width, height = (info.resolution or (0, 0)) if info else (0, 0)
        variants.append(Variant(
            url=urljoin(base_url, entry.uri),
            bandwidth=(info.bandwidth or 0) if info else 0,
            width=width or 0,
            height=height or 0
        ))

    return variants


def rank_variants(variants: List[Variant]) -> List[Variant]:
    """Sort best first: vertical resolution, then bandwidth."""
    return sorted(variants, key=lambda v: (v.height, v.bandwidth), reverse=True)


class MasterResolver:
    """
    Resolves a master playlist URL to its best media playlist.

    Resolution is read-only and may be repeated; the same manifest always
    yields the same variant.
    """

    def __init__(self, client):
        self.client = client
        self._logger = get_logger('resolver')

    def select(self, text: str, url: str) -> Optional[Variant]:
        """Pick the best variant from manifest text, or None if not a master."""
        variants = parse_variants(text, url)
        if not variants:
            return None

        best = rank_variants(variants)[0]
        self._logger.info(
            f"Master playlist with {len(variants)} variants, "
            f"selected {best.resolution} @ {best.bandwidth} bps"
        )
        return best

    async def resolve(self, url: str) -> Optional[Variant]:
        """
        Fetch ``url`` and return its best variant.

        Returns None when the URL is not a master playlist or cannot be
        fetched; callers then keep using the original URL.
        """
        try:
            text = await self.client.fetch_text(url)
        except Exception as e:
            self._logger.warning(f"Could not fetch playlist for master check: {e}")
            return None

        if classify_playlist(text) != PlaylistKind.MASTER:
            return None

        return self.select(text, url)
