"""Pytest configuration and fixtures for Live Recorder tests."""
import asyncio
from typing import Dict, List, Optional, Union
from unittest.mock import MagicMock

import pytest

from liverecorder.config import StaticSettings
from liverecorder.http_client import FetchError
from liverecorder.session import RecordingSession
from liverecorder.storage import Storage
from liverecorder.transport import TransportError


MEDIA_URL = "https://cdn.example.com/live/stream/index.m3u8"
MASTER_URL = "https://cdn.example.com/live/master.m3u8"


# ===== Playlist builders =====

def segment_names(start: int, stop: int) -> List[str]:
    return [f"seg{i:05d}.ts" for i in range(start, stop)]


def media_playlist(uris: List[str], ended: bool = False, media_sequence: int = 0) -> str:
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        "#EXT-X-TARGETDURATION:4",
        f"#EXT-X-MEDIA-SEQUENCE:{media_sequence}",
    ]
    for uri in uris:
        lines.append("#EXTINF:4.000,")
        lines.append(uri)
    if ended:
        lines.append("#EXT-X-ENDLIST")
    return "\n".join(lines) + "\n"


MASTER_PLAYLIST = """#EXTM3U
#EXT-X-STREAM-INF:BANDWIDTH=2500000,RESOLUTION=1280x720
720p/index.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080
1080p/index.m3u8
"""


def payload(url: str) -> bytes:
    return f"<{url}>".encode()


# ===== Fakes =====

class FakeClient:
    """Manifest fetcher returning the current response set for each URL."""

    def __init__(self, responses: Optional[Dict[str, Union[str, Exception]]] = None):
        self.responses: Dict[str, Union[str, Exception]] = dict(responses or {})
        self.calls: List[str] = []

    def set(self, url: str, response: Union[str, Exception]) -> None:
        self.responses[url] = response

    async def fetch_text(self, url: str) -> str:
        self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise FetchError(f"HTTP 404 for {url}")
        if isinstance(response, Exception):
            raise response
        return response


class FakeTransport:
    """Writes a recognizable payload per segment; can fail or hang per batch."""

    def __init__(self, fail_batches=(), hang_batches=(), delay=0.0):
        self.fail_batches = set(fail_batches)
        self.hang_batches = set(hang_batches)
        self.delay = delay
        self.release = asyncio.Event()
        self.calls: List[dict] = []

    async def fetch(self, segments, sink, codec="ts", threads=1, thread_timeout=30.0, retries=None):
        number = len(self.calls) + 1
        self.calls.append({
            'segments': list(segments),
            'codec': codec,
            'threads': threads,
            'thread_timeout': thread_timeout,
            'retries': retries,
        })
        if number in self.fail_batches:
            raise TransportError(f"batch {number} unavailable")
        if number in self.hang_batches:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        for segment in segments:
            await sink.write(payload(segment.resolved_url))


# ===== Fixtures =====

@pytest.fixture
def storage(tmp_path):
    return Storage(tmp_path)


@pytest.fixture
async def make_session(tmp_path):
    """Factory for sessions; timers never fire unless intervals are passed."""
    sessions = []

    def _make(client, transport=None, batch_size=20, url=MEDIA_URL, **kwargs):
        session = RecordingSession(
            url=url,
            name="show",
            storage=Storage(tmp_path),
            client=client,
            transport=transport or FakeTransport(),
            settings=StaticSettings({'batch_size': batch_size}),
            notifier=kwargs.pop('notifier', MagicMock()),
            poll_interval=kwargs.pop('poll_interval', 3600),
            duration_interval=kwargs.pop('duration_interval', 3600),
            **kwargs
        )
        sessions.append(session)
        return session

    yield _make

    for session in sessions:
        session._poll_ticker.cancel()
        session._duration_ticker.cancel()
