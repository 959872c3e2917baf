"""
Segment tracking for Live Recorder.
Keeps the de-duplicated record of discovered segments and the queue of
segments not yet assigned to a batch.
"""

from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Optional, Set
from urllib.parse import urljoin


@dataclass(frozen=True)
class Segment:
    """One addressable chunk of the stream. Identity is the resolved URL."""
    uri: str
    resolved_url: str

    @classmethod
    def from_uri(cls, uri: str, base_url: Optional[str] = None) -> 'Segment':
        """Build a segment, resolving ``uri`` against ``base_url`` if given."""
        resolved = urljoin(base_url, uri) if base_url else uri
        return cls(uri=uri, resolved_url=resolved)


class SegmentTracker:
    """
    Append-only discovery log plus a FIFO of pending segments.

    ``seen`` only grows. A resolved URL is queued at most once, so nothing
    is ever drained twice, and the queue keeps discovery order.
    """

    def __init__(self):
        self.seen: Set[str] = set()
        self._pending: Deque[Segment] = deque()
        self.total_discovered = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> List[Segment]:
        """Snapshot of segments waiting for a batch."""
        return list(self._pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _add(self, segment: Segment) -> bool:
        if segment.resolved_url in self.seen:
            return False
        self.seen.add(segment.resolved_url)
        self._pending.append(segment)
        self.total_discovered += 1
        return True

    def ingest_initial(self, segments: Iterable[Segment]) -> int:
        """Seed with segments already known at start. Duplicates are ignored."""
        added = 0
        for segment in segments:
            if segment.resolved_url and self._add(segment):
                added += 1
        return added

    def ingest_poll(self, uris: Iterable[str], base_url: str) -> int:
        """
        Add the segments of one manifest poll.

        Args:
            uris: Raw segment URIs in manifest order.
            base_url: URL of the playlist the URIs came from.

        Returns:
            Number of newly discovered segments.
        """
        added = 0
        for uri in uris:
            if self._add(Segment.from_uri(uri, base_url)):
                added += 1
        return added

    def drain(self, max_count: int) -> List[Segment]:
        """Remove and return up to ``max_count`` segments from the front."""
        drained = []
        while self._pending and len(drained) < max_count:
            drained.append(self._pending.popleft())
        return drained
