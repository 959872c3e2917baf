"""
Segment transport for Live Recorder.
Fetches one batch worth of segments and writes them, in order, into a sink.
"""

import asyncio
from typing import List, Optional

from .http_client import FetchError
from .logger import get_logger
from .tracker import Segment


class TransportError(Exception):
    """A batch could not be fetched completely."""


class SegmentTransport:
    """
    Interface for batch fetchers.

    Implementations write every segment payload to ``sink`` in list order
    and raise on failure. Success and failure are reported per batch.
    """

    async def fetch(
        self,
        segments: List[Segment],
        sink,
        codec: str = "ts",
        threads: int = 1,
        thread_timeout: float = 30.0,
        retries: Optional[int] = None
    ) -> None:
        raise NotImplementedError


class HttpSegmentTransport(SegmentTransport):
    """
    Default transport using the shared HTTP client.

    Up to ``threads`` segments download concurrently; writes still happen
    strictly in segment order.
    A ``retries`` hint passed to ``fetch`` overrides the default attempt count.
    """

    def __init__(self, client, retries: int = 3, retry_delay: float = 1.0):
        self.client = client
        self.retries = max(1, retries)
        self.retry_delay = retry_delay
        self._logger = get_logger('transport')

    async def _fetch_segment(
        self,
        segment: Segment,
        semaphore: asyncio.Semaphore,
        thread_timeout: float,
        retries: int
    ) -> bytes:
        last_error = None

        async with semaphore:
            for attempt in range(1, retries + 1):
                try:
                    return await self.client.fetch_bytes(segment.resolved_url, timeout=thread_timeout)
                except FetchError as e:
                    last_error = e
                    self._logger.debug(
                        f"Segment attempt {attempt}/{retries} failed: {e}"
                    )
                    if attempt < retries:
                        await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))

        raise TransportError(f"Segment unavailable after {retries} attempts: {last_error}")

    async def fetch(
        self,
        segments: List[Segment],
        sink,
        codec: str = "ts",
        threads: int = 1,
        thread_timeout: float = 30.0,
        retries: Optional[int] = None
    ) -> None:
        attempts = max(1, retries) if retries else self.retries
        semaphore = asyncio.Semaphore(max(1, threads))
        tasks = [
            asyncio.ensure_future(self._fetch_segment(segment, semaphore, thread_timeout, attempts))
            for segment in segments
        ]
        self._logger.debug(f"Fetching {len(segments)} {codec} segments with {threads} thread(s)")

        try:
            for task in tasks:
                payload = await task
                await sink.write(payload)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            # Collect cancelled or failed leftovers
            await asyncio.gather(*tasks, return_exceptions=True)
