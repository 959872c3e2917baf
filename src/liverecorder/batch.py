"""
Batch recording for Live Recorder.
Drives the segment transport for one bounded group of segments at a time.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from .config import as_float, as_int
from .logger import get_logger
from .tracker import Segment


DEFAULT_BATCH_TIMEOUT = 600.0


class BatchStatus(Enum):
    """Batch status enumeration."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED_EMPTY = "failed-empty"   # timed out or errored; file may be empty or partial


@dataclass
class Batch:
    """One fetch unit and the scratch file it writes to."""
    sequence_number: int
    segments: List[Segment]
    path: Path
    status: BatchStatus = BatchStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def succeeded(self) -> bool:
        return self.status == BatchStatus.SUCCEEDED


@dataclass
class BatchSettings:
    """Transport tuning read from the settings provider for one batch."""
    threads: int = 1
    thread_timeout: float = 30.0
    retries: int = 3

    @classmethod
    def from_provider(cls, settings) -> 'BatchSettings':
        return cls(
            threads=max(1, as_int(settings.get('live_threads', 1), 1)),
            thread_timeout=max(1.0, as_float(settings.get('thread_timeout', 30.0), 30.0)),
            retries=max(1, as_int(settings.get('segment_retries', 3), 3)),
        )


class BatchRecorder:
    """
    Fetches one batch into its file without ever failing the recording.

    The transport call races a generous timeout. Whichever settles first
    decides the outcome; a transport that loses the race is not cancelled,
    its eventual result is ignored.
    """

    def __init__(
        self,
        storage,
        transport,
        settings,
        codec: str = "ts",
        timeout: float = DEFAULT_BATCH_TIMEOUT,
        notify: Optional[Callable[[str, str], None]] = None,
        logger=None
    ):
        self.storage = storage
        self.transport = transport
        self.settings = settings
        self.codec = codec
        self.timeout = timeout
        self._notify = notify
        self._logger = logger or get_logger('batch')

    @staticmethod
    def _discard_result(task: asyncio.Future) -> None:
        if not task.cancelled():
            task.exception()

    async def _close_sink(self, sink) -> None:
        try:
            await sink.close()
        except Exception:
            self._logger.debug("Writer already closed")

    async def record(self, batch: Batch) -> Batch:
        """
        Fetch ``batch.segments`` into ``batch.path``.

        Returns:
            The same batch, marked SUCCEEDED or FAILED_EMPTY.
        """
        loop = asyncio.get_running_loop()
        batch.started_at = loop.time()
        tuning = BatchSettings.from_provider(self.settings)
        tag = {'batch': batch.sequence_number}
        self._logger.info(
            f"Batch {batch.sequence_number}: {len(batch.segments)} segments -> {batch.name} "
            f"({tuning.threads} thread(s))",
            extra=tag
        )

        sink = None
        try:
            path = await self.storage.get_file(batch.path.parent, batch.name)
            sink = await self.storage.open_append(path)

            fetch = asyncio.ensure_future(self.transport.fetch(
                batch.segments,
                sink,
                codec=self.codec,
                threads=tuning.threads,
                thread_timeout=tuning.thread_timeout,
                retries=tuning.retries
            ))
            done, _ = await asyncio.wait({fetch}, timeout=self.timeout)

            if not done:
                # Left running; its outcome no longer matters
                fetch.add_done_callback(self._discard_result)
                raise asyncio.TimeoutError(
                    f"Batch download timeout after {self.timeout:.0f} seconds"
                )

            fetch.result()
            batch.status = BatchStatus.SUCCEEDED
            self._logger.info(f"Batch {batch.sequence_number} complete", extra=tag)

        except Exception as e:
            batch.status = BatchStatus.FAILED_EMPTY
            batch.error = str(e) or e.__class__.__name__
            self._logger.warning(f"Batch {batch.sequence_number} failed: {batch.error}", extra=tag)
            if self._notify:
                self._notify(
                    f"Batch {batch.sequence_number} failed: {batch.error}. "
                    f"Continuing with remaining batches...",
                    'warning'
                )

        finally:
            if sink is not None:
                await self._close_sink(sink)
            batch.finished_at = loop.time()

        return batch
