"""
Recording session for Live Recorder.
Polls a live playlist, cuts segment batches and finalizes the recording.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .batch import DEFAULT_BATCH_TIMEOUT, Batch, BatchRecorder
from .config import StaticSettings, as_int
from .events import LogNotifier, Notifier, SessionEvent, SessionUpdate
from .finalize import ConcatResult, cleanup_batches, concatenate_batches
from .logger import get_session_logger
from .naming import batch_file_name, scratch_dir_name
from .playlist import MasterResolver, has_end_list, parse_segment_uris
from .scheduler import Ticker
from .tracker import Segment, SegmentTracker


DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_BATCH_SIZE = 20


class SessionState(Enum):
    """Recording session lifecycle."""
    IDLE = "idle"
    ACTIVE = "active"
    STOPPING = "stopping"
    DONE = "done"


class SessionStateError(Exception):
    """Operation not allowed in the current session state."""


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as H:MM:SS."""
    elapsed = max(0, int(seconds))
    hours = elapsed // 3600
    minutes = (elapsed % 3600) // 60
    return f"{hours}:{minutes:02d}:{elapsed % 60:02d}"


@dataclass
class RecordingResult:
    """Summary of a finished recording."""
    name: str
    output_path: Path
    total_segments: int
    batch_count: int
    failed_batches: int
    skipped_batches: int
    lost_segments: int
    bytes_written: int
    started_at: datetime
    ended_at: datetime

    @property
    def saved_segments(self) -> int:
        return self.total_segments - self.lost_segments

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    @property
    def duration_formatted(self) -> str:
        return format_duration(self.duration_seconds)

    @property
    def file_size_formatted(self) -> str:
        """Get human-readable file size."""
        size = float(self.bytes_written)
        for unit in ['B', 'KB', 'MB', 'GB']:
            if size < 1024:
                return f"{size:.2f} {unit}"
            size /= 1024
        return f"{size:.2f} TB"


class RecordingSession:
    """
    Records one live HLS stream into a single file.

    Lifecycle: IDLE -> ACTIVE -> STOPPING -> DONE. Nothing after the
    storage permission check in ``start`` can abort the recording; every
    path ends in DONE with the best artifact the successful batches allow.
    """

    def __init__(
        self,
        url: str,
        name: str,
        storage,
        client,
        transport,
        settings=None,
        codec: str = "ts",
        notifier: Optional[Notifier] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        duration_interval: float = 1.0,
        batch_timeout: float = DEFAULT_BATCH_TIMEOUT
    ):
        """
        Args:
            url: Playlist URL; a master playlist is resolved at start.
            name: Base name for batch files and the scratch directory.
            storage: Storage rooted where scratch files may be written.
            client: Manifest fetcher exposing ``fetch_text(url)``.
            transport: Segment transport used for every batch.
            settings: Key/value provider read before each batch.
            codec: Container hint forwarded to the transport.
            notifier: User notification channel.
            poll_interval: Seconds between manifest polls.
            duration_interval: Seconds between duration updates.
            batch_timeout: Ceiling for a single batch download.
        """
        self.url = url
        self.original_url = url
        self.name = name
        self.storage = storage
        self.client = client
        self.settings = settings or StaticSettings()
        self.notifier = notifier or LogNotifier()
        self.poll_interval = poll_interval
        self.duration_interval = duration_interval

        self.state = SessionState.IDLE
        self.tracker = SegmentTracker()
        self.batches: List[Batch] = []
        self.scratch_dir: Optional[Path] = None
        self.output_path: Optional[Path] = None
        self.started_at: Optional[datetime] = None
        self.result: Optional[RecordingResult] = None

        self._logger = get_session_logger(name)
        self._resolver = MasterResolver(client)
        self._recorder = BatchRecorder(
            storage,
            transport,
            self.settings,
            codec=codec,
            timeout=batch_timeout,
            notify=self._notify,
            logger=self._logger
        )
        self._batch_lock = asyncio.Lock()
        self._discovery_lock = asyncio.Lock()
        self._done = asyncio.Event()
        self._poll_ticker = Ticker('poll')
        self._duration_ticker = Ticker('duration')
        self._start_clock: Optional[float] = None
        self._subscribers: List[Callable[[SessionUpdate], None]] = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[SessionUpdate], None]) -> None:
        """Register a callback for session updates."""
        self._subscribers.append(callback)

    def _emit(self, event: SessionEvent, batch: Optional[Batch] = None, message: str = "") -> None:
        update = SessionUpdate(
            event=event,
            name=self.name,
            total_segments=self.total_segments,
            pending_segments=self.tracker.pending_count,
            batch_count=len(self.batches),
            duration=self.duration,
            batch=batch,
            message=message
        )
        for callback in list(self._subscribers):
            try:
                callback(update)
            except Exception as e:
                self._logger.warning(f"Subscriber failed on {event.value}: {e}")

    def _notify(self, message: str, level: str = "info") -> None:
        try:
            self.notifier.notify(message, level)
        except Exception as e:
            self._logger.warning(f"Notification failed: {e}")

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def total_segments(self) -> int:
        return self.tracker.total_discovered

    @property
    def batch_size(self) -> int:
        return max(1, as_int(self.settings.get('batch_size', DEFAULT_BATCH_SIZE), DEFAULT_BATCH_SIZE))

    @property
    def duration(self) -> str:
        if self._start_clock is None:
            return format_duration(0)
        return format_duration(time.monotonic() - self._start_clock)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, initial_segments: Iterable[Segment], output_path: Path) -> None:
        """
        Begin recording.

        Args:
            initial_segments: Segments already visible in the playlist.
            output_path: Final recording file, written only at finalization.

        Raises:
            SessionStateError: If the session was already started.
            StoragePermissionError: If the storage root is not writable.
        """
        if self.state != SessionState.IDLE:
            raise SessionStateError(f"Cannot start a session in state {self.state.value}")

        await self.storage.verify_permission()

        initial = list(initial_segments)
        variant = await self._resolver.resolve(self.url)
        if variant is not None and variant.url != self.url:
            if initial:
                # Initial segments were listed against the master URL
                self._logger.warning(
                    f"Dropping {len(initial)} initial segments collected before master resolution"
                )
            initial = []
            self._logger.info(f"Resolved master playlist to {variant.url}")
            self.url = variant.url

        self.output_path = Path(output_path)
        self.scratch_dir = await self.storage.get_directory(scratch_dir_name(self.name))
        self._logger.info(f"Component directory: {self.scratch_dir.name}")

        self.state = SessionState.ACTIVE
        self.started_at = datetime.now()
        self._start_clock = time.monotonic()

        self.tracker.ingest_initial(initial)
        self._logger.info(f"Started with {self.total_segments} initial segments")
        self._emit(SessionEvent.STARTED)
        self._emit(SessionEvent.SEGMENTS_CHANGED)

        if self.tracker.pending_count:
            async with self._batch_lock:
                await self._cut_batch(self.batch_size)

        # A stop may have arrived during the first batch
        if self.state == SessionState.ACTIVE:
            self._poll_ticker.on_tick(self.check, self.poll_interval)
            self._duration_ticker.on_tick(self._update_duration, self.duration_interval)

    async def check(self) -> None:
        """Poll the playlist once, ingest new segments and cut a batch if due."""
        if self.state != SessionState.ACTIVE:
            return

        # Manifest responses must be ingested in the order they were requested
        if self._discovery_lock.locked():
            self._logger.debug("Previous playlist check still running, skipping tick")
            return

        async with self._discovery_lock:
            try:
                text = await self.client.fetch_text(self.url)
            except Exception as e:
                self._logger.warning(f"Error during check: {e}")
                return

            if self.state != SessionState.ACTIVE:
                return

            ended = has_end_list(text)
            if not ended:
                try:
                    uris = parse_segment_uris(text)
                except Exception as e:
                    self._logger.warning(f"Could not parse playlist: {e}")
                    return

                added = self.tracker.ingest_poll(uris, self.url)
                if added:
                    self._logger.debug(
                        f"+{added} segments (total: {self.total_segments}, pending: {self.tracker.pending_count})"
                    )
                    self._emit(SessionEvent.SEGMENTS_CHANGED)

        if ended:
            self._logger.info("Stream ended (ENDLIST)")
            await self.stop()
            return

        # A batch in flight re-checks the threshold on a later tick
        if self._batch_lock.locked():
            return

        async with self._batch_lock:
            if self.state != SessionState.ACTIVE:
                return
            size = self.batch_size
            if self.tracker.pending_count >= size:
                await self._cut_batch(size)

    async def _cut_batch(self, count: int) -> Optional[Batch]:
        """Drain up to ``count`` pending segments into a new batch (lock held)."""
        segments = self.tracker.drain(count)
        if not segments:
            return None

        sequence_number = len(self.batches) + 1
        batch = Batch(
            sequence_number=sequence_number,
            segments=segments,
            path=self.scratch_dir / batch_file_name(self.name, sequence_number)
        )
        self.batches.append(batch)
        self._emit(SessionEvent.BATCH_STARTED, batch=batch)

        await self._recorder.record(batch)

        self._emit(SessionEvent.BATCH_FINISHED, batch=batch, message=batch.error or "")
        return batch

    def _update_duration(self) -> None:
        self._emit(SessionEvent.DURATION)

    async def request_stop(self, confirm: Optional[Callable] = None) -> bool:
        """
        User-initiated stop.

        Args:
            confirm: Optional callable (sync or async) asked before stopping;
                a falsy answer keeps the recording running.

        Returns:
            True if the session was stopped.
        """
        if self.state != SessionState.ACTIVE:
            return False

        if confirm is not None:
            answer = confirm()
            if inspect.isawaitable(answer):
                answer = await answer
            if not answer:
                self._logger.info("Stop cancelled")
                return False

        self._logger.info("User requested stop")
        await self.stop()
        return True

    async def stop(self) -> None:
        """Flush remaining segments, concatenate and clean up. Ends in DONE."""
        if self.state != SessionState.ACTIVE:
            return

        self.state = SessionState.STOPPING
        self._logger.info("Stopping...")
        self._emit(SessionEvent.STOPPING, message="Finalizing recording...")

        self._poll_ticker.cancel()
        self._duration_ticker.cancel()
        await self._poll_ticker.wait_idle()

        concat = ConcatResult()
        try:
            async with self._batch_lock:
                remaining = self.tracker.pending_count
                if remaining:
                    self._logger.info(f"Final batch: {remaining} segments")
                    await self._cut_batch(remaining)

            self._emit(SessionEvent.STOPPING, message="Concatenating files...")
            concat = await concatenate_batches(self.storage, self.batches, self.output_path, self._logger)
            if concat.skipped:
                self._notify(
                    f"Note: {concat.skipped} batch(es) were skipped due to errors. "
                    f"{concat.written} batches successfully concatenated.",
                    'warning'
                )

            self._emit(SessionEvent.STOPPING, message="Cleaning up...")
            try:
                await cleanup_batches(self.storage, self.batches, self.scratch_dir, self._logger)
            except Exception as e:
                self._logger.error(f"Cleanup error: {e}")

        except Exception as e:
            # Batch files stay on disk when the output cannot be written
            self._logger.error(f"Finalization error: {e}")

        finally:
            self.result = self._build_result(concat)
            self.state = SessionState.DONE
            self._done.set()

        self._logger.info("Recording complete!")
        self._emit(SessionEvent.DONE)
        result = self.result
        if result.lost_segments:
            self._notify(
                f"Recording complete! {result.saved_segments} of {result.total_segments} segments "
                f"saved to {self.output_path.name}. {result.lost_segments} segments were lost "
                f"in {result.skipped_batches} skipped batch(es).",
                'warning'
            )
        else:
            self._notify(
                f"Recording complete! {result.total_segments} segments saved to {self.output_path.name}",
                'success'
            )

    async def wait_done(self) -> RecordingResult:
        """Wait for the session to reach DONE and return its summary."""
        await self._done.wait()
        return self.result

    def _build_result(self, concat: ConcatResult) -> RecordingResult:
        return RecordingResult(
            name=self.name,
            output_path=self.output_path,
            total_segments=self.total_segments,
            batch_count=len(self.batches),
            failed_batches=sum(1 for b in self.batches if not b.succeeded),
            skipped_batches=concat.skipped,
            lost_segments=concat.lost_segments,
            bytes_written=concat.bytes_written,
            started_at=self.started_at or datetime.now(),
            ended_at=datetime.now()
        )
