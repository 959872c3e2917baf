"""Tests for BatchRecorder."""
import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import MEDIA_URL, FakeTransport, payload, segment_names

from liverecorder.batch import Batch, BatchRecorder, BatchStatus
from liverecorder.config import StaticSettings
from liverecorder.tracker import Segment


def make_batch(scratch, number=1, count=3):
    segments = [Segment.from_uri(name, MEDIA_URL) for name in segment_names(0, count)]
    return Batch(sequence_number=number, segments=segments, path=scratch / f"show_{number:03d}.ts")


@pytest.fixture
async def scratch(storage):
    return await storage.get_directory("show_components")


async def test_successful_batch_writes_segments_in_order(storage, scratch):
    transport = FakeTransport()
    recorder = BatchRecorder(storage, transport, StaticSettings())
    batch = make_batch(scratch)

    await recorder.record(batch)

    assert batch.status == BatchStatus.SUCCEEDED
    expected = b"".join(payload(s.resolved_url) for s in batch.segments)
    assert batch.path.read_bytes() == expected


async def test_transport_error_marks_batch_failed_and_notifies(storage, scratch):
    notify = MagicMock()
    recorder = BatchRecorder(storage, FakeTransport(fail_batches={1}), StaticSettings(), notify=notify)
    batch = make_batch(scratch)

    await recorder.record(batch)

    assert batch.status == BatchStatus.FAILED_EMPTY
    assert "unavailable" in batch.error
    message, level = notify.call_args[0]
    assert message.startswith("Batch 1 failed")
    assert level == "warning"
    assert batch.path.exists()


async def test_timeout_wins_race_against_stalled_transport(storage, scratch):
    transport = FakeTransport(hang_batches={1})
    recorder = BatchRecorder(storage, transport, StaticSettings(), timeout=0.05)
    batch = make_batch(scratch)

    await asyncio.wait_for(recorder.record(batch), timeout=5)

    assert batch.status == BatchStatus.FAILED_EMPTY
    assert "timeout" in batch.error.lower()

    # Let the abandoned fetch finish against the closed sink
    transport.release.set()
    await asyncio.sleep(0.05)
    assert batch.status == BatchStatus.FAILED_EMPTY


async def test_settings_are_read_for_every_batch(storage, scratch):
    settings = StaticSettings({'live_threads': 1, 'thread_timeout': 10, 'segment_retries': 2})
    transport = FakeTransport()
    recorder = BatchRecorder(storage, transport, settings, codec="aac")

    await recorder.record(make_batch(scratch, number=1))
    settings.set('live_threads', 4)
    settings.set('segment_retries', 5)
    await recorder.record(make_batch(scratch, number=2))

    assert [call['threads'] for call in transport.calls] == [1, 4]
    assert [call['retries'] for call in transport.calls] == [2, 5]
    assert transport.calls[0]['thread_timeout'] == 10.0
    assert transport.calls[0]['codec'] == "aac"


async def test_sink_closed_by_transport_is_tolerated(storage, scratch):
    class ClosingTransport(FakeTransport):
        async def fetch(self, segments, sink, **kwargs):
            await super().fetch(segments, sink, **kwargs)
            await sink.close()

    recorder = BatchRecorder(storage, ClosingTransport(), StaticSettings())
    batch = make_batch(scratch)

    await recorder.record(batch)

    assert batch.status == BatchStatus.SUCCEEDED
