"""
Session events and user notifications.
The recording core only emits these; presentation subscribes to them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .logger import get_logger


class SessionEvent(Enum):
    """Events emitted by a recording session."""
    STARTED = "started"
    SEGMENTS_CHANGED = "segments_changed"
    BATCH_STARTED = "batch_started"
    BATCH_FINISHED = "batch_finished"
    DURATION = "duration"
    STOPPING = "stopping"
    DONE = "done"


@dataclass
class SessionUpdate:
    """Snapshot delivered to session subscribers."""
    event: SessionEvent
    name: str
    total_segments: int = 0
    pending_segments: int = 0
    batch_count: int = 0
    duration: str = "0:00:00"
    batch: Optional[Any] = None
    message: str = ""


class Notifier:
    """Fire-and-forget channel for telling the user something."""

    def notify(self, message: str, level: str = "info") -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Notifier that writes user messages to the log."""

    LEVELS = {
        'info': 'info',
        'success': 'info',
        'warning': 'warning',
        'error': 'error',
    }

    def __init__(self):
        self._logger = get_logger('notify')

    def notify(self, message: str, level: str = "info") -> None:
        method = getattr(self._logger, self.LEVELS.get(level, 'info'))
        method(message)
