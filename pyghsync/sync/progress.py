"""Progress tracking for push and pull operations.

The engines write progress from worker threads; a UI polls or receives
immutable snapshots. All writes go through one lock, so a reader never
observes a half-updated state, and callbacks see snapshots in update order.
"""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional


class SyncProgressEvent(str, Enum):
    """Kinds of progress updates."""

    STARTED = "started"
    STEP = "step"
    FILE_COMPLETE = "file_complete"
    FILE_FAILED = "file_failed"
    FILE_SKIPPED = "file_skipped"
    FINISHED = "finished"


@dataclass(frozen=True)
class SyncProgressInfo:
    """Immutable progress snapshot."""

    event: SyncProgressEvent
    operation: str = ""
    """Operation name, push or pull"""

    step: str = ""
    """Current step label"""

    files_total: int = 0
    files_done: int = 0
    files_failed: int = 0
    files_skipped: int = 0
    bytes_done: int = 0
    current_path: str = ""

    @property
    def files_processed(self) -> int:
        return self.files_done + self.files_failed + self.files_skipped

    @property
    def fraction(self) -> float:
        """Completed share of files in [0, 1]."""
        if self.files_total <= 0:
            return 0.0
        return min(1.0, self.files_processed / self.files_total)


class SyncProgressTracker:
    """Thread-safe progress state with snapshot reads."""

    def __init__(self, callback: Optional[Callable[[SyncProgressInfo], None]] = None):
        """Initialize the tracker.

        Args:
            callback: Called with a snapshot after every update, while the
                tracker lock is held
        """
        self._callback = callback
        self._lock = threading.RLock()
        self._info = SyncProgressInfo(event=SyncProgressEvent.STARTED)

    def snapshot(self) -> SyncProgressInfo:
        with self._lock:
            return self._info

    def _update(self, **changes) -> None:
        with self._lock:
            self._info = replace(self._info, **changes)
            if self._callback is not None:
                self._callback(self._info)

    def start(self, operation: str, files_total: int) -> None:
        self._update(
            event=SyncProgressEvent.STARTED,
            operation=operation,
            step="",
            files_total=files_total,
            files_done=0,
            files_failed=0,
            files_skipped=0,
            bytes_done=0,
            current_path="",
        )

    def step(self, step: str) -> None:
        self._update(event=SyncProgressEvent.STEP, step=step)

    def _increment(
        self, event: SyncProgressEvent, counter: str, path: str, size: int = 0
    ) -> None:
        with self._lock:
            self._info = replace(
                self._info,
                event=event,
                current_path=path,
                bytes_done=self._info.bytes_done + size,
                **{counter: getattr(self._info, counter) + 1},
            )
            if self._callback is not None:
                self._callback(self._info)

    def file_complete(self, path: str, size: int = 0) -> None:
        self._increment(SyncProgressEvent.FILE_COMPLETE, "files_done", path, size)

    def file_failed(self, path: str) -> None:
        self._increment(SyncProgressEvent.FILE_FAILED, "files_failed", path)

    def file_skipped(self, path: str) -> None:
        self._increment(SyncProgressEvent.FILE_SKIPPED, "files_skipped", path)

    def finish(self) -> None:
        self._update(event=SyncProgressEvent.FINISHED, current_path="")
