"""CLI progress display for push and pull operations.

This module provides a Rich-based progress display that works with the
SyncProgressTracker from the sync engine.
"""

from typing import Optional

from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .sync.progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .utils import format_size

STEP_LABELS = {
    "resolve_head": "Getting latest commit...",
    "create_blobs": "Uploading files...",
    "create_tree": "Creating git tree...",
    "create_commit": "Creating commit...",
    "update_ref": "Updating branch...",
    "download": "Downloading...",
}


class SyncProgressDisplay:
    """Rich-based progress display for push and pull operations.

    The display shows the current step, the number of processed files and
    the amount of data transferred.
    """

    def __init__(self) -> None:
        """Initialize the progress display."""
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_tracker(self) -> SyncProgressTracker:
        """Create a SyncProgressTracker that updates this display.

        Returns:
            A configured SyncProgressTracker
        """
        return SyncProgressTracker(callback=self._handle_event)

    @staticmethod
    def _format_details(info: SyncProgressInfo) -> str:
        details = format_size(info.bytes_done)
        if info.files_failed:
            details += f", {info.files_failed} failed"
        if info.files_skipped:
            details += f", {info.files_skipped} skipped"
        return details

    def _handle_event(self, info: SyncProgressInfo) -> None:
        """Handle a progress event from the tracker.

        Args:
            info: Progress information
        """
        if self._progress is None or self._task is None:
            return

        if info.event == SyncProgressEvent.STARTED:
            self._progress.update(
                self._task,
                total=info.files_total or None,
                completed=0,
                details=self._format_details(info),
            )
        elif info.event == SyncProgressEvent.STEP:
            self._progress.update(
                self._task, description=STEP_LABELS.get(info.step, info.step)
            )
        elif info.event == SyncProgressEvent.FINISHED:
            self._progress.update(
                self._task,
                description=f"{info.operation.capitalize()} complete",
                completed=info.files_processed,
            )
        else:
            self._progress.update(
                self._task,
                completed=info.files_processed,
                details=self._format_details(info),
            )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[details]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task("Preparing...", total=None, details="")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def run_with_progress(operation, show_progress: bool, **kwargs) -> dict:
    """Run an engine operation with a Rich progress display.

    Args:
        operation: Bound engine method accepting a ``tracker`` keyword
        show_progress: If False, run without a progress bar
        **kwargs: Arguments passed to the operation

    Returns:
        The operation's statistics dictionary
    """
    if not show_progress or kwargs.get("dry_run"):
        return operation(**kwargs)

    with SyncProgressDisplay() as display:
        tracker = display.create_tracker()
        return operation(tracker=tracker, **kwargs)
