"""Selective pull: download chosen remote paths into the project tree."""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from ..api import GitHubClient
from ..exceptions import GhSyncError
from ..utils import DEFAULT_MAX_WORKERS
from .layout import ProjectLayout
from .progress import SyncProgressTracker

logger = logging.getLogger(__name__)


@dataclass
class PullReport:
    """Outcome of a pull."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    """Path -> error message"""

    cancelled: list[str] = field(default_factory=list)
    """Paths never started because the pull was cancelled"""

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    @property
    def complete(self) -> bool:
        """True if every selected path was written."""
        return not self.failed and not self.cancelled


class PullEngine:
    """Downloads selected remote files, one independent task per file."""

    def __init__(self, client: GitHubClient, layout: ProjectLayout):
        """Initialize pull engine.

        Args:
            client: GitHub API client
            layout: Project layout used to resolve local destinations
        """
        self.client = client
        self.layout = layout

    def pull(
        self,
        selected: Iterable[str],
        ref: str,
        tracker: Optional[SyncProgressTracker] = None,
        cancel_event: Optional[threading.Event] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        refresh: Optional[Callable[[list[str]], None]] = None,
    ) -> PullReport:
        """Download each selected path from ``ref``.

        One failed file never aborts the other downloads. Cancellation is
        checked before each download starts.

        Args:
            selected: Repository paths to download
            ref: Branch, tag or commit sha
            tracker: Optional progress tracker
            cancel_event: Set to stop starting new downloads
            max_workers: Number of parallel downloads
            refresh: Called once after all downloads with the written paths

        Returns:
            PullReport with per-path outcomes
        """
        paths = list(dict.fromkeys(selected))
        tracker = tracker or SyncProgressTracker()
        report = PullReport()
        lock = threading.Lock()

        tracker.start("pull", len(paths))
        tracker.step("download")

        def download(path: str) -> None:
            if cancel_event is not None and cancel_event.is_set():
                with lock:
                    report.cancelled.append(path)
                tracker.file_skipped(path)
                return

            start = time.time()
            try:
                destination = self.layout.to_local_path(path)
                self.client.download_raw_file(ref, path, destination)
                size = destination.stat().st_size
            except (GhSyncError, OSError, ValueError) as e:
                logger.warning(f"Failed to pull {path}: {e}")
                with lock:
                    report.failed[path] = str(e)
                tracker.file_failed(path)
                return

            with lock:
                report.succeeded.append(path)
            tracker.file_complete(path, size)
            logger.debug(f"Pulled {path} in {time.time() - start:.2f}s")

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = [executor.submit(download, path) for path in paths]
            for future in as_completed(futures):
                future.result()

        logger.info(
            f"Pull finished: {report.success_count} succeeded, "
            f"{report.failure_count} failed, {len(report.cancelled)} cancelled"
        )

        if refresh is not None:
            refresh(list(report.succeeded))

        tracker.finish()
        return report
