"""Core sync engine that orchestrates scans, pushes and pulls."""

import logging
import threading
from typing import Iterable, Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..api import GitHubClient
from ..config import DEFAULT_BRANCH
from ..exceptions import GitHubAPIError
from ..output import OutputFormatter
from ..utils import DEFAULT_MAX_WORKERS, compute_digest, normalize_repo_path
from .history import HistoryEntry
from .layout import ProjectLayout
from .progress import SyncProgressTracker
from .puller import PullEngine, PullReport
from .pusher import PushEngine, PushResult
from .remote import RemoteListing, RemoteTreeLister
from .scanner import DirectoryScanner, ScanResult
from .state import SyncStateManager, TrackingState
from .version import fetch_remote_version, write_version_file

logger = logging.getLogger(__name__)


class SyncEngine:
    """Core sync engine that connects the detector, the engines and the ledgers.

    The engine is the single owner of the tracking state: detectors and
    engines only read it, and the engine commits digest updates after an
    operation succeeded.
    """

    def __init__(
        self,
        client: GitHubClient,
        layout: ProjectLayout,
        state_manager: SyncStateManager,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            client: GitHub API client
            layout: Local project layout
            state_manager: Persistence for digests, exclusions and history
            output: Output formatter for displaying progress/status
        """
        self.client = client
        self.layout = layout
        self.state_manager = state_manager
        self.output = output or OutputFormatter()
        self.scanner = DirectoryScanner(layout)
        self.lister = RemoteTreeLister(client)
        self.pusher = PushEngine(client, layout)
        self.puller = PullEngine(client, layout)

    # =========================
    # Scan
    # =========================

    def scan(self, state: Optional[TrackingState] = None) -> ScanResult:
        """Detect untracked and modified files under the project roots."""
        if state is None:
            state = self.state_manager.load_state()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task("Scanning project files...", total=None)
            result = self.scanner.scan(state=state)
            progress.update(
                task, description=f"Found {len(result.changed)} changed file(s)"
            )

        for path in result.unreadable:
            self.output.warning(f"Could not read {path}")
        return result

    # =========================
    # Push
    # =========================

    def _with_sidecars(self, paths: Iterable[str], state: TrackingState) -> list[str]:
        """Add the existing sidecar of every asset path."""
        result: list[str] = []
        for path in paths:
            try:
                path = self.layout.canonical_repo_path(path)
            except ValueError:
                # Invalid paths are reported by the push engine
                result.append(normalize_repo_path(path))
                continue
            result.append(path)
            if not self.layout.is_asset(path) or path.endswith(".meta"):
                continue
            sidecar = self.layout.sidecar_for(path)
            if state.is_excluded(sidecar):
                continue
            if self.layout.to_local_path(sidecar).is_file():
                result.append(sidecar)
        return list(dict.fromkeys(result))

    def push(
        self,
        files: Optional[Iterable[str]] = None,
        message: Optional[str] = None,
        version: Optional[str] = None,
        notes: str = "",
        branch: str = DEFAULT_BRANCH,
        dry_run: bool = False,
        max_workers: int = DEFAULT_MAX_WORKERS,
        tracker: Optional[SyncProgressTracker] = None,
    ) -> dict:
        """Push changed (or the given) files as one commit.

        Args:
            files: Repository paths to push; scanned changes when None
            message: Commit message (derived from version and notes if None)
            version: Version label; also written to the version file
            notes: Release notes for the history entry
            branch: Target branch
            dry_run: Only show what would be pushed
            max_workers: Parallel blob uploads
            tracker: Optional progress tracker

        Returns:
            Dictionary with push statistics

        Raises:
            PushStepError: If a step of the push chain fails
            NothingToPushError: If none of the files could be read
        """
        state = self.state_manager.load_state()

        if files is None:
            candidates = self.scan(state).changed
        else:
            candidates = self._with_sidecars(files, state)

        if version and not dry_run:
            version_path = write_version_file(self.layout, version, notes)
            candidates = self._with_sidecars([version_path], state) + candidates
            candidates = list(dict.fromkeys(candidates))

        stats = {"pushed": 0, "skipped": 0, "commit": None, "files": candidates}

        if not candidates:
            self.output.info("No changes to push - everything is up to date!")
            return stats

        if not self.output.quiet:
            self.output.info(f"Pushing {len(candidates)} file(s) to {branch}")
            for path in candidates:
                self.output.print(f"  {path}")

        if dry_run:
            self.output.success("Dry run complete!")
            return stats

        if message is None:
            message = self._default_message(version, notes)

        result: PushResult = self.pusher.push(
            candidates,
            message=message,
            branch=branch,
            tracker=tracker,
            max_workers=max_workers,
        )

        for path, reason in result.skipped.items():
            self.output.warning(f"Skipped {path}: {reason}")

        state.mark_synced(result.digests)
        self.state_manager.save_state(state)
        self.state_manager.push_ledger().append(
            HistoryEntry.now(version or (result.commit_sha or "")[:7], notes)
        )

        stats.update(
            pushed=len(result.pushed),
            skipped=len(result.skipped),
            commit=result.commit_sha,
        )
        self.output.success(f"Pushed {len(result.pushed)} file(s) as {result.commit_sha}")
        return stats

    @staticmethod
    def _default_message(version: Optional[str], notes: str) -> str:
        if version:
            return f"Updating files to version {version} {notes}".strip()
        return notes.strip() or "Update files"

    # =========================
    # Pull
    # =========================

    def preview_pull(self, ref: str = DEFAULT_BRANCH) -> RemoteListing:
        """List every remote file at ``ref`` for selection."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            disable=self.output.quiet or self.output.json_output,
        ) as progress:
            task = progress.add_task("Listing remote files...", total=None)
            listing = self.lister.list_recursive(ref)
            progress.update(
                task, description=f"Found {len(listing.files)} remote file(s)"
            )

        if listing.partial:
            for path, error in listing.failed_paths.items():
                self.output.warning(f"Could not list '{path or '/'}': {error}")
            self.output.warning("Remote listing is incomplete")
        return listing

    def pull(
        self,
        selected: Optional[Iterable[str]] = None,
        ref: str = DEFAULT_BRANCH,
        version: Optional[str] = None,
        notes: Optional[str] = None,
        dry_run: bool = False,
        max_workers: int = DEFAULT_MAX_WORKERS,
        cancel_event: Optional[threading.Event] = None,
        tracker: Optional[SyncProgressTracker] = None,
    ) -> dict:
        """Download selected remote paths (every remote file when None).

        Args:
            selected: Repository paths to download
            ref: Branch, tag or commit sha
            version: Version label for the history entry (read from the
                remote version file when None)
            notes: Notes for the history entry
            dry_run: Only show what would be downloaded
            max_workers: Parallel downloads
            cancel_event: Set to stop starting new downloads
            tracker: Optional progress tracker

        Returns:
            Dictionary with pull statistics
        """
        if selected is None:
            listing = self.preview_pull(ref)
            paths = listing.paths
        else:
            paths = [normalize_repo_path(p) for p in selected]

        stats = {"downloads": 0, "failed": 0, "cancelled": 0, "files": paths}

        if not paths:
            self.output.info("Nothing to pull")
            return stats

        if not self.output.quiet:
            self.output.info(f"Pulling {len(paths)} file(s) from {ref}")

        if dry_run:
            for path in paths:
                try:
                    self.output.print(f"  {path} -> {self.layout.to_local_path(path)}")
                except ValueError as e:
                    self.output.warning(str(e))
            self.output.success("Dry run complete!")
            return stats

        state = self.state_manager.load_state()

        if version is None:
            version = self._remote_version_label(ref)

        def refresh(written: list[str]) -> None:
            digests = {}
            for path in written:
                local_path = self.layout.to_local_path(path)
                try:
                    digests[self.layout.to_repo_path(local_path)] = compute_digest(
                        local_path
                    )
                except OSError as e:
                    logger.warning(f"Could not refresh digest of {path}: {e}")
            state.mark_synced(digests)
            self.state_manager.save_state(state)

        report: PullReport = self.puller.pull(
            paths,
            ref,
            tracker=tracker,
            cancel_event=cancel_event,
            max_workers=max_workers,
            refresh=refresh,
        )

        for path, error in sorted(report.failed.items()):
            self.output.error(f"Failed to pull {path}: {error}")

        if report.succeeded and report.complete:
            self.state_manager.pull_ledger().append(
                HistoryEntry.now(version, notes or f"Pulled from {ref}")
            )

        stats.update(
            downloads=report.success_count,
            failed=report.failure_count,
            cancelled=len(report.cancelled),
        )
        self._display_pull_summary(stats)
        return stats

    def _remote_version_label(self, ref: str) -> str:
        """Version label for the pull history, read before any download.

        Falls back to ``ref`` when the remote has no version file or it
        cannot be fetched.
        """
        try:
            return fetch_remote_version(self.client, ref, self.layout) or ref
        except GitHubAPIError as e:
            self.output.warning(f"Could not read the remote version at {ref}: {e}")
            return ref

    def _display_pull_summary(self, stats: dict) -> None:
        if stats["failed"] or stats["cancelled"]:
            self.output.warning(
                f"Pulled {stats['downloads']} file(s), {stats['failed']} failed, "
                f"{stats['cancelled']} cancelled"
            )
        else:
            self.output.success(f"Pulled {stats['downloads']} file(s)")

    # =========================
    # Tracking and history
    # =========================

    def exclude(self, paths: Iterable[str]) -> list[str]:
        """Stop tracking paths; returns the normalized paths."""
        normalized = [normalize_repo_path(p) for p in paths]
        state = self.state_manager.load_state()
        state.exclude(normalized)
        self.state_manager.save_state(state)
        return normalized

    def include(self, paths: Iterable[str]) -> list[str]:
        """Resume tracking previously excluded paths."""
        normalized = [normalize_repo_path(p) for p in paths]
        state = self.state_manager.load_state()
        state.include(normalized)
        self.state_manager.save_state(state)
        return normalized

    def history(self, kind: str = "push") -> list[HistoryEntry]:
        """Load the push or pull ledger, oldest first."""
        if kind == "pull":
            return self.state_manager.pull_ledger().load_all()
        return self.state_manager.push_ledger().load_all()
