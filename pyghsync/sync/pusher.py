"""Push through the git-data API: blobs, tree, commit, ref update."""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from ..api import GitHubClient
from ..exceptions import GhSyncError, NothingToPushError, PushStepError
from ..models import CommitDescriptor, TreeEntry
from ..utils import (
    DEFAULT_MAX_WORKERS,
    FILE_MODE_EXECUTABLE,
    FILE_MODE_REGULAR,
    compute_bytes_digest,
)
from .layout import ProjectLayout
from .progress import SyncProgressTracker

logger = logging.getLogger(__name__)

STEP_RESOLVE_HEAD = "resolve_head"
STEP_CREATE_BLOBS = "create_blobs"
STEP_CREATE_TREE = "create_tree"
STEP_CREATE_COMMIT = "create_commit"
STEP_UPDATE_REF = "update_ref"


@dataclass
class PushResult:
    """Outcome of a successful push."""

    commit: CommitDescriptor
    pushed: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)
    """Path -> reason for files left out of the commit"""

    digests: dict[str, str] = field(default_factory=dict)
    """Content digests of the bytes that were uploaded"""

    @property
    def commit_sha(self) -> Optional[str]:
        return self.commit.commit_sha


@dataclass
class _PushItem:
    path: str
    content: bytes
    mode: str


def file_mode(path: Path) -> str:
    """Git file mode for a local file."""
    return FILE_MODE_EXECUTABLE if os.access(path, os.X_OK) else FILE_MODE_REGULAR


class PushEngine:
    """Publishes local files as one commit on a branch.

    The five steps run strictly in order because each consumes the previous
    step's output. Only blob creation runs in parallel. The branch ref is
    touched by the last step alone, so a failure anywhere earlier leaves the
    branch unchanged; blobs or trees created before the failure are left as
    unreferenced objects on the remote.
    """

    def __init__(self, client: GitHubClient, layout: ProjectLayout):
        """Initialize push engine.

        Args:
            client: GitHub API client
            layout: Project layout used to find local files
        """
        self.client = client
        self.layout = layout

    def _read_push_set(
        self, paths: list[str], tracker: SyncProgressTracker
    ) -> tuple[list[_PushItem], dict[str, str]]:
        """Read local bytes for every path, skipping missing or unreadable files."""
        items: list[_PushItem] = []
        skipped: dict[str, str] = {}
        seen: set[str] = set()

        for path in paths:
            try:
                local_path = self.layout.to_local_path(path)
            except ValueError as e:
                skipped[path] = str(e)
                tracker.file_skipped(path)
                continue

            # Push under the path the scanner tracks the file by
            path = self.layout.to_repo_path(local_path)
            if path in seen:
                tracker.file_skipped(path)
                continue
            seen.add(path)

            if not local_path.is_file():
                logger.warning(f"Skipped missing file: {path}")
                skipped[path] = "missing locally"
                tracker.file_skipped(path)
                continue

            try:
                content = local_path.read_bytes()
            except OSError as e:
                logger.warning(f"Skipped unreadable file {path}: {e}")
                skipped[path] = str(e)
                tracker.file_skipped(path)
                continue

            items.append(_PushItem(path=path, content=content, mode=file_mode(local_path)))

        return items, skipped

    def _create_blobs(
        self,
        items: list[_PushItem],
        tracker: SyncProgressTracker,
        max_workers: int,
    ) -> dict[str, str]:
        """Create one blob per item in parallel.

        Returns:
            Path -> blob sha

        Raises:
            PushStepError: If any blob cannot be created
        """
        blob_shas: dict[str, str] = {}

        def create(item: _PushItem) -> tuple[str, str]:
            return item.path, self.client.create_blob(item.content)

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = {executor.submit(create, item): item for item in items}
            for future in as_completed(futures):
                item = futures[future]
                try:
                    path, sha = future.result()
                except GhSyncError as e:
                    tracker.file_failed(item.path)
                    for pending in futures:
                        pending.cancel()
                    raise PushStepError(
                        STEP_CREATE_BLOBS, f"{item.path}: {e}"
                    ) from e
                blob_shas[path] = sha
                tracker.file_complete(path, len(item.content))

        return blob_shas

    def push(
        self,
        files: Iterable[str],
        message: str,
        branch: str,
        tracker: Optional[SyncProgressTracker] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> PushResult:
        """Push local files to ``branch`` as a single commit.

        Args:
            files: Repository paths to push
            message: Commit message
            branch: Target branch
            tracker: Optional progress tracker
            max_workers: Parallel blob uploads

        Returns:
            PushResult with the commit chain and per-path outcome

        Raises:
            NothingToPushError: If no file could be read
            PushStepError: If a step of the chain fails
        """
        paths = list(dict.fromkeys(files))
        tracker = tracker or SyncProgressTracker()
        tracker.start("push", len(paths))

        tracker.step(STEP_RESOLVE_HEAD)
        try:
            parent_sha, base_tree_sha = self.client.get_branch_head(branch)
        except GhSyncError as e:
            raise PushStepError(STEP_RESOLVE_HEAD, str(e)) from e
        commit = CommitDescriptor(parent_sha=parent_sha, base_tree_sha=base_tree_sha)
        logger.debug(f"Branch {branch} at {parent_sha} (tree {base_tree_sha})")

        items, skipped = self._read_push_set(paths, tracker)
        if not items:
            raise NothingToPushError("No readable files to push")

        tracker.step(STEP_CREATE_BLOBS)
        blob_shas = self._create_blobs(items, tracker, max_workers)
        commit.entries = [
            TreeEntry(path=item.path, mode=item.mode, sha=blob_shas[item.path])
            for item in sorted(items, key=lambda i: i.path)
        ]

        tracker.step(STEP_CREATE_TREE)
        try:
            commit.tree_sha = self.client.create_tree(
                base_tree_sha, [entry.to_dict() for entry in commit.entries]
            )
        except GhSyncError as e:
            raise PushStepError(STEP_CREATE_TREE, str(e)) from e

        tracker.step(STEP_CREATE_COMMIT)
        try:
            commit.commit_sha = self.client.create_commit(
                message, commit.tree_sha, [parent_sha]
            )
        except GhSyncError as e:
            raise PushStepError(STEP_CREATE_COMMIT, str(e)) from e

        tracker.step(STEP_UPDATE_REF)
        try:
            self.client.update_ref(branch, commit.commit_sha, force=True)
        except GhSyncError as e:
            raise PushStepError(STEP_UPDATE_REF, str(e)) from e

        tracker.finish()
        logger.info(
            f"Pushed {len(items)} file(s) to {branch} as {commit.commit_sha}"
        )
        return PushResult(
            commit=commit,
            pushed=[item.path for item in items],
            skipped=skipped,
            digests={item.path: compute_bytes_digest(item.content) for item in items},
        )
