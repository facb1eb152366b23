"""State management for tracked files.

This module keeps the digest map (last pushed or pulled content digest per
repository path) and the user's exclusion list. The state is an explicit
object handed to the scanner and engines instead of module-level sets, so
repeated runs are deterministic.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from ..exceptions import SyncStateError
from ..utils import read_json, write_json_atomic
from .history import HistoryLedger

logger = logging.getLogger(__name__)

DIGESTS_FILE = "digests.json"
EXCLUDED_FILE = "excluded.json"
PUSH_HISTORY_FILE = "push_history.json"
PULL_HISTORY_FILE = "pull_history.json"


@dataclass
class TrackingState:
    """Digest map and exclusion list of one project/repository pair."""

    digests: dict[str, str] = field(default_factory=dict)
    """Repository path -> last synced content digest"""

    excluded: set[str] = field(default_factory=set)
    """Repository paths the user removed from tracking"""

    def is_excluded(self, repo_path: str) -> bool:
        return repo_path in self.excluded

    def digest_for(self, repo_path: str) -> Optional[str]:
        return self.digests.get(repo_path)

    def mark_synced(self, digests: dict[str, str]) -> None:
        """Record the digests of files that now match the remote."""
        self.digests.update(digests)

    def exclude(self, paths: Iterable[str]) -> None:
        """Stop tracking paths; their digests are forgotten."""
        for path in paths:
            self.excluded.add(path)
            self.digests.pop(path, None)

    def include(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.excluded.discard(path)


class SyncStateManager:
    """Persists tracking state and history ledgers.

    State is stored below the user's config directory, in one folder per
    project/repository pair keyed by a hash of the project root and the
    ``owner/repo`` name.
    """

    def __init__(
        self,
        project_root: Path,
        repository: str,
        state_dir: Optional[Path] = None,
    ):
        """Initialize state manager.

        Args:
            project_root: Local project root
            repository: Repository in ``owner/repo`` form
            state_dir: Base directory for state. Defaults to
                      ~/.config/pyghsync/sync_state/
        """
        if state_dir is None:
            state_dir = Path.home() / ".config" / "pyghsync" / "sync_state"
        self.project_root = project_root
        self.repository = repository
        self.state_dir = state_dir / self._get_state_key(project_root, repository)

    @staticmethod
    def _get_state_key(project_root: Path, repository: str) -> str:
        """Generate a unique key for a project/repository pair."""
        # Use absolute path for consistency
        combined = f"{Path(project_root).resolve()}:{repository}"
        return hashlib.sha256(combined.encode()).hexdigest()[:16]

    @property
    def digests_path(self) -> Path:
        return self.state_dir / DIGESTS_FILE

    @property
    def excluded_path(self) -> Path:
        return self.state_dir / EXCLUDED_FILE

    def push_ledger(self) -> HistoryLedger:
        return HistoryLedger(self.state_dir / PUSH_HISTORY_FILE)

    def pull_ledger(self) -> HistoryLedger:
        return HistoryLedger(self.state_dir / PULL_HISTORY_FILE)

    def load_state(self) -> TrackingState:
        """Load tracking state; missing files yield an empty state.

        Raises:
            SyncStateError: If a state file is corrupt
        """
        digests = read_json(self.digests_path) or {}
        excluded = read_json(self.excluded_path) or []

        if not isinstance(digests, dict) or not isinstance(excluded, list):
            raise SyncStateError(f"Unexpected state layout in {self.state_dir}")

        state = TrackingState(
            digests={str(k): str(v) for k, v in digests.items()},
            excluded={str(p) for p in excluded},
        )
        logger.debug(
            f"Loaded state with {len(state.digests)} digests and "
            f"{len(state.excluded)} excluded paths from {self.state_dir}"
        )
        return state

    def save_state(self, state: TrackingState) -> None:
        """Persist tracking state.

        Raises:
            SyncStateError: If the state cannot be written
        """
        try:
            write_json_atomic(self.digests_path, dict(sorted(state.digests.items())))
            write_json_atomic(self.excluded_path, sorted(state.excluded))
        except OSError as e:
            raise SyncStateError(f"Failed to save sync state: {e}") from e
        logger.debug(f"Saved state with {len(state.digests)} digests")

    def clear_state(self) -> bool:
        """Remove the digest map and exclusion list.

        Returns:
            True if state was cleared, False if no state existed
        """
        cleared = False
        for path in (self.digests_path, self.excluded_path):
            if path.exists():
                path.unlink()
                cleared = True
        if cleared:
            logger.debug(f"Cleared sync state at {self.state_dir}")
        return cleared
