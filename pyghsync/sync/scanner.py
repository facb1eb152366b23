"""Directory scanning and change detection."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from ..utils import compute_digest
from .layout import SIDECAR_SUFFIX, ProjectLayout
from .state import TrackingState

logger = logging.getLogger(__name__)

# IDE project files, editor temp files and the regenerated package lock
DENYLIST_SUFFIXES = (".csproj", ".sln", ".userprefs", ".tmp", ".suo")
DENYLIST_NAMES = frozenset({"packages-lock.json", ".DS_Store"})
DENYLIST_DIRS = frozenset({".git", ".vs", ".idea", "Library", "Temp", "obj"})


@dataclass
class LocalFile:
    """Represents a local file with its content digest."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Repository path (using forward slashes for cross-platform compatibility)"""

    digest: str
    """Content digest"""

    size: int
    """File size in bytes"""


@dataclass
class ScanResult:
    """Classification of the scanned files against the digest map."""

    untracked: list[str] = field(default_factory=list)
    """Paths with no recorded digest"""

    modified: list[str] = field(default_factory=list)
    """Paths whose digest differs from the recorded one"""

    sidecars: list[str] = field(default_factory=list)
    """Sidecar metadata paths paired with changed assets"""

    unreadable: list[str] = field(default_factory=list)
    """Paths that could not be read and were skipped"""

    files: dict[str, LocalFile] = field(default_factory=dict)
    """All scanned (non-denylisted) files by repository path"""

    @property
    def changed(self) -> list[str]:
        """Untracked and modified paths followed by their sidecars."""
        return [*self.untracked, *self.modified, *self.sidecars]


class DirectoryScanner:
    """Scans project directories and classifies files by content digest.

    The scanner only reads the tracking state; committing new digests after
    a push or pull is the caller's job.

    Examples:
        >>> scanner = DirectoryScanner(ProjectLayout(Path("/game")))
        >>> result = scanner.scan(state=TrackingState())
        >>> result.untracked
        ['Assets/Scripts/Player.cs', ...]
    """

    def __init__(
        self,
        layout: ProjectLayout,
        ignore_suffixes: Iterable[str] = DENYLIST_SUFFIXES,
        ignore_names: Iterable[str] = DENYLIST_NAMES,
        ignore_dirs: Iterable[str] = DENYLIST_DIRS,
    ):
        """Initialize directory scanner.

        Args:
            layout: Project layout used to derive repository paths
            ignore_suffixes: File suffixes that are never tracked
            ignore_names: File names that are never tracked
            ignore_dirs: Directory names that are never descended into
        """
        self.layout = layout
        self.ignore_suffixes = tuple(s.lower() for s in ignore_suffixes)
        self.ignore_names = frozenset(ignore_names)
        self.ignore_dirs = frozenset(ignore_dirs)

    def should_ignore(self, path: Path, is_dir: bool = False) -> bool:
        """Check if a path is on the fixed denylist.

        Args:
            path: Path to check
            is_dir: Whether the path is a directory

        Returns:
            True if path should be ignored
        """
        if is_dir:
            return path.name in self.ignore_dirs
        if path.name in self.ignore_names:
            return True
        return path.name.lower().endswith(self.ignore_suffixes)

    def iter_files(self, directory: Path) -> list[Path]:
        """Recursively list candidate files below a directory.

        Sidecar files are left out; they travel with their primary file.
        """
        files: list[Path] = []

        try:
            for item in sorted(directory.iterdir()):
                is_dir = item.is_dir()
                if self.should_ignore(item, is_dir=is_dir):
                    continue
                if is_dir:
                    files.extend(self.iter_files(item))
                elif item.is_file() and not item.name.endswith(SIDECAR_SUFFIX):
                    files.append(item)
        except PermissionError as e:
            logger.warning(f"Skipping unreadable directory {directory}: {e}")

        return files

    def scan(
        self,
        roots: Optional[Iterable[Path]] = None,
        excluded: Optional[Iterable[str]] = None,
        state: Optional[TrackingState] = None,
    ) -> ScanResult:
        """Scan roots and classify files as untracked or modified.

        Args:
            roots: Directories to scan (defaults to the layout's roots)
            excluded: Repository paths to skip, in addition to the state's
                exclusion list
            state: Tracking state holding the digest map

        Returns:
            ScanResult with untracked, modified and sidecar paths
        """
        if roots is None:
            roots = self.layout.default_roots()
        if state is None:
            state = TrackingState()
        skip = set(excluded or ()) | state.excluded

        result = ScanResult()
        seen_sidecars: set[str] = set()

        for root in roots:
            for file_path in self.iter_files(Path(root)):
                relative_path = self.layout.to_repo_path(file_path)
                if relative_path in skip:
                    continue

                try:
                    digest = compute_digest(file_path)
                    size = file_path.stat().st_size
                except OSError as e:
                    logger.warning(f"Skipping unreadable file {relative_path}: {e}")
                    result.unreadable.append(relative_path)
                    continue

                result.files[relative_path] = LocalFile(
                    path=file_path,
                    relative_path=relative_path,
                    digest=digest,
                    size=size,
                )

                known = state.digest_for(relative_path)
                if known is None:
                    result.untracked.append(relative_path)
                elif known != digest:
                    result.modified.append(relative_path)
                else:
                    continue

                if self.layout.is_asset(relative_path):
                    sidecar = self.layout.sidecar_for(relative_path)
                    sidecar_path = file_path.with_name(file_path.name + SIDECAR_SUFFIX)
                    if (
                        sidecar not in skip
                        and sidecar not in seen_sidecars
                        and sidecar_path.is_file()
                    ):
                        seen_sidecars.add(sidecar)
                        result.sidecars.append(sidecar)

        logger.debug(
            f"Scan found {len(result.untracked)} untracked, "
            f"{len(result.modified)} modified, {len(result.sidecars)} sidecar file(s)"
        )
        return result
