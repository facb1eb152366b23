"""Mapping between repository paths and the local project tree."""

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from ..utils import normalize_repo_path

SIDECAR_SUFFIX = ".meta"
VERSION_FILE_NAME = "version.txt"


@dataclass
class ProjectLayout:
    """Describes where repository paths live on disk.

    A project has a root directory holding an assets subtree plus a few
    project-level areas. Repository paths under a reserved prefix
    (``Assets/``, ``ProjectSettings/``, ``Packages/``) resolve against the
    project root; any other repository path resolves under the assets root.

    Examples:
        >>> layout = ProjectLayout(Path("/game"))
        >>> layout.to_local_path("ProjectSettings/TagManager.asset")
        PosixPath('/game/ProjectSettings/TagManager.asset')
        >>> layout.to_local_path("Scripts/Player.cs")
        PosixPath('/game/Assets/Scripts/Player.cs')
    """

    project_root: Path
    """Root directory of the project"""

    assets_dir: str = "Assets"
    """Name of the assets subtree below the project root"""

    project_dirs: tuple[str, ...] = field(
        default_factory=lambda: ("ProjectSettings", "Packages")
    )
    """Project-level directories that map onto the project root"""

    def __post_init__(self) -> None:
        self.project_root = Path(self.project_root)

    @property
    def assets_root(self) -> Path:
        return self.project_root / self.assets_dir

    @property
    def reserved_prefixes(self) -> tuple[str, ...]:
        return tuple(f"{name}/" for name in (self.assets_dir, *self.project_dirs))

    def default_roots(self) -> list[Path]:
        """Directories scanned for changes, limited to those that exist."""
        candidates = [self.assets_root] + [
            self.project_root / name for name in self.project_dirs
        ]
        return [path for path in candidates if path.is_dir()]

    def to_repo_path(self, local_path: Path) -> str:
        """Convert an absolute local path to a repository path.

        Raises:
            ValueError: If the path is outside the project root
        """
        return Path(local_path).relative_to(self.project_root).as_posix()

    def to_local_path(self, repo_path: str) -> Path:
        """Resolve a repository path to its local destination.

        Raises:
            ValueError: If the path is empty or escapes the project tree
        """
        normalized = normalize_repo_path(repo_path)
        parts = PurePosixPath(normalized).parts
        if not parts or ".." in parts:
            raise ValueError(f"Invalid repository path: {repo_path!r}")

        if normalized.startswith(self.reserved_prefixes):
            return self.project_root.joinpath(*parts)
        return self.assets_root.joinpath(*parts)

    def canonical_repo_path(self, repo_path: str) -> str:
        """Return the path the scanner uses for the file ``repo_path`` maps to.

        ``Scripts/Player.cs`` and ``Assets/Scripts/Player.cs`` name the same
        local file; both become ``Assets/Scripts/Player.cs``.

        Raises:
            ValueError: If the path is empty or escapes the project tree
        """
        return self.to_repo_path(self.to_local_path(repo_path))

    def is_asset(self, repo_path: str) -> bool:
        return normalize_repo_path(repo_path).startswith(f"{self.assets_dir}/")

    def sidecar_for(self, repo_path: str) -> str:
        """Return the sidecar metadata path paired with an asset path."""
        return f"{normalize_repo_path(repo_path)}{SIDECAR_SUFFIX}"

    @property
    def version_file_repo_path(self) -> str:
        return f"{self.assets_dir}/{VERSION_FILE_NAME}"

    @property
    def version_file_path(self) -> Path:
        return self.assets_root / VERSION_FILE_NAME
