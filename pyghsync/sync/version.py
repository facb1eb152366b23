"""Version file handling and update checks.

The project version lives in ``Assets/version.txt``: the first line is the
version label, followed by free-text release notes.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..api import GitHubClient
from ..exceptions import GitHubNotFoundError
from .layout import ProjectLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionStatus:
    """Local and remote versions.

    ``None`` means the version file does not exist on that side. Fetch
    errors are raised, never folded into this value.
    """

    local: Optional[str]
    remote: Optional[str]

    @property
    def update_available(self) -> bool:
        return self.remote is not None and self.remote != self.local


def _first_line(text: str) -> str:
    lines = text.strip().splitlines()
    return lines[0].strip() if lines else ""


def read_local_version(layout: ProjectLayout) -> Optional[str]:
    """Read the local version label, or None if there is no version file."""
    path = layout.version_file_path
    if not path.is_file():
        return None
    return _first_line(path.read_text(encoding="utf-8"))


def fetch_remote_version(client: GitHubClient, ref: str, layout: ProjectLayout) -> Optional[str]:
    """Fetch the remote version label at ``ref``.

    Returns:
        The label, or None if the remote has no version file

    Raises:
        GitHubAPIError: On any failure other than the file being absent
    """
    try:
        content = client.get_raw_file(ref, layout.version_file_repo_path)
    except GitHubNotFoundError:
        logger.debug(f"No {layout.version_file_repo_path} at {ref}")
        return None
    return _first_line(content.decode("utf-8", errors="replace"))


def check_version(client: GitHubClient, ref: str, layout: ProjectLayout) -> VersionStatus:
    """Compare the local version with the one at ``ref``."""
    return VersionStatus(
        local=read_local_version(layout),
        remote=fetch_remote_version(client, ref, layout),
    )


def write_version_file(layout: ProjectLayout, version: str, notes: str = "") -> str:
    """Write the version file and return its repository path."""
    path = layout.version_file_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{version}\n\nWhat's New:\n{notes}", encoding="utf-8")
    return layout.version_file_repo_path
