"""Remote tree listing through the repository contents endpoint."""

import logging
from dataclasses import dataclass, field

from ..api import GitHubClient
from ..exceptions import GitHubAPIError, GitHubInvalidResponseError
from ..models import RemoteEntry

logger = logging.getLogger(__name__)


@dataclass
class RemoteListing:
    """Flattened result of a recursive listing."""

    files: list[RemoteEntry] = field(default_factory=list)
    """File entries found"""

    failed_paths: dict[str, str] = field(default_factory=dict)
    """Subtree path -> error message for subtrees that could not be listed"""

    @property
    def partial(self) -> bool:
        """True if at least one subtree could not be enumerated."""
        return bool(self.failed_paths)

    @property
    def paths(self) -> list[str]:
        return [entry.path for entry in self.files]


class RemoteTreeLister:
    """Enumerates the remote repository tree for a ref."""

    def __init__(self, client: GitHubClient):
        self.client = client

    def list(self, ref: str, path: str = "") -> list[RemoteEntry]:
        """List the direct children of a remote directory.

        A path pointing at a single file yields a one-element list.

        Args:
            ref: Branch, tag or commit sha
            path: Repository-relative directory path

        Returns:
            Entries of the directory

        Raises:
            GitHubAPIError: If the listing request fails
        """
        data = self.client.get_contents(path, ref=ref)
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise GitHubInvalidResponseError(f"Unexpected contents response for '{path}'")
        return [RemoteEntry.from_dict(item) for item in data if isinstance(item, dict)]

    def list_recursive(self, ref: str, path: str = "") -> RemoteListing:
        """Recursively list every file below ``path``.

        A subtree that fails to list contributes no files and is recorded in
        ``failed_paths``; the rest of the tree is still enumerated.

        Args:
            ref: Branch, tag or commit sha
            path: Repository-relative directory to start from

        Returns:
            RemoteListing with the files and any failed subtrees
        """
        listing = RemoteListing()
        self._walk(ref, path, listing)
        logger.debug(
            f"Listed {len(listing.files)} remote file(s) at {ref}"
            + (f", {len(listing.failed_paths)} subtree(s) failed" if listing.partial else "")
        )
        return listing

    def _walk(self, ref: str, path: str, listing: RemoteListing) -> None:
        try:
            entries = self.list(ref, path)
        except GitHubAPIError as e:
            logger.warning(f"Could not list '{path or '/'}' at {ref}: {e}")
            listing.failed_paths[path] = str(e)
            return

        for entry in entries:
            if entry.is_dir:
                self._walk(ref, entry.path, listing)
            elif entry.is_file:
                listing.files.append(entry)
            else:
                logger.debug(f"Skipping {entry.type} entry {entry.path}")
