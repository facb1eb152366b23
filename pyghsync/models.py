"""Data models for GitHub API objects used by pyghsync."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class RemoteEntry:
    """An entry returned by the repository contents endpoint."""

    path: str
    """Repository-relative path (POSIX separators)"""

    type: str
    """Entry kind as reported by the API (file, dir, symlink or submodule)"""

    name: str = ""
    sha: str = ""
    size: int = 0
    download_url: Optional[str] = None

    @property
    def is_dir(self) -> bool:
        return self.type == "dir"

    @property
    def is_file(self) -> bool:
        return self.type == "file"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteEntry":
        """Create a RemoteEntry from a contents API item."""
        path = data.get("path", "")
        return cls(
            path=path,
            type=data.get("type", "file"),
            name=data.get("name") or path.rsplit("/", 1)[-1],
            sha=data.get("sha", ""),
            size=int(data.get("size") or 0),
            download_url=data.get("download_url"),
        )


@dataclass(frozen=True)
class TreeEntry:
    """One (path, mode, blob sha) triple of a tree create call."""

    path: str
    mode: str
    sha: str
    type: str = "blob"

    def to_dict(self) -> dict[str, str]:
        return {
            "path": self.path,
            "mode": self.mode,
            "type": self.type,
            "sha": self.sha,
        }


@dataclass
class CommitDescriptor:
    """The object chain built by one push.

    Fields are filled strictly in order: parent commit and base tree first,
    then the tree entries, then the new tree, then the new commit.
    """

    parent_sha: str
    base_tree_sha: str
    entries: list[TreeEntry] = field(default_factory=list)
    tree_sha: Optional[str] = None
    commit_sha: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_sha": self.parent_sha,
            "base_tree_sha": self.base_tree_sha,
            "entries": [entry.to_dict() for entry in self.entries],
            "tree_sha": self.tree_sha,
            "commit_sha": self.commit_sha,
        }
