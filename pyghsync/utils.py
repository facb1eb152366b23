"""Utility functions for pyghsync."""

import hashlib
import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .exceptions import SyncStateError

# =============================================================================
# Constants for sync operations
# =============================================================================

# Retry configuration for transient errors (idempotent requests only)
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Default request timeout
DEFAULT_TIMEOUT: float = 30.0  # seconds

# Parallel workers for downloads and blob creation
DEFAULT_MAX_WORKERS: int = 4

# Read buffer for hashing
HASH_CHUNK_SIZE: int = 64 * 1024

# Git file modes used in tree entries
FILE_MODE_REGULAR = "100644"
FILE_MODE_EXECUTABLE = "100755"

# Timestamp format for history entries
HISTORY_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# =============================================================================
# Hash calculation utilities
# =============================================================================


def compute_digest(file_path: Path) -> str:
    """Compute the content digest of a file.

    The digest depends only on the file content, never on its path.

    Args:
        file_path: File to hash

    Returns:
        Lowercase hex MD5 digest (32 characters)

    Raises:
        OSError: If the file cannot be read
    """
    md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            md5.update(chunk)
    return md5.hexdigest()


def compute_bytes_digest(content: bytes) -> str:
    """Compute the content digest of in-memory bytes.

    Examples:
        >>> compute_bytes_digest(b"hello")
        '5d41402abc4b2a76b9719d911017c592'
    """
    return hashlib.md5(content).hexdigest()


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_history_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse a history timestamp.

    Accepts both ISO format and the ``YYYY-MM-DD HH:MM:SS`` format written
    by older ledgers.

    Args:
        timestamp_str: Timestamp string

    Returns:
        datetime object or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        return datetime.fromisoformat(timestamp_str)
    except ValueError:
        try:
            return datetime.strptime(timestamp_str, HISTORY_TIMESTAMP_FORMAT)
        except ValueError:
            return None


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Path utilities
# =============================================================================


def normalize_repo_path(path: str) -> str:
    """Normalize a repository path to POSIX form without leading slash.

    Examples:
        >>> normalize_repo_path("/ProjectSettings/x.asset")
        'ProjectSettings/x.asset'
    """
    return path.replace("\\", "/").strip("/")


# =============================================================================
# JSON state file utilities
# =============================================================================


def write_json_atomic(path: Path, data: Any) -> None:
    """Write a JSON document by replacing the file in one step.

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(path: Path) -> Optional[Any]:
    """Read a JSON document, returning None when the file does not exist.

    Raises:
        SyncStateError: If the file exists but cannot be read or parsed
    """
    if not path.exists():
        return None
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SyncStateError(f"Failed to read {path}: {e}") from e
