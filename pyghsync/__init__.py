"""pyghsync - sync a game project tree with a GitHub repository."""

from .api import GitHubClient
from .exceptions import (
    GhSyncConfigError,
    GhSyncError,
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubConflictError,
    GitHubDownloadError,
    GitHubInvalidResponseError,
    GitHubNetworkError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
    NothingToPushError,
    PushError,
    PushStepError,
    SyncStateError,
)
from .utils import compute_bytes_digest, compute_digest

__all__ = [
    "GitHubClient",
    "GhSyncError",
    "GhSyncConfigError",
    "GitHubAPIError",
    "GitHubAuthenticationError",
    "GitHubConflictError",
    "GitHubDownloadError",
    "GitHubInvalidResponseError",
    "GitHubNetworkError",
    "GitHubNotFoundError",
    "GitHubPermissionError",
    "GitHubRateLimitError",
    "NothingToPushError",
    "PushError",
    "PushStepError",
    "SyncStateError",
    "compute_bytes_digest",
    "compute_digest",
]
