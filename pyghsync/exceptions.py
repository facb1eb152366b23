"""Exception hierarchy for pyghsync."""

from typing import Optional


class GhSyncError(Exception):
    """Base exception for all pyghsync errors."""


class GhSyncConfigError(GhSyncError):
    """Raised when required configuration is missing or invalid."""


class GitHubAPIError(GhSyncError):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubAuthenticationError(GitHubAPIError):
    """Raised when the token is invalid or missing (HTTP 401)."""


class GitHubPermissionError(GitHubAPIError):
    """Raised when the token lacks access to the resource (HTTP 403)."""


class GitHubNotFoundError(GitHubAPIError):
    """Raised when a repository, ref or path does not exist (HTTP 404)."""


class GitHubConflictError(GitHubAPIError):
    """Raised when the server rejects an update (HTTP 409 or 422)."""


class GitHubRateLimitError(GitHubAPIError):
    """Raised when the API rate limit is exhausted."""


class GitHubNetworkError(GitHubAPIError):
    """Raised on transport level failures (DNS, connect, timeout)."""


class GitHubInvalidResponseError(GitHubAPIError):
    """Raised when the server returns something that is not the expected JSON."""


class GitHubDownloadError(GitHubAPIError):
    """Raised when a raw file download fails."""


class SyncStateError(GhSyncError):
    """Raised when persisted local state cannot be read or written."""


class PushError(GhSyncError):
    """Base exception for push failures."""


class NothingToPushError(PushError):
    """Raised when every candidate file was skipped before any write call."""


class PushStepError(PushError):
    """Raised when one step of the git-data push chain fails.

    The branch ref is only modified by the final ``update_ref`` step, so
    any failure before it leaves the branch pointing at its original commit.
    """

    def __init__(self, step: str, message: str):
        super().__init__(f"Push failed at step '{step}': {message}")
        self.step = step
