"""API client for the GitHub REST API."""

from __future__ import annotations

import base64
import logging
import os
import random
import stat
import tempfile
import time
from pathlib import Path
from typing import Any, Callable
from urllib.parse import quote

import httpx

from .config import config
from .exceptions import (
    GhSyncConfigError,
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubConflictError,
    GitHubDownloadError,
    GitHubInvalidResponseError,
    GitHubNetworkError,
    GitHubNotFoundError,
    GitHubPermissionError,
    GitHubRateLimitError,
)
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

USER_AGENT = "pyghsync"
API_VERSION = "2022-11-28"

# Only these methods are retried; a repeated write could duplicate objects
IDEMPOTENT_METHODS = frozenset({"GET", "HEAD"})


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


_UMASK = _current_umask()


def _target_mode(output_path: Path) -> int:
    """Permission bits for a downloaded file.

    An existing file keeps its mode; a new one gets the mode a plain
    ``open()`` would have given it.
    """
    try:
        return stat.S_IMODE(output_path.stat().st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK


class GitHubClient:
    """Client for the subset of the GitHub REST API used by pyghsync."""

    def __init__(
        self,
        token: str | None = None,
        owner: str | None = None,
        repo: str | None = None,
        api_url: str | None = None,
        raw_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize GitHub API client.

        Args:
            token: Optional token (uses config if not provided)
            owner: Repository owner (uses config if not provided)
            repo: Repository name (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            raw_url: Optional raw content URL (uses config if not provided)
            max_retries: Maximum number of retry attempts for read requests
            retry_delay: Initial delay between retries in seconds
            timeout: Request timeout in seconds
        """
        self.token = token or config.token
        self.owner = owner or config.owner
        self.repo = repo or config.repo
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.raw_url = (raw_url or config.raw_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

        if not self.token:
            raise GhSyncConfigError(
                "GitHub token not configured. "
                "Please set the GHSYNC_TOKEN environment variable."
            )
        if not self.owner or not self.repo:
            raise GhSyncConfigError(
                "Repository not configured. "
                "Please set GHSYNC_OWNER and GHSYNC_REPO or run 'pyghsync init'."
            )

        self._client: httpx.Client | None = None

    @property
    def repo_prefix(self) -> str:
        """Endpoint prefix for the configured repository."""
        return f"/repos/{self.owner}/{self.repo}"

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "User-Agent": USER_AGENT,
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": API_VERSION,
                },
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # =========================
    # Request plumbing
    # =========================

    def _should_retry(self, exception: Exception, method: str, attempt: int) -> bool:
        """Determine if a request should be retried.

        Args:
            exception: The exception that occurred
            method: HTTP method of the request
            attempt: Current attempt number (0-based)

        Returns:
            True if the request should be retried, False otherwise
        """
        if method.upper() not in IDEMPOTENT_METHODS:
            return False

        if attempt >= self.max_retries:
            return False

        if isinstance(exception, (GitHubNetworkError, GitHubRateLimitError)):
            return True

        # Retry on server errors (5xx status codes)
        if isinstance(exception, GitHubAPIError) and exception.status_code:
            return 500 <= exception.status_code < 600

        return False

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        """Delay for a rate limited response, honouring Retry-After."""
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return float(retry_after)
        return self._calculate_retry_delay(attempt)

    def _map_http_error(self, response: httpx.Response) -> GitHubAPIError:
        """Translate an error response into a pyghsync exception.

        Args:
            response: The failed HTTP response

        Returns:
            Exception describing the failure
        """
        status_code = response.status_code

        if status_code == 401:
            return GitHubAuthenticationError(
                "Invalid token or unauthorized access", status_code
            )
        if status_code == 403:
            if response.headers.get("X-RateLimit-Remaining") == "0":
                return GitHubRateLimitError(
                    "Rate limit exceeded - please try again later", status_code
                )
            return GitHubPermissionError(
                "Access forbidden - check your token permissions", status_code
            )
        if status_code == 404:
            return GitHubNotFoundError("Resource not found", status_code)
        if status_code == 429:
            return GitHubRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )

        error_msg = f"API request failed with status {status_code}"
        # Try to extract more details from response body
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict) and error_data.get("message"):
                    error_msg = f"{error_msg}: {error_data['message']}"
        except ValueError:
            pass

        if status_code in (409, 422):
            return GitHubConflictError(error_msg, status_code)
        return GitHubAPIError(error_msg, status_code)

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.api_url}/{endpoint.lstrip('/')}"

    def _send(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying idempotent methods on transient errors.

        Args:
            method: HTTP method
            endpoint: API endpoint path or absolute URL
            **kwargs: Additional arguments passed to httpx

        Returns:
            The successful response

        Raises:
            GitHubAPIError: If the request fails after all retries
        """
        url = self._build_url(endpoint)
        client = self._get_client()
        attempt = 0

        while True:
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: GitHubAPIError = GitHubNetworkError(f"Network error: {e}")
                if self._should_retry(error, method, attempt):
                    logger.debug(f"{method} {url} failed ({e}), retrying")
                    time.sleep(self._calculate_retry_delay(attempt))
                    attempt += 1
                    continue
                raise error from e

            if response.is_success:
                return response

            error = self._map_http_error(response)
            if self._should_retry(error, method, attempt):
                if isinstance(error, GitHubRateLimitError):
                    delay = self._retry_after(response, attempt)
                else:
                    delay = self._calculate_retry_delay(attempt)
                logger.debug(
                    f"{method} {url} returned {response.status_code}, "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                attempt += 1
                continue
            raise error

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request and decode the JSON body.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data ({} for empty bodies)

        Raises:
            GitHubAPIError: If the request fails after all retries
        """
        response = self._send(method, endpoint, **kwargs)

        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type:
            raise GitHubInvalidResponseError(
                f"Unexpected response type: {content_type or 'unknown'}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise GitHubInvalidResponseError("Invalid JSON response from server") from e

    @staticmethod
    def _require_sha(data: Any, *keys: str) -> str:
        """Extract a nested sha string from a response document."""
        value = data
        for key in keys:
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(key)
        if not isinstance(value, str) or not value:
            raise GitHubInvalidResponseError(
                f"Response is missing '{'.'.join(keys)}'"
            )
        return value

    # =========================
    # Repository
    # =========================

    def get_repository(self) -> dict[str, Any]:
        """Fetch repository metadata (used to validate credentials)."""
        result: dict[str, Any] = self._request("GET", self.repo_prefix)
        return result

    def list_tags(self, per_page: int = 100) -> list[str]:
        """List tag names of the repository, newest first as returned by the API."""
        tags = self._request(
            "GET", f"{self.repo_prefix}/tags", params={"per_page": per_page}
        )
        if not isinstance(tags, list):
            raise GitHubInvalidResponseError("Expected a list of tags")
        return [tag["name"] for tag in tags if isinstance(tag, dict) and "name" in tag]

    # =========================
    # Contents
    # =========================

    def get_contents(self, path: str = "", ref: str | None = None) -> Any:
        """List a directory or fetch single-file metadata.

        Args:
            path: Repository-relative path ("" for the repository root)
            ref: Branch, tag or commit sha

        Returns:
            A list of entry dicts for directories, a dict for a file
        """
        endpoint = f"{self.repo_prefix}/contents/{quote(path.strip('/'), safe='/')}"
        params = {"ref": ref} if ref else None
        return self._request("GET", endpoint, params=params)

    def raw_file_url(self, ref: str, path: str) -> str:
        """Build the raw content download URL for a path at a ref."""
        return (
            f"{self.raw_url}/{self.owner}/{self.repo}/"
            f"{quote(ref, safe='')}/{quote(path.strip('/'), safe='/')}"
        )

    def get_raw_file(self, ref: str, path: str) -> bytes:
        """Fetch the raw bytes of a file.

        Raises:
            GitHubNotFoundError: If the path does not exist at the ref
        """
        response = self._send("GET", self.raw_file_url(ref, path))
        return response.content

    def download_raw_file(
        self,
        ref: str,
        path: str,
        output_path: Path,
        progress_callback: Callable[[int, int], None] | None = None,
    ) -> Path:
        """Download a file and atomically replace ``output_path``.

        The bytes are streamed into a temporary file next to the destination,
        which replaces the destination only after the download completed. On
        failure any prior local copy is left untouched.

        Args:
            ref: Branch, tag or commit sha
            path: Repository-relative path
            output_path: Local destination
            progress_callback: Optional callback function(bytes_downloaded, total_bytes)

        Returns:
            Path where the file was saved

        Raises:
            GitHubNotFoundError: If the path does not exist at the ref
            GitHubNetworkError: On network failures after all retries
            GitHubDownloadError: If the download or the local write fails
        """
        url = self.raw_file_url(ref, path)
        client = self._get_client()
        attempt = 0

        while True:
            try:
                return self._stream_to_file(client, url, output_path, progress_callback)
            except httpx.RequestError as e:
                error: GitHubAPIError = GitHubNetworkError(
                    f"Network error during download: {e}"
                )
                if self._should_retry(error, "GET", attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    attempt += 1
                    continue
                raise error from e
            except GitHubAPIError as e:
                if self._should_retry(e, "GET", attempt):
                    time.sleep(self._calculate_retry_delay(attempt))
                    attempt += 1
                    continue
                raise
            except OSError as e:
                raise GitHubDownloadError(f"Failed to write file: {e}") from e

    def _stream_to_file(
        self,
        client: httpx.Client,
        url: str,
        output_path: Path,
        progress_callback: Callable[[int, int], None] | None,
    ) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with client.stream("GET", url) as response:
            if not response.is_success:
                response.read()
                raise self._map_http_error(response)

            total_size = int(response.headers.get("Content-Length", 0))
            bytes_downloaded = 0

            fd, tmp_name = tempfile.mkstemp(
                dir=output_path.parent, prefix=f".{output_path.name}.", suffix=".part"
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    for chunk in response.iter_bytes(chunk_size=8192):
                        if chunk:
                            f.write(chunk)
                            bytes_downloaded += len(chunk)
                            if progress_callback:
                                progress_callback(bytes_downloaded, total_size)
                os.chmod(tmp_name, _target_mode(output_path))
                os.replace(tmp_name, output_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        return output_path

    # =========================
    # Git data
    # =========================

    def get_branch_head(self, branch: str) -> tuple[str, str]:
        """Resolve a branch to its head commit sha and tree sha.

        Args:
            branch: Branch name

        Returns:
            Tuple of (commit_sha, tree_sha)
        """
        ref_data = self._request(
            "GET", f"{self.repo_prefix}/git/ref/heads/{quote(branch, safe='/')}"
        )
        commit_sha = self._require_sha(ref_data, "object", "sha")

        commit_data = self._request(
            "GET", f"{self.repo_prefix}/git/commits/{commit_sha}"
        )
        tree_sha = self._require_sha(commit_data, "tree", "sha")
        return commit_sha, tree_sha

    def create_blob(self, content: bytes) -> str:
        """Create a blob object from raw bytes.

        Args:
            content: File content

        Returns:
            The new blob sha
        """
        payload = {
            "content": base64.b64encode(content).decode("ascii"),
            "encoding": "base64",
        }
        data = self._request("POST", f"{self.repo_prefix}/git/blobs", json=payload)
        return self._require_sha(data, "sha")

    def create_tree(self, base_tree: str, entries: list[dict[str, str]]) -> str:
        """Create a tree layered on ``base_tree``.

        Paths not listed in ``entries`` are kept from the base tree.

        Args:
            base_tree: Sha of the tree to layer on
            entries: Tree entries with path, mode, type and sha

        Returns:
            The new tree sha
        """
        payload = {"base_tree": base_tree, "tree": entries}
        data = self._request("POST", f"{self.repo_prefix}/git/trees", json=payload)
        return self._require_sha(data, "sha")

    def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> str:
        """Create a commit object.

        Returns:
            The new commit sha
        """
        payload = {"message": message, "tree": tree_sha, "parents": parents}
        data = self._request("POST", f"{self.repo_prefix}/git/commits", json=payload)
        return self._require_sha(data, "sha")

    def update_ref(self, branch: str, sha: str, force: bool = True) -> str:
        """Move a branch ref to ``sha``.

        Returns:
            The sha the ref points at after the update
        """
        payload = {"sha": sha, "force": force}
        data = self._request(
            "PATCH",
            f"{self.repo_prefix}/git/refs/heads/{quote(branch, safe='/')}",
            json=payload,
        )
        return self._require_sha(data, "object", "sha")
