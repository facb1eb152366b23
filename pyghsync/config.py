"""Configuration management for pyghsync.

Values are resolved from environment variables first, then from the
config file at ``~/.config/pyghsync/config`` (simple ``KEY=value`` lines).
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_RAW_URL = "https://raw.githubusercontent.com"
DEFAULT_BRANCH = "main"


class Config:
    """Resolved pyghsync configuration."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/pyghsync
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pyghsync"
        self.config_dir = config_dir
        self._file_values: dict[str, str] = {}
        self._load_config_file()

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / "config"

    def _load_config_file(self) -> None:
        config_path = self.get_config_path()
        if not config_path.exists():
            return

        try:
            with open(config_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    self._file_values[key.strip()] = value.strip().strip('"')
        except OSError as e:
            logger.warning(f"Could not read config file {config_path}: {e}")

    def _get(self, key: str) -> Optional[str]:
        # Config file keys double as environment variable names
        env_value = os.environ.get(key)
        if env_value:
            return env_value
        return self._file_values.get(key) or None

    @property
    def token(self) -> Optional[str]:
        """GitHub token (GHSYNC_TOKEN, falling back to GITHUB_TOKEN)."""
        return self._get("GHSYNC_TOKEN") or os.environ.get("GITHUB_TOKEN") or None

    @property
    def owner(self) -> Optional[str]:
        return self._get("GHSYNC_OWNER")

    @property
    def repo(self) -> Optional[str]:
        return self._get("GHSYNC_REPO")

    @property
    def branch(self) -> str:
        return self._get("GHSYNC_BRANCH") or DEFAULT_BRANCH

    @property
    def api_url(self) -> str:
        return (self._get("GHSYNC_API_URL") or DEFAULT_API_URL).rstrip("/")

    @property
    def raw_url(self) -> str:
        return (self._get("GHSYNC_RAW_URL") or DEFAULT_RAW_URL).rstrip("/")

    def is_configured(self) -> bool:
        """Check whether a token and a repository are configured."""
        return bool(self.token and self.owner and self.repo)

    def save(
        self,
        token: Optional[str] = None,
        owner: Optional[str] = None,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> None:
        """Persist values to the config file, keeping existing keys.

        Args:
            token: GitHub token
            owner: Repository owner
            repo: Repository name
            branch: Default branch
        """
        updates = {
            "GHSYNC_TOKEN": token,
            "GHSYNC_OWNER": owner,
            "GHSYNC_REPO": repo,
            "GHSYNC_BRANCH": branch,
        }
        for key, value in updates.items():
            if value:
                self._file_values[key] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.get_config_path()
        with open(config_path, "w", encoding="utf-8") as f:
            for key in sorted(self._file_values):
                f.write(f"{key}={self._file_values[key]}\n")
        # The file holds a token
        config_path.chmod(0o600)
        logger.debug(f"Saved configuration to {config_path}")


config = Config()
