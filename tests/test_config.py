"""Tests for configuration loading and saving."""

import stat

import pytest

from pyghsync.config import DEFAULT_API_URL, DEFAULT_BRANCH, Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "GHSYNC_TOKEN",
        "GITHUB_TOKEN",
        "GHSYNC_OWNER",
        "GHSYNC_REPO",
        "GHSYNC_BRANCH",
        "GHSYNC_API_URL",
        "GHSYNC_RAW_URL",
    ):
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, tmp_path):
        config = Config(config_dir=tmp_path)

        assert config.token is None
        assert config.branch == DEFAULT_BRANCH
        assert config.api_url == DEFAULT_API_URL
        assert not config.is_configured()

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        (tmp_path / "config").write_text("GHSYNC_OWNER=file-owner\n")
        monkeypatch.setenv("GHSYNC_OWNER", "env-owner")

        assert Config(config_dir=tmp_path).owner == "env-owner"

    def test_github_token_fallback(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "gh")

        assert Config(config_dir=tmp_path).token == "gh"

    def test_save_and_reload(self, tmp_path):
        """Saved values are read back by a new instance."""
        Config(config_dir=tmp_path).save(
            token="secret", owner="octo", repo="game", branch="dev"
        )

        config = Config(config_dir=tmp_path)
        assert config.token == "secret"
        assert config.owner == "octo"
        assert config.repo == "game"
        assert config.branch == "dev"
        assert config.is_configured()

    def test_save_restricts_permissions(self, tmp_path):
        config = Config(config_dir=tmp_path)
        config.save(token="secret")

        mode = stat.S_IMODE(config.get_config_path().stat().st_mode)
        assert mode == 0o600

    def test_comments_and_quotes(self, tmp_path):
        (tmp_path / "config").write_text('# comment\nGHSYNC_REPO="game"\nnonsense\n')

        assert Config(config_dir=tmp_path).repo == "game"
