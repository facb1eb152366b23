"""Tests for the sync engine."""

import tempfile
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest

from pyghsync.api import GitHubClient
from pyghsync.exceptions import (
    GitHubAPIError,
    GitHubNetworkError,
    GitHubNotFoundError,
    PushStepError,
)
from pyghsync.models import RemoteEntry
from pyghsync.output import OutputFormatter
from pyghsync.sync import ProjectLayout, RemoteListing, SyncEngine, SyncStateManager


class TestSyncEngine:
    """Test SyncEngine functionality."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    @pytest.fixture
    def project(self, temp_dir):
        """Create a small project tree."""
        root = temp_dir / "project"
        (root / "Assets" / "Scripts").mkdir(parents=True)
        (root / "Assets" / "Scripts" / "Player.cs").write_text("class Player {}")
        (root / "Assets" / "hero.png").write_bytes(b"png")
        (root / "Assets" / "hero.png.meta").write_text("guid: 1")
        return root

    @pytest.fixture
    def mock_client(self):
        """Create a mock GitHub client with a working push chain."""
        client = Mock(spec=GitHubClient)
        client.owner = "octo"
        client.repo = "game"
        client.get_branch_head.return_value = ("parent", "base-tree")
        client.create_blob.return_value = "blob"
        client.create_tree.return_value = "tree"
        client.create_commit.return_value = "abcdef1234567890"
        client.update_ref.return_value = "abcdef1234567890"

        def download(ref, path, output_path, progress_callback=None):
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(f"remote {path}")
            return output_path

        client.download_raw_file.side_effect = download
        client.get_raw_file.side_effect = GitHubNotFoundError("Resource not found", 404)
        return client

    @pytest.fixture
    def mock_output(self):
        """Create a mock output formatter."""
        output = Mock(spec=OutputFormatter)
        output.quiet = True  # Suppress output during tests
        output.json_output = False
        return output

    @pytest.fixture
    def state_manager(self, project, temp_dir):
        return SyncStateManager(project, "octo/game", state_dir=temp_dir / "state")

    @pytest.fixture
    def engine(self, mock_client, project, state_manager, mock_output):
        """Create a sync engine instance."""
        return SyncEngine(mock_client, ProjectLayout(project), state_manager, mock_output)

    def test_scan_reports_changes(self, engine):
        result = engine.scan()

        assert sorted(result.untracked) == ["Assets/Scripts/Player.cs", "Assets/hero.png"]
        assert result.sidecars == ["Assets/hero.png.meta"]

    def test_push_appends_one_history_entry(self, engine):
        """A successful push adds exactly one ledger entry."""
        start = datetime.now()

        stats = engine.push(notes="first")

        entries = engine.history("push")
        assert len(entries) == 1
        assert entries[0].timestamp >= start
        assert entries[0].version == "abcdef1"
        assert entries[0].notes == "first"
        assert stats["pushed"] == 3
        assert stats["commit"] == "abcdef1234567890"

    def test_push_then_rescan_shows_no_changes(self, engine):
        engine.push()

        result = engine.scan()

        assert result.changed == []

    def test_push_uses_default_message(self, engine, mock_client):
        engine.push(version="1.2", notes="New level")

        message = mock_client.create_commit.call_args[0][0]
        assert message == "Updating files to version 1.2 New level"

    def test_push_with_version_writes_version_file(self, engine, project, mock_client):
        """The version file is written and pushed with the changes."""
        stats = engine.push(files=["Assets/hero.png"], version="2.0", notes="Notes")

        version_file = project / "Assets" / "version.txt"
        assert version_file.read_text() == "2.0\n\nWhat's New:\nNotes"
        assert stats["files"] == [
            "Assets/version.txt",
            "Assets/hero.png",
            "Assets/hero.png.meta",
        ]
        assert engine.history("push")[0].version == "2.0"

    def test_push_dry_run(self, engine, mock_client, project):
        stats = engine.push(version="3.0", dry_run=True)

        assert stats["pushed"] == 0
        assert len(stats["files"]) == 3
        mock_client.get_branch_head.assert_not_called()
        assert not (project / "Assets" / "version.txt").exists()
        assert engine.history("push") == []

    def test_push_nothing_changed(self, engine, mock_client):
        engine.push()
        mock_client.reset_mock()

        stats = engine.push()

        assert stats["pushed"] == 0
        mock_client.get_branch_head.assert_not_called()

    def test_failed_push_keeps_state(self, engine, mock_client):
        """A failed push records neither digests nor history."""
        mock_client.create_tree.side_effect = GitHubAPIError("boom", 500)

        with pytest.raises(PushStepError):
            engine.push()

        assert engine.history("push") == []
        assert len(engine.scan().untracked) == 2

    def test_pull_selected(self, engine, project):
        stats = engine.pull(["Assets/Remote.cs", "ProjectSettings/Tags.asset"], ref="v1")

        assert stats["downloads"] == 2
        assert stats["failed"] == 0
        assert (project / "Assets" / "Remote.cs").read_text() == "remote Assets/Remote.cs"
        assert (project / "ProjectSettings" / "Tags.asset").exists()

    def test_pull_refreshes_digests(self, engine):
        """Pulled files are not reported as changes afterwards."""
        engine.pull(["Assets/Remote.cs"])

        result = engine.scan()

        assert "Assets/Remote.cs" not in result.changed

    def test_pull_history_uses_remote_version(self, engine, mock_client):
        mock_client.get_raw_file.side_effect = None
        mock_client.get_raw_file.return_value = b"4.1\n\nWhat's New:\nstuff"

        engine.pull(["Assets/a.txt"], ref="main")

        entry = engine.history("pull")[0]
        assert entry.version == "4.1"
        assert entry.notes == "Pulled from main"

    def test_pull_history_falls_back_to_ref(self, engine):
        engine.pull(["Assets/a.txt"], ref="v9", notes="manual")

        entry = engine.history("pull")[0]
        assert entry.version == "v9"
        assert entry.notes == "manual"

    def test_pull_with_failures_not_recorded(self, engine, mock_client):
        """A pull with failed files is not added to the history."""
        succeed = mock_client.download_raw_file.side_effect

        def download(ref, path, output_path, progress_callback=None):
            if path == "Assets/bad.txt":
                raise GitHubNotFoundError("Resource not found", 404)
            return succeed(ref, path, output_path)

        mock_client.download_raw_file.side_effect = download

        stats = engine.pull(["Assets/good.txt", "Assets/bad.txt"])

        assert stats["downloads"] == 1
        assert stats["failed"] == 1
        assert engine.history("pull") == []

    def test_pull_all_uses_remote_listing(self, engine, mock_client):
        engine.lister = Mock()
        engine.lister.list_recursive.return_value = RemoteListing(
            files=[RemoteEntry(path="Assets/x.txt", type="file")]
        )

        stats = engine.pull(None, ref="main")

        assert stats["files"] == ["Assets/x.txt"]
        assert stats["downloads"] == 1

    def test_pull_dry_run(self, engine, mock_client):
        stats = engine.pull(["Assets/a.txt"], dry_run=True)

        assert stats["downloads"] == 0
        mock_client.download_raw_file.assert_not_called()

    def test_exclude_and_include(self, engine):
        """Excluded files disappear from scans until included again."""
        engine.exclude(["Assets/hero.png"])
        assert "Assets/hero.png" not in engine.scan().changed

        engine.include(["Assets/hero.png"])
        assert "Assets/hero.png" in engine.scan().changed

    def test_push_explicit_files_adds_sidecar(self, engine):
        stats = engine.push(files=["Assets/hero.png"])

        assert stats["files"] == ["Assets/hero.png", "Assets/hero.png.meta"]

    def test_push_short_path_tracked_under_assets(self, engine, mock_client):
        """A path given relative to the assets root is pushed as Assets/..."""
        stats = engine.push(files=["Scripts/Player.cs"])

        entries = mock_client.create_tree.call_args[0][1]
        assert [e["path"] for e in entries] == ["Assets/Scripts/Player.cs"]
        assert stats["files"] == ["Assets/Scripts/Player.cs"]
        assert "Assets/Scripts/Player.cs" not in engine.scan().changed

    def test_push_short_asset_path_adds_sidecar(self, engine):
        stats = engine.push(files=["hero.png", "Assets/hero.png"])

        assert stats["files"] == ["Assets/hero.png", "Assets/hero.png.meta"]

    def test_pull_short_path_refreshes_assets_digest(self, engine, project):
        engine.pull(["Remote.cs"])

        assert (project / "Assets" / "Remote.cs").exists()
        assert "Assets/Remote.cs" not in engine.scan().changed

    def test_pull_version_read_failure_falls_back_to_ref(
        self, engine, mock_client, mock_output
    ):
        """An unreadable remote version file does not fail a good pull."""
        mock_client.get_raw_file.side_effect = GitHubNetworkError("boom")

        stats = engine.pull(["Assets/a.txt"], ref="main")

        assert stats["downloads"] == 1
        assert stats["failed"] == 0
        assert engine.history("pull")[0].version == "main"
        mock_output.warning.assert_called_once()
        assert "boom" in mock_output.warning.call_args[0][0]

    def test_pull_reads_version_before_downloading(self, engine, mock_client):
        calls = []
        mock_client.get_raw_file.side_effect = lambda *args, **kwargs: (
            calls.append("version") or b"5.0"
        )
        succeed = mock_client.download_raw_file.side_effect

        def download(ref, path, output_path, progress_callback=None):
            calls.append("download")
            return succeed(ref, path, output_path)

        mock_client.download_raw_file.side_effect = download

        engine.pull(["Assets/a.txt"], ref="main")

        assert calls == ["version", "download"]
        assert engine.history("pull")[0].version == "5.0"
