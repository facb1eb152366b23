"""Tests for directory scanning and change detection."""

import tempfile
from pathlib import Path

import pytest

from pyghsync.sync import DirectoryScanner, ProjectLayout, TrackingState
from pyghsync.utils import compute_digest


class TestDirectoryScanner:
    """Test DirectoryScanner functionality."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary project directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "Assets").mkdir()
            yield root

    @pytest.fixture
    def scanner(self, temp_dir):
        return DirectoryScanner(ProjectLayout(temp_dir))

    def test_all_files_untracked_with_empty_state(self, scanner, temp_dir):
        """Every file is untracked when no digest is known."""
        (temp_dir / "Assets" / "a.txt").write_text("a")
        (temp_dir / "Assets" / "Scripts").mkdir()
        (temp_dir / "Assets" / "Scripts" / "b.cs").write_text("b")
        (temp_dir / "Assets" / "c.png").write_bytes(b"\x89PNG")

        result = scanner.scan(state=TrackingState())

        assert sorted(result.untracked) == [
            "Assets/Scripts/b.cs",
            "Assets/a.txt",
            "Assets/c.png",
        ]
        assert result.modified == []

    def test_unchanged_and_modified(self, scanner, temp_dir):
        """Known digests classify files as unchanged or modified."""
        same = temp_dir / "Assets" / "same.txt"
        changed = temp_dir / "Assets" / "changed.txt"
        same.write_text("same")
        changed.write_text("old")
        state = TrackingState(
            digests={
                "Assets/same.txt": compute_digest(same),
                "Assets/changed.txt": compute_digest(changed),
            }
        )
        changed.write_text("new")

        result = scanner.scan(state=state)

        assert result.untracked == []
        assert result.modified == ["Assets/changed.txt"]
        assert "Assets/same.txt" in result.files

    def test_digest_depends_on_content_only(self, scanner, temp_dir):
        """Renamed files with the same bytes share a digest."""
        (temp_dir / "Assets" / "one.txt").write_text("identical")
        (temp_dir / "Assets" / "two.txt").write_text("identical")

        result = scanner.scan()

        assert (
            result.files["Assets/one.txt"].digest
            == result.files["Assets/two.txt"].digest
        )

    def test_sidecar_follows_changed_asset(self, scanner, temp_dir):
        """A changed asset brings its .meta file along."""
        (temp_dir / "Assets" / "tex.png").write_bytes(b"png")
        (temp_dir / "Assets" / "tex.png.meta").write_text("guid: 1")
        (temp_dir / "Assets" / "lonely.png.meta").write_text("guid: 2")

        result = scanner.scan()

        assert result.untracked == ["Assets/tex.png"]
        assert result.sidecars == ["Assets/tex.png.meta"]
        assert result.changed == ["Assets/tex.png", "Assets/tex.png.meta"]

    def test_sidecar_not_added_for_unchanged_asset(self, scanner, temp_dir):
        asset = temp_dir / "Assets" / "tex.png"
        asset.write_bytes(b"png")
        (temp_dir / "Assets" / "tex.png.meta").write_text("guid: 1")
        state = TrackingState(digests={"Assets/tex.png": compute_digest(asset)})

        result = scanner.scan(state=state)

        assert result.changed == []

    def test_denylist(self, scanner, temp_dir):
        """IDE files, lock files and generated folders are never tracked."""
        assets = temp_dir / "Assets"
        (assets / "Game.csproj").write_text("x")
        (assets / "Game.sln").write_text("x")
        (assets / "scratch.TMP").write_text("x")
        (assets / ".DS_Store").write_text("x")
        (assets / "packages-lock.json").write_text("x")
        (assets / ".git").mkdir()
        (assets / ".git" / "HEAD").write_text("x")
        (assets / "Library").mkdir()
        (assets / "Library" / "cache.bin").write_text("x")
        (assets / "kept.cs").write_text("x")

        result = scanner.scan()

        assert result.untracked == ["Assets/kept.cs"]

    def test_excluded_paths_skipped(self, scanner, temp_dir):
        """Excluded paths from the state and the argument are skipped."""
        for name in ("a.txt", "b.txt", "c.txt"):
            (temp_dir / "Assets" / name).write_text(name)
        state = TrackingState(excluded={"Assets/a.txt"})

        result = scanner.scan(state=state, excluded=["Assets/b.txt"])

        assert result.untracked == ["Assets/c.txt"]

    def test_excluded_sidecar_not_emitted(self, scanner, temp_dir):
        (temp_dir / "Assets" / "tex.png").write_bytes(b"png")
        (temp_dir / "Assets" / "tex.png.meta").write_text("guid: 1")
        state = TrackingState(excluded={"Assets/tex.png.meta"})

        result = scanner.scan(state=state)

        assert result.sidecars == []

    def test_project_settings_scanned(self, scanner, temp_dir):
        """Project-level folders are scanned and have no sidecars."""
        (temp_dir / "ProjectSettings").mkdir()
        (temp_dir / "ProjectSettings" / "TagManager.asset").write_text("x")
        (temp_dir / "ProjectSettings" / "TagManager.asset.meta").write_text("x")

        result = scanner.scan()

        assert result.untracked == ["ProjectSettings/TagManager.asset"]
        assert result.sidecars == []

    def test_should_ignore(self, scanner):
        assert scanner.should_ignore(Path("obj"), is_dir=True)
        assert scanner.should_ignore(Path("x.suo"))
        assert not scanner.should_ignore(Path("obj"))
