"""Tests for tracking state persistence and history ledgers."""

import json
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from pyghsync.exceptions import SyncStateError
from pyghsync.sync import HistoryEntry, HistoryLedger, SyncStateManager, TrackingState


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def manager(temp_dir):
    return SyncStateManager(
        temp_dir / "project", "octo/game", state_dir=temp_dir / "state"
    )


class TestTrackingState:
    """Tests for the in-memory tracking state."""

    def test_mark_synced(self):
        state = TrackingState()
        state.mark_synced({"Assets/a.txt": "abc"})
        assert state.digest_for("Assets/a.txt") == "abc"

    def test_exclude_forgets_digest(self):
        """Excluding a path drops its digest."""
        state = TrackingState(digests={"Assets/a.txt": "abc"})
        state.exclude(["Assets/a.txt"])
        assert state.is_excluded("Assets/a.txt")
        assert state.digest_for("Assets/a.txt") is None

    def test_include(self):
        state = TrackingState(excluded={"Assets/a.txt"})
        state.include(["Assets/a.txt", "Assets/unknown.txt"])
        assert state.excluded == set()


class TestSyncStateManager:
    """Tests for SyncStateManager."""

    def test_load_missing_state_is_empty(self, manager):
        state = manager.load_state()
        assert state.digests == {}
        assert state.excluded == set()

    def test_save_and_load(self, manager):
        """Saved digests and exclusions survive a reload."""
        state = TrackingState(digests={"Assets/a": "1"}, excluded={"Assets/b"})
        manager.save_state(state)

        loaded = manager.load_state()

        assert loaded.digests == {"Assets/a": "1"}
        assert loaded.excluded == {"Assets/b"}

    def test_state_key_differs_per_repository(self, temp_dir):
        one = SyncStateManager(temp_dir, "octo/one", state_dir=temp_dir / "s")
        two = SyncStateManager(temp_dir, "octo/two", state_dir=temp_dir / "s")
        assert one.state_dir != two.state_dir

    def test_corrupt_state_raises(self, manager):
        """A corrupt digest file is reported, not silently reset."""
        manager.state_dir.mkdir(parents=True)
        manager.digests_path.write_text("{broken")

        with pytest.raises(SyncStateError):
            manager.load_state()

    def test_wrong_layout_raises(self, manager):
        manager.state_dir.mkdir(parents=True)
        manager.digests_path.write_text("[1, 2]")

        with pytest.raises(SyncStateError, match="Unexpected state layout"):
            manager.load_state()

    def test_clear_state(self, manager):
        manager.save_state(TrackingState(digests={"a": "1"}))
        assert manager.clear_state() is True
        assert manager.clear_state() is False
        assert manager.load_state().digests == {}


class TestHistoryLedger:
    """Tests for push and pull history ledgers."""

    def test_empty_ledger(self, temp_dir):
        assert HistoryLedger(temp_dir / "h.json").load_all() == []

    def test_append_keeps_insertion_order(self, temp_dir):
        """Entries are returned oldest first, in the order appended."""
        ledger = HistoryLedger(temp_dir / "h.json")
        ledger.append(HistoryEntry("1.0", "first", datetime(2024, 1, 2)))
        ledger.append(HistoryEntry("0.9", "second", datetime(2023, 1, 1)))

        entries = ledger.load_all()

        assert [e.notes for e in entries] == ["first", "second"]
        assert entries[0].timestamp == datetime(2024, 1, 2)

    def test_file_format(self, temp_dir):
        path = temp_dir / "h.json"
        HistoryLedger(path).append(HistoryEntry("1.0", "n", datetime(2024, 5, 1, 12)))

        data = json.loads(path.read_text())

        assert data == {
            "entries": [
                {"version": "1.0", "notes": "n", "timestamp": "2024-05-01T12:00:00"}
            ]
        }

    def test_legacy_timestamp_format(self, temp_dir):
        path = temp_dir / "h.json"
        path.write_text(
            json.dumps(
                {"entries": [{"version": "1", "timestamp": "2024-05-01 08:30:00"}]}
            )
        )

        entry = HistoryLedger(path).load_all()[0]

        assert entry.timestamp == datetime(2024, 5, 1, 8, 30)
        assert entry.notes == ""

    def test_invalid_timestamp_raises(self, temp_dir):
        path = temp_dir / "h.json"
        path.write_text(json.dumps({"entries": [{"version": "1", "timestamp": "x"}]}))

        with pytest.raises(SyncStateError, match="invalid timestamp"):
            HistoryLedger(path).load_all()

    def test_push_and_pull_ledgers_are_separate(self, manager):
        manager.push_ledger().append(HistoryEntry.now("1.0"))

        assert len(manager.push_ledger().load_all()) == 1
        assert manager.pull_ledger().load_all() == []
