"""Sync engine for pyghsync - change detection, push and pull."""

from .engine import SyncEngine
from .history import HistoryEntry, HistoryLedger
from .layout import ProjectLayout
from .progress import SyncProgressEvent, SyncProgressInfo, SyncProgressTracker
from .puller import PullEngine, PullReport
from .pusher import PushEngine, PushResult
from .remote import RemoteListing, RemoteTreeLister
from .scanner import DirectoryScanner, LocalFile, ScanResult
from .state import SyncStateManager, TrackingState
from .version import (
    VersionStatus,
    check_version,
    fetch_remote_version,
    read_local_version,
    write_version_file,
)

__all__ = [
    "SyncEngine",
    "ProjectLayout",
    "DirectoryScanner",
    "LocalFile",
    "ScanResult",
    "RemoteTreeLister",
    "RemoteListing",
    "PullEngine",
    "PullReport",
    "PushEngine",
    "PushResult",
    "HistoryEntry",
    "HistoryLedger",
    "SyncStateManager",
    "TrackingState",
    "SyncProgressEvent",
    "SyncProgressInfo",
    "SyncProgressTracker",
    "VersionStatus",
    "check_version",
    "fetch_remote_version",
    "read_local_version",
    "write_version_file",
]
