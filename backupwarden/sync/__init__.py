"""Sync engine for BackupWarden - status checks, backups and restores."""

from .comparator import FileComparator, files_match
from .concurrency import CancellationToken
from .engine import SpecIndex, SyncEngine
from .modes import SyncMode
from .operations import FileOperations
from .progress import (
    CallbackDispatcher,
    DirectDispatcher,
    QueueDispatcher,
    SyncProgressTracker,
)
from .report import (
    AppSyncReport,
    FileDifference,
    FileDifferenceType,
    PathIssue,
    PathIssueSource,
    PathIssueType,
    SyncStatus,
    determine_overall_status,
    is_fatal_issue,
)
from .scanner import LocalFile, PathContentScanner, ScanResult
from .special_folders import SpecialFolderResolver, default_special_folders

__all__ = [
    "SyncEngine",
    "SyncMode",
    "SpecIndex",
    "FileOperations",
    "FileComparator",
    "files_match",
    "CancellationToken",
    "CallbackDispatcher",
    "DirectDispatcher",
    "QueueDispatcher",
    "SyncProgressTracker",
    "AppSyncReport",
    "FileDifference",
    "FileDifferenceType",
    "PathIssue",
    "PathIssueSource",
    "PathIssueType",
    "SyncStatus",
    "determine_overall_status",
    "is_fatal_issue",
    "LocalFile",
    "PathContentScanner",
    "ScanResult",
    "SpecialFolderResolver",
    "default_special_folders",
]
