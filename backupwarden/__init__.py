"""BackupWarden - back up and restore application files and report drift."""

from .exceptions import BackupWardenConfigError, BackupWardenError, SyncCancelledError
from .models import AppConfig, BackupConfig
from .sync import AppSyncReport, SyncEngine, SyncMode, SyncStatus

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "BackupConfig",
    "AppSyncReport",
    "SyncEngine",
    "SyncMode",
    "SyncStatus",
    "BackupWardenError",
    "BackupWardenConfigError",
    "SyncCancelledError",
]
