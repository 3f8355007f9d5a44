"""Exceptions raised by BackupWarden."""


class BackupWardenError(Exception):
    """Base exception for all BackupWarden errors."""


class BackupWardenConfigError(BackupWardenError):
    """Raised when an application config or the settings file is invalid."""


class SyncCancelledError(BackupWardenError):
    """Raised inside the sync engine when a cancellation was requested.

    The engine catches it per application, so callers of the public
    operations never see it.
    """
