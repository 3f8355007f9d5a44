"""Utility functions and constants for BackupWarden."""

from datetime import datetime, timezone
from typing import Optional

# =============================================================================
# Constants for file operations
# =============================================================================

# Attempts for transient I/O errors (copy, delete, mkdir, timestamp update)
DEFAULT_MAX_RETRIES: int = 5
DEFAULT_RETRY_DELAY: float = 0.5  # seconds, multiplied by the attempt number

# Two files with equal size are considered equal when their modification
# times differ by at most this many seconds (FAT/exFAT store 2 s resolution)
DEFAULT_TIME_TOLERANCE: float = 2.0

# Placeholder path spec used for issues that are not tied to one path spec
NO_PATH_SPEC: str = "N/A"


# =============================================================================
# Timestamp utilities
# =============================================================================


def timestamp_to_utc(timestamp: Optional[float]) -> Optional[datetime]:
    """Convert a POSIX timestamp to an aware UTC datetime.

    Args:
        timestamp: Seconds since the epoch (as returned by ``os.stat``)

    Returns:
        Aware datetime in UTC, or None if no timestamp was given
    """
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def format_timestamp(timestamp: Optional[float]) -> str:
    """Format a POSIX timestamp for reports.

    Examples:
        >>> format_timestamp(0)
        '1970-01-01 00:00:00 UTC'
        >>> format_timestamp(None)
        'unknown'
    """
    dt = timestamp_to_utc(timestamp)
    if dt is None:
        return "unknown"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")

