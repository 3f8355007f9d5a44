"""Backup and restore modes."""

from enum import Enum
from typing import Union


class SyncMode(str, Enum):
    """How a backup or restore treats the destination side."""

    COPY = "copy"
    """Copy source files to the destination, overwriting; never delete"""

    SYNC = "sync"
    """Make the destination mirror the source, deleting unprotected extras"""

    @property
    def allows_delete(self) -> bool:
        """Whether destination files missing from the source may be deleted."""
        return self is SyncMode.SYNC

    @property
    def display_name(self) -> str:
        return "Copy Mode" if self is SyncMode.COPY else "Sync Mode"

    @classmethod
    def from_string(cls, value: Union[str, "SyncMode"]) -> "SyncMode":
        """Parse a mode name case-insensitively.

        Examples:
            >>> SyncMode.from_string("Sync")
            <SyncMode.SYNC: 'sync'>

        Raises:
            ValueError: If the name is not a known mode
        """
        if isinstance(value, SyncMode):
            return value
        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        valid = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid sync mode: {value!r} (expected one of: {valid})")
