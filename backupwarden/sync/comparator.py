"""File comparison logic for status checks and copy decisions."""

from typing import Callable, Optional

from ..utils import DEFAULT_TIME_TOLERANCE, format_timestamp
from .report import FileDifference, FileDifferenceType
from .scanner import LocalFile


def files_match(
    first: LocalFile,
    second: LocalFile,
    time_tolerance: float = DEFAULT_TIME_TOLERANCE,
) -> bool:
    """Whether two files are considered identical.

    Sizes must be equal and modification times may differ by at most
    ``time_tolerance`` seconds, which absorbs coarse filesystem clocks.
    """
    if first.size != second.size:
        return False
    return abs(first.mtime - second.mtime) <= time_tolerance


class FileComparator:
    """Compares live and backup listings to find differences."""

    def __init__(self, time_tolerance: float = DEFAULT_TIME_TOLERANCE):
        """Initialize file comparator.

        Args:
            time_tolerance: Allowed modification time drift in seconds
        """
        self.time_tolerance = time_tolerance

    def compare_files(
        self,
        application_files: dict[str, LocalFile],
        backup_files: dict[str, LocalFile],
        fold_key: Optional[Callable[[str], str]] = None,
    ) -> list[FileDifference]:
        """Compare live and backup files key by key.

        Args:
            application_files: Dictionary mapping relative key to live file
            backup_files: Dictionary mapping relative key to backup file
            fold_key: Maps keys that name the same file to one form, e.g.
                lower-casing on case-insensitive filesystems

        Returns:
            Differences sorted by relative key; identical files are omitted.
            Keys are reported in the live spelling when both sides have one.
        """
        differences: list[FileDifference] = []
        fold = fold_key or (lambda key: key)

        live_by_key = {fold(key): f for key, f in application_files.items()}
        backup_by_key = {fold(key): f for key, f in backup_files.items()}

        # Get all unique keys
        display_keys = {fold(key): key for key in backup_files}
        display_keys.update({fold(key): key for key in application_files})

        for folded, key in sorted(display_keys.items(), key=lambda item: item[1]):
            difference = self._compare_single_file(
                key, live_by_key.get(folded), backup_by_key.get(folded)
            )
            if difference is not None:
                differences.append(difference)

        return differences

    def _compare_single_file(
        self,
        key: str,
        application_file: Optional[LocalFile],
        backup_file: Optional[LocalFile],
    ) -> Optional[FileDifference]:
        # Case 1: File only exists in the live location
        if application_file and not backup_file:
            return FileDifference(
                relative_path=key,
                difference_type=FileDifferenceType.ONLY_IN_APPLICATION,
                description="File exists in the application but not in the backup.",
                application_file=application_file,
            )

        # Case 2: File only exists in the backup
        if backup_file and not application_file:
            return FileDifference(
                relative_path=key,
                difference_type=FileDifferenceType.ONLY_IN_BACKUP,
                description="File exists in the backup but not in the application.",
                backup_file=backup_file,
            )

        # Case 3: File exists in both locations
        if application_file and backup_file:
            if files_match(application_file, backup_file, self.time_tolerance):
                return None
            return FileDifference(
                relative_path=key,
                difference_type=FileDifferenceType.CONTENT_MISMATCH,
                description=self._mismatch_reason(application_file, backup_file),
                application_file=application_file,
                backup_file=backup_file,
            )

        return None

    @staticmethod
    def _mismatch_reason(application_file: LocalFile, backup_file: LocalFile) -> str:
        if application_file.size != backup_file.size:
            return (
                f"Sizes differ (application: {application_file.size} bytes, "
                f"backup: {backup_file.size} bytes)."
            )
        return (
            f"Modification times differ "
            f"(application: {format_timestamp(application_file.mtime)}, "
            f"backup: {format_timestamp(backup_file.mtime)})."
        )
