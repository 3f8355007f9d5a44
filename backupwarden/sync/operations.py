"""Filesystem mutations wrapped in a retry policy for transient errors."""

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Callable, TypeVar, Union

from send2trash import send2trash

from ..utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")
PathLike = Union[str, Path]

# Errors that will not go away by trying again
NON_RETRYABLE_ERRORS: tuple[type[OSError], ...] = (
    FileNotFoundError,
    PermissionError,
    IsADirectoryError,
    NotADirectoryError,
    FileExistsError,
)


class FileOperations:
    """Copy, delete, mkdir and timestamp updates with retries.

    Every mutating call is attempted up to ``max_retries`` times when it
    fails with a transient :class:`OSError` (sharing violations, busy
    devices, ...). Logical errors are raised immediately.

    Examples:
        >>> ops = FileOperations()
        >>> ops.copy_file("/data/app/config.json", "/backup/app/config.json")
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize file operations.

        Args:
            max_retries: Total number of attempts per operation (default: 5)
            retry_delay: Base delay in seconds, multiplied by the attempt
                number (default: 0.5)
            sleep: Sleep function, replaceable in tests
        """
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if an operation should be retried.

        Args:
            exception: The exception that occurred
            attempt: Attempt number that just failed (1-based)

        Returns:
            True if the operation should be retried, False otherwise
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(exception, NON_RETRYABLE_ERRORS):
            return False
        return isinstance(exception, OSError)

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Linear backoff: attempt number times the base delay."""
        return attempt * self.retry_delay

    def _run_with_retry(self, description: str, operation: Callable[[], T]) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return operation()
            except OSError as e:
                if not self._should_retry(e, attempt):
                    raise
                delay = self._calculate_retry_delay(attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_retries}): "
                    f"{e}. Retrying in {delay:.1f}s"
                )
                self._sleep(delay)

    def copy_file(self, source: PathLike, destination: PathLike) -> None:
        """Copy a whole file, creating the destination's parent directories.

        Args:
            source: File to copy
            destination: Target file path, overwritten if present
        """
        destination = Path(destination)

        def _copy() -> None:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)

        self._run_with_retry(f"Copy {source} -> {destination}", _copy)
        logger.debug(f"Copied {source} -> {destination}")

    def delete_file(self, path: PathLike, use_trash: bool = False) -> None:
        """Delete a file.

        Args:
            path: File to delete
            use_trash: If True, move to the OS trash instead of unlinking
        """
        path = Path(path)

        def _delete() -> None:
            if use_trash:
                send2trash(str(path))
            else:
                path.unlink()

        self._run_with_retry(f"Delete {path}", _delete)
        logger.info(f"Deleted {path}{' (moved to trash)' if use_trash else ''}")

    def create_directory(self, path: PathLike) -> None:
        """Create a directory and its parents; existing directories are fine."""
        path = Path(path)
        self._run_with_retry(
            f"Create directory {path}",
            lambda: path.mkdir(parents=True, exist_ok=True),
        )

    def set_modified_time(self, path: PathLike, mtime: float) -> None:
        """Set a file's access and modification time to ``mtime``."""
        self._run_with_retry(
            f"Set modification time of {path}",
            lambda: os.utime(path, (mtime, mtime)),
        )

    def delete_empty_directories(self, root: PathLike) -> int:
        """Remove empty directories below ``root``, deepest first.

        The root itself is kept. Directories that cannot be removed are
        logged and skipped.

        Args:
            root: Directory to prune

        Returns:
            Number of directories removed
        """
        root = Path(root)
        if not root.is_dir():
            return 0

        removed = 0
        for dirpath, _dirnames, _filenames in os.walk(root, topdown=False):
            directory = Path(dirpath)
            if directory == root:
                continue
            try:
                if any(directory.iterdir()):
                    continue
                self._run_with_retry(f"Remove directory {directory}", directory.rmdir)
                removed += 1
                logger.info(f"Removed empty directory {directory}")
            except OSError as e:
                logger.warning(f"Could not remove directory {directory}: {e}")
        return removed
