"""Resolve path specifications into flat file listings."""

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from ..utils import NO_PATH_SPEC, timestamp_to_utc
from .report import PathIssue, PathIssueSource, PathIssueType
from .special_folders import SpecialFolderResolver

logger = logging.getLogger(__name__)

# Specs ending in either separator denote a directory tree on every platform
DIRECTORY_SPEC_SUFFIXES = ("/", "\\")


def is_directory_spec(path_spec: str) -> bool:
    return path_spec.endswith(DIRECTORY_SPEC_SUFFIXES)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative key (forward slashes, no leading separator)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp, i.e. UTC)"""

    @property
    def modified_utc(self) -> Optional[datetime]:
        return timestamp_to_utc(self.mtime)

    @classmethod
    def from_path(cls, file_path: Path, relative_path: str) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            relative_path: Key the file is stored under

        Returns:
            LocalFile instance

        Raises:
            OSError: If the file cannot be stat'ed
        """
        stat = file_path.stat()
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


@dataclass
class ScanResult:
    """Files and problems collected for one side of a comparison."""

    files: dict[str, LocalFile] = field(default_factory=dict)
    """Files keyed by relative key, first occurrence wins"""

    issues: list[PathIssue] = field(default_factory=list)

    key_fold: Optional[Callable[[str], str]] = field(
        default=None, repr=False, compare=False
    )
    """Maps a key to the form used for lookups (None: exact match)"""

    _folded: dict[str, str] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        for key in self.files:
            self._folded.setdefault(self._fold(key), key)

    def _fold(self, key: str) -> str:
        return self.key_fold(key) if self.key_fold else key

    @property
    def is_effectively_empty(self) -> bool:
        """True when no file was collected across all specs."""
        return not self.files

    def get(self, key: str) -> Optional[LocalFile]:
        """Return the file stored under ``key`` or an equivalent spelling."""
        stored = self._folded.get(self._fold(key))
        return self.files[stored] if stored is not None else None

    def has_key(self, key: str) -> bool:
        return self._fold(key) in self._folded

    def add_file(self, local_file: LocalFile) -> bool:
        """Store a file under its key unless an equivalent key is taken.

        Returns:
            True if the file was stored
        """
        folded = self._fold(local_file.relative_path)
        if folded in self._folded:
            return False
        self._folded[folded] = local_file.relative_path
        self.files[local_file.relative_path] = local_file
        return True


class PathContentScanner:
    """Turns path specifications into a keyed file listing.

    Problems never raise: every unresolvable, missing, empty or unreadable
    path becomes a :class:`PathIssue` and scanning moves on to the next
    spec.

    Examples:
        >>> scanner = PathContentScanner()
        >>> result = scanner.scan(["%Documents%/notes/"])
        >>> for key, local_file in result.files.items():
        ...     print(key, local_file.size)
    """

    def __init__(self, resolver: Optional[SpecialFolderResolver] = None):
        """Initialize path content scanner.

        Args:
            resolver: Special-folder resolver used for expansion and the
                default relative keys
        """
        self.resolver = resolver or SpecialFolderResolver()

    def scan(
        self,
        path_specs: Optional[Iterable[Optional[str]]],
        relative_key: Optional[Callable[[str], str]] = None,
        issue_source: PathIssueSource = PathIssueSource.APPLICATION,
        base_dir: Optional[Union[str, Path]] = None,
    ) -> ScanResult:
        """Scan path specs into files and issues.

        Args:
            path_specs: Path specifications; directory specs end with a
                separator
            relative_key: Maps an absolute file path to its key. Defaults to
                the resolver's :meth:`~SpecialFolderResolver.relative_key`.
            issue_source: Source recorded on every issue
            base_dir: When given, keys are the file paths relative to this
                directory (used for backup subtrees)

        Returns:
            ScanResult with files, issues and the emptiness flag
        """
        result = ScanResult(key_fold=self.resolver.fold_key)
        specs = list(path_specs or [])

        if not any(spec is not None and spec.strip() for spec in specs):
            result.issues.append(
                PathIssue(
                    path_spec=NO_PATH_SPEC,
                    expanded_path=None,
                    issue_type=PathIssueType.PATH_SPEC_NULL_OR_EMPTY,
                    source=issue_source,
                    description="No path specifications are configured.",
                )
            )
            return result

        key_func = self._key_function(relative_key, base_dir)

        for spec in specs:
            if spec is None or not spec.strip():
                result.issues.append(
                    PathIssue(
                        path_spec=spec or "",
                        expanded_path=None,
                        issue_type=PathIssueType.PATH_SPEC_NULL_OR_EMPTY,
                        source=issue_source,
                        description="Path specification is empty.",
                    )
                )
                continue

            expanded = self.resolver.expand(spec)
            if not expanded or not expanded.strip():
                result.issues.append(
                    PathIssue(
                        path_spec=spec,
                        expanded_path=None,
                        issue_type=PathIssueType.PATH_UNEXPANDABLE,
                        source=issue_source,
                        description=f"Path '{spec}' could not be expanded.",
                    )
                )
                continue

            if is_directory_spec(spec):
                self._scan_directory(spec, expanded, key_func, issue_source, result)
            else:
                self._scan_file(spec, expanded, key_func, issue_source, result)

        return result

    def _key_function(
        self,
        relative_key: Optional[Callable[[str], str]],
        base_dir: Optional[Union[str, Path]],
    ) -> Callable[[str], str]:
        if base_dir is not None:
            base = Path(base_dir)

            def _relative_to_base(file_path: str) -> str:
                return Path(file_path).relative_to(base).as_posix()

            return _relative_to_base
        return relative_key or self.resolver.relative_key

    def _scan_directory(
        self,
        spec: str,
        expanded: str,
        key_func: Callable[[str], str],
        issue_source: PathIssueSource,
        result: ScanResult,
    ) -> None:
        directory = Path(expanded.rstrip("/\\") or expanded)

        try:
            if not directory.is_dir():
                result.issues.append(
                    PathIssue(
                        path_spec=spec,
                        expanded_path=str(directory),
                        issue_type=PathIssueType.PATH_NOT_FOUND,
                        source=issue_source,
                        description=f"Directory '{directory}' does not exist.",
                    )
                )
                return
        except PermissionError as e:
            result.issues.append(
                self._inaccessible(spec, str(directory), issue_source, e)
            )
            return

        walk_errors: list[OSError] = []
        enumerated = 0
        for dirpath, dirnames, filenames in os.walk(
            directory, onerror=walk_errors.append
        ):
            dirnames.sort()
            for filename in sorted(filenames):
                enumerated += 1
                file_path = Path(dirpath) / filename
                self._add_file(spec, file_path, key_func, issue_source, result)

        for error in walk_errors:
            failed_path = error.filename or str(directory)
            if isinstance(error, FileNotFoundError):
                result.issues.append(
                    PathIssue(
                        path_spec=spec,
                        expanded_path=str(failed_path),
                        issue_type=PathIssueType.PATH_NOT_FOUND,
                        source=issue_source,
                        description=(
                            f"Directory '{failed_path}' disappeared during the scan."
                        ),
                    )
                )
            else:
                result.issues.append(
                    self._inaccessible(spec, str(failed_path), issue_source, error)
                )

        if enumerated == 0 and not walk_errors:
            result.issues.append(
                PathIssue(
                    path_spec=spec,
                    expanded_path=str(directory),
                    issue_type=PathIssueType.PATH_IS_EFFECTIVELY_EMPTY,
                    source=issue_source,
                    description=f"Directory '{directory}' contains no files.",
                )
            )

    def _scan_file(
        self,
        spec: str,
        expanded: str,
        key_func: Callable[[str], str],
        issue_source: PathIssueSource,
        result: ScanResult,
    ) -> None:
        file_path = Path(expanded)
        try:
            exists = file_path.is_file()
        except PermissionError as e:
            result.issues.append(self._inaccessible(spec, expanded, issue_source, e))
            return

        if not exists:
            result.issues.append(
                PathIssue(
                    path_spec=spec,
                    expanded_path=expanded,
                    issue_type=PathIssueType.PATH_NOT_FOUND,
                    source=issue_source,
                    description=f"File '{expanded}' does not exist.",
                )
            )
            return

        self._add_file(spec, file_path, key_func, issue_source, result)

    def _add_file(
        self,
        spec: str,
        file_path: Path,
        key_func: Callable[[str], str],
        issue_source: PathIssueSource,
        result: ScanResult,
    ) -> bool:
        """Stat a file and store it under its key.

        Returns:
            True if the file was collected
        """
        key = key_func(str(file_path))
        existing = result.get(key)
        if existing is not None:
            logger.debug(
                f"Skipping {file_path}: key {key} already used by {existing.path}"
            )
            return False

        try:
            result.add_file(LocalFile.from_path(file_path, key))
        except FileNotFoundError:
            result.issues.append(
                PathIssue(
                    path_spec=spec,
                    expanded_path=str(file_path),
                    issue_type=PathIssueType.PATH_NOT_FOUND,
                    source=issue_source,
                    description=f"File '{file_path}' disappeared during the scan.",
                )
            )
            return False
        except OSError as e:
            result.issues.append(
                self._inaccessible(spec, str(file_path), issue_source, e)
            )
            return False
        return True

    @staticmethod
    def _inaccessible(
        spec: str, path: str, issue_source: PathIssueSource, error: OSError
    ) -> PathIssue:
        return PathIssue(
            path_spec=spec,
            expanded_path=path,
            issue_type=PathIssueType.PATH_INACCESSIBLE,
            source=issue_source,
            description=f"Cannot access '{path}': {error.strerror or error}",
        )
