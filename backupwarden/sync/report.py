"""Per-application sync reports and status derivation."""

import logging
from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from ..utils import NO_PATH_SPEC, format_timestamp

if TYPE_CHECKING:
    from .scanner import LocalFile

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    """Outcome of a status check, backup or restore for one application."""

    UNKNOWN = "unknown"
    IN_SYNC = "in_sync"
    OUT_OF_SYNC = "out_of_sync"
    SYNCING = "syncing"
    """Transient marker emitted before work on an application starts"""
    FAILED = "failed"
    WARNING = "warning"
    NOT_YET_BACKED_UP = "not_yet_backed_up"

    @property
    def display_name(self) -> str:
        return _STATUS_NAMES[self]


class PathIssueType(str, Enum):
    """Kinds of path-level problems."""

    PATH_SPEC_NULL_OR_EMPTY = "path_spec_null_or_empty"
    PATH_UNEXPANDABLE = "path_unexpandable"
    PATH_NOT_FOUND = "path_not_found"
    PATH_INACCESSIBLE = "path_inaccessible"
    PATH_IS_EFFECTIVELY_EMPTY = "path_is_effectively_empty"
    OPERATION_PREVENTED = "operation_prevented"
    OPERATION_FAILED = "operation_failed"

    @property
    def display_name(self) -> str:
        return _ISSUE_TYPE_NAMES[self]


class PathIssueSource(str, Enum):
    """Side of the operation a path issue belongs to."""

    APPLICATION = "application"
    BACKUP_LOCATION = "backup_location"
    OPERATION = "operation"

    @property
    def display_name(self) -> str:
        return _ISSUE_SOURCE_NAMES[self]


class FileDifferenceType(str, Enum):
    """Kinds of per-file divergence between live and backup copies."""

    ONLY_IN_APPLICATION = "only_in_application"
    ONLY_IN_BACKUP = "only_in_backup"
    CONTENT_MISMATCH = "content_mismatch"
    OPERATION_FAILED = "operation_failed"

    @property
    def display_name(self) -> str:
        return _DIFFERENCE_TYPE_NAMES[self]


_STATUS_NAMES = {
    SyncStatus.UNKNOWN: "Unknown",
    SyncStatus.IN_SYNC: "In Sync",
    SyncStatus.OUT_OF_SYNC: "Out of Sync",
    SyncStatus.SYNCING: "Syncing in Progress",
    SyncStatus.FAILED: "Operation Failed",
    SyncStatus.WARNING: "Completed with Warnings",
    SyncStatus.NOT_YET_BACKED_UP: "Not Yet Backed Up",
}

_ISSUE_TYPE_NAMES = {
    PathIssueType.PATH_SPEC_NULL_OR_EMPTY: "Path Not Specified",
    PathIssueType.PATH_UNEXPANDABLE: "Path Unexpandable",
    PathIssueType.PATH_NOT_FOUND: "Path Not Found",
    PathIssueType.PATH_INACCESSIBLE: "Path Inaccessible",
    PathIssueType.PATH_IS_EFFECTIVELY_EMPTY: "Directory Empty",
    PathIssueType.OPERATION_PREVENTED: "Operation Prevented",
    PathIssueType.OPERATION_FAILED: "Operation Failed on Path",
}

_ISSUE_SOURCE_NAMES = {
    PathIssueSource.APPLICATION: "App",
    PathIssueSource.BACKUP_LOCATION: "Backup",
    PathIssueSource.OPERATION: "Operation",
}

_DIFFERENCE_TYPE_NAMES = {
    FileDifferenceType.ONLY_IN_APPLICATION: "Only in App",
    FileDifferenceType.ONLY_IN_BACKUP: "Only in Backup",
    FileDifferenceType.CONTENT_MISMATCH: "Content Mismatch",
    FileDifferenceType.OPERATION_FAILED: "Operation Failed on File",
}

# Differences that mean live and backup content diverge
DIVERGENCE_TYPES = frozenset(
    {
        FileDifferenceType.ONLY_IN_APPLICATION,
        FileDifferenceType.ONLY_IN_BACKUP,
        FileDifferenceType.CONTENT_MISMATCH,
    }
)


def _declaration_index(member: Enum) -> int:
    return list(type(member)).index(member)


@dataclass(frozen=True)
class PathIssue:
    """A problem with one path specification or with an operation on it."""

    path_spec: str
    """Original path spec, the backup folder, or "N/A" """

    expanded_path: Optional[str]
    """Expanded filesystem path, if expansion got that far"""

    issue_type: PathIssueType
    source: PathIssueSource
    description: str

    def with_source(
        self, source: PathIssueSource, prefix: Optional[str] = None
    ) -> "PathIssue":
        """Return a copy attributed to another source.

        Args:
            source: New issue source
            prefix: Optional text prepended to the description
        """
        description = f"{prefix} {self.description}" if prefix else self.description
        return replace(self, source=source, description=description)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path_spec": self.path_spec,
            "expanded_path": self.expanded_path,
            "issue_type": self.issue_type.value,
            "source": self.source.value,
            "description": self.description,
        }

    def __str__(self) -> str:
        shown_path = self.expanded_path or self.path_spec
        description = self.description
        if shown_path:
            description = description.replace(f"'{shown_path}'", "(this path)")
        return (
            f"[{self.source.display_name} - {self.issue_type.display_name}] "
            f"{shown_path}: {description}"
        )


@dataclass(frozen=True)
class FileDifference:
    """How one relative key differs between the live and the backup side."""

    relative_path: str
    difference_type: FileDifferenceType
    description: str = ""
    application_file: Optional["LocalFile"] = None
    backup_file: Optional["LocalFile"] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "relative_path": self.relative_path,
            "difference_type": self.difference_type.value,
            "description": self.description,
        }
        for name, local_file in (
            ("application_file", self.application_file),
            ("backup_file", self.backup_file),
        ):
            if local_file is not None:
                data[name] = {
                    "path": str(local_file.path),
                    "size": local_file.size,
                    "modified": format_timestamp(local_file.mtime),
                }
        return data

    def __str__(self) -> str:
        return (
            f"[{self.difference_type.display_name}] "
            f"{self.relative_path}: {self.description}"
        )


def is_fatal_issue(issue: PathIssue) -> bool:
    """Whether an issue blocks comparison and forces a FAILED status.

    Fatal are: an application without any path spec, application paths
    that cannot be expanded or read, and any failed operation.
    """
    if issue.issue_type == PathIssueType.OPERATION_FAILED:
        return True
    if issue.source != PathIssueSource.APPLICATION:
        return False
    if issue.issue_type == PathIssueType.PATH_SPEC_NULL_OR_EMPTY:
        return issue.path_spec == NO_PATH_SPEC
    return issue.issue_type in (
        PathIssueType.PATH_UNEXPANDABLE,
        PathIssueType.PATH_INACCESSIBLE,
    )


def _is_warning_issue(issue: PathIssue) -> bool:
    if issue.issue_type in (
        PathIssueType.PATH_IS_EFFECTIVELY_EMPTY,
        PathIssueType.PATH_NOT_FOUND,
        PathIssueType.OPERATION_PREVENTED,
    ):
        return True
    if issue.issue_type == PathIssueType.PATH_INACCESSIBLE:
        return issue.source != PathIssueSource.APPLICATION
    # A blank entry next to real specs; "N/A" is fatal and handled earlier
    return issue.issue_type == PathIssueType.PATH_SPEC_NULL_OR_EMPTY


@dataclass
class AppSyncReport:
    """Aggregate outcome for one application in one operation.

    Examples:
        >>> report = AppSyncReport(app_id="notes", app_backup_root_path="/b/notes/")
        >>> report.update_overall_status()
        <SyncStatus.IN_SYNC: 'in_sync'>
    """

    app_id: str = ""
    app_backup_root_path: str = ""
    """Backup folder of the application, always ending with a separator"""

    path_issues: list[PathIssue] = field(default_factory=list)
    file_differences: list[FileDifference] = field(default_factory=list)
    overall_status: SyncStatus = SyncStatus.UNKNOWN

    @classmethod
    def syncing(cls, app_id: str, app_backup_root_path: str = "") -> "AppSyncReport":
        """Create the transient report announced before work starts."""
        return cls(
            app_id=app_id,
            app_backup_root_path=app_backup_root_path,
            overall_status=SyncStatus.SYNCING,
        )

    def add_issue(self, issue: PathIssue) -> None:
        self.path_issues.append(issue)

    def add_issues(self, issues: list[PathIssue]) -> None:
        self.path_issues.extend(issues)

    def add_difference(self, difference: FileDifference) -> None:
        self.file_differences.append(difference)

    @property
    def has_fatal_issue(self) -> bool:
        return any(is_fatal_issue(issue) for issue in self.path_issues)

    @property
    def is_backup_root_missing(self) -> bool:
        return bool(self.app_backup_root_path) and any(
            self._is_missing_root_issue(issue) for issue in self.path_issues
        )

    def _is_missing_root_issue(self, issue: PathIssue) -> bool:
        return (
            issue.source == PathIssueSource.BACKUP_LOCATION
            and issue.issue_type == PathIssueType.PATH_NOT_FOUND
            and issue.path_spec == self.app_backup_root_path
        )

    def _only_missing_backup_elements(self) -> bool:
        """True when nothing but the missing backup explains the status."""
        absent_types = (
            PathIssueType.PATH_NOT_FOUND,
            PathIssueType.PATH_IS_EFFECTIVELY_EMPTY,
        )
        issues_expected = all(
            self._is_missing_root_issue(issue)
            or (
                issue.source == PathIssueSource.APPLICATION
                and issue.issue_type in absent_types
            )
            for issue in self.path_issues
        )
        return (
            issues_expected
            and self.is_backup_root_missing
            and all(
                diff.difference_type == FileDifferenceType.ONLY_IN_APPLICATION
                for diff in self.file_differences
            )
        )

    def update_overall_status(self) -> SyncStatus:
        """Recompute ``overall_status`` from the issues and differences."""
        self.overall_status = determine_overall_status(self)
        return self.overall_status

    def summary(self, max_types: int = 2) -> str:
        """Render a short multi-line summary.

        Args:
            max_types: How many issue/difference types to name per group,
                most frequent first

        Returns:
            Status line followed by per-source issue counts and the
            difference count
        """
        lines = [f"Status: {self.overall_status.display_name}"]

        by_source: dict[PathIssueSource, list[PathIssue]] = {}
        for issue in self.path_issues:
            by_source.setdefault(issue.source, []).append(issue)

        for source in sorted(by_source, key=_declaration_index):
            issues = by_source[source]
            counts = Counter(issue.issue_type for issue in issues)
            lines.append(
                f"• {source.display_name} Path Issues: {len(issues)}"
                f"{_format_top_counts(counts, max_types)}"
            )

        if self.file_differences:
            counts = Counter(diff.difference_type for diff in self.file_differences)
            lines.append(
                f"• File Differences: {len(self.file_differences)}"
                f"{_format_top_counts(counts, max_types)}"
            )

        return "\n".join(lines)

    def details(self) -> str:
        """Render every issue and difference, sorted by source and type."""
        lines = [f"Overall Status: {self.overall_status.display_name}"]

        if self.path_issues:
            lines.append("Path Issues:")
            for issue in sorted(
                self.path_issues,
                key=lambda i: (
                    _declaration_index(i.source),
                    _declaration_index(i.issue_type),
                ),
            ):
                lines.append(f"  - {issue}")

        if self.file_differences:
            lines.append("File Differences:")
            for diff in sorted(
                self.file_differences,
                key=lambda d: (_declaration_index(d.difference_type), d.relative_path),
            ):
                lines.append(f"  - {diff}")

        if self.overall_status == SyncStatus.NOT_YET_BACKED_UP:
            if self._only_missing_backup_elements():
                lines.append("Application data is present; no backup performed yet.")
        elif not self.path_issues and not self.file_differences:
            lines.append("No issues or differences found.")

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "app_id": self.app_id,
            "status": self.overall_status.value,
            "app_backup_root_path": self.app_backup_root_path,
            "path_issues": [issue.to_dict() for issue in self.path_issues],
            "file_differences": [diff.to_dict() for diff in self.file_differences],
        }


def _format_top_counts(counts: Counter, max_types: int) -> str:
    if not counts:
        return ""
    # Ties keep declaration order
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], _declaration_index(kv[0])))
    parts = [f"{count} {kind.display_name}" for kind, count in ranked[:max_types]]
    if len(ranked) > max_types:
        parts.append("...")
    return f" ({', '.join(parts)})"


def determine_overall_status(report: AppSyncReport) -> SyncStatus:
    """Derive the status of a report from its issues and differences.

    Rules are applied in priority order, the first match wins:

    1. FAILED on a fatal issue (see :func:`is_fatal_issue`) or any failed
       file operation.
    2. NOT_YET_BACKED_UP when the backup folder is missing, every other
       issue is application-side and every difference is ONLY_IN_APPLICATION.
    3. FAILED when the backup folder is missing in any other shape.
    4. OUT_OF_SYNC on any content divergence.
    5. WARNING on non-fatal path issues.
    6. IN_SYNC when there is nothing to report.

    Args:
        report: Report to evaluate; it is not modified

    Returns:
        Derived status (UNKNOWN only if no rule matched)
    """
    issues = report.path_issues
    differences = report.file_differences

    if any(is_fatal_issue(issue) for issue in issues) or any(
        diff.difference_type == FileDifferenceType.OPERATION_FAILED
        for diff in differences
    ):
        return SyncStatus.FAILED

    if report.is_backup_root_missing:
        consistent = all(
            report._is_missing_root_issue(issue)
            or issue.source == PathIssueSource.APPLICATION
            for issue in issues
        ) and all(
            diff.difference_type == FileDifferenceType.ONLY_IN_APPLICATION
            for diff in differences
        )
        return SyncStatus.NOT_YET_BACKED_UP if consistent else SyncStatus.FAILED

    if any(diff.difference_type in DIVERGENCE_TYPES for diff in differences):
        return SyncStatus.OUT_OF_SYNC

    if any(_is_warning_issue(issue) for issue in issues):
        return SyncStatus.WARNING

    if not issues and not differences:
        return SyncStatus.IN_SYNC

    logger.warning(
        f"No status rule matched for {report.app_id or 'application'} "
        f"({len(issues)} issues, {len(differences)} differences)"
    )
    return SyncStatus.UNKNOWN
