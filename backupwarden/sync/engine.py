"""Core sync engine for status checks, backups and restores."""

import logging
import os
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..exceptions import SyncCancelledError
from ..models import AppConfig
from ..utils import DEFAULT_TIME_TOLERANCE, NO_PATH_SPEC
from .comparator import FileComparator, files_match
from .concurrency import CancellationToken
from .modes import SyncMode
from .operations import FileOperations
from .progress import (
    AppStatusCallback,
    CallbackDispatcher,
    ProgressCallback,
    SyncProgressTracker,
)
from .report import (
    AppSyncReport,
    FileDifference,
    FileDifferenceType,
    PathIssue,
    PathIssueSource,
    PathIssueType,
)
from .scanner import LocalFile, PathContentScanner, ScanResult, is_directory_spec
from .special_folders import SpecialFolderResolver

logger = logging.getLogger(__name__)

BACKUP_ISSUE_PREFIX = "Backup location:"

# Source issues that protect a spec's counterpart from Sync-mode deletion
PROTECTING_ISSUE_TYPES = (
    PathIssueType.PATH_NOT_FOUND,
    PathIssueType.PATH_IS_EFFECTIVELY_EMPTY,
)


@dataclass(frozen=True)
class SpecEntry:
    """One configured path spec with its expansion and key prefix."""

    spec: str
    expanded_path: str
    key: str
    """Relative key of the file, or of the directory for directory specs"""

    is_directory: bool


class SpecIndex:
    """Maps relative keys and live paths back to their originating spec.

    Built once per application. When specs nest, the most specific
    (longest) match wins.
    """

    def __init__(self, entries: list[SpecEntry], resolver: SpecialFolderResolver):
        self.entries = entries
        self.resolver = resolver

    @classmethod
    def build(cls, app: AppConfig, resolver: SpecialFolderResolver) -> "SpecIndex":
        """Index the expandable specs of an application.

        Args:
            app: Application whose specs are indexed
            resolver: Resolver used for expansion and keys

        Returns:
            SpecIndex instance
        """
        entries: list[SpecEntry] = []
        for spec in app.paths:
            if not spec or not spec.strip():
                continue
            expanded = resolver.expand(spec)
            if not expanded:
                continue
            is_directory = is_directory_spec(spec)
            if is_directory:
                expanded = expanded.rstrip("/\\") or expanded
            entries.append(
                SpecEntry(
                    spec=spec,
                    expanded_path=expanded,
                    key=resolver.relative_key(expanded),
                    is_directory=is_directory,
                )
            )
        return cls(entries, resolver)

    def entry_for_key(self, key: str) -> Optional[SpecEntry]:
        fold = self.resolver.fold_key
        target = fold(key)
        matches = []
        for entry in self.entries:
            prefix = fold(entry.key)
            if entry.is_directory:
                if target.startswith(prefix + "/"):
                    matches.append(entry)
            elif target == prefix:
                matches.append(entry)
        return self._most_specific(matches)

    def spec_for(self, key: str) -> Optional[str]:
        """Return the spec that produced a relative key, if any."""
        entry = self.entry_for_key(key)
        return entry.spec if entry else None

    def entry_for_path(self, path: str) -> Optional[SpecEntry]:
        """Return the spec whose configured location contains ``path``."""
        p = self.resolver.pathmod
        target = p.normcase(p.normpath(path))
        matches = []
        for entry in self.entries:
            location = p.normcase(p.normpath(entry.expanded_path))
            if entry.is_directory:
                if target.startswith(location.rstrip(p.sep) + p.sep):
                    matches.append(entry)
            elif target == location:
                matches.append(entry)
        return self._most_specific(matches)

    @staticmethod
    def _most_specific(entries: Iterable[SpecEntry]) -> Optional[SpecEntry]:
        best: Optional[SpecEntry] = None
        for entry in entries:
            if best is None or len(entry.key) > len(best.key):
                best = entry
        return best


class SyncEngine:
    """Orchestrates status checks, backups and restores per application.

    Applications are processed strictly one after another. Path problems
    become :class:`PathIssue` entries, per-file failures become
    :class:`FileDifference` entries, and an unexpected error only fails the
    application it happened in.

    Examples:
        >>> engine = SyncEngine()
        >>> reports = engine.backup(apps, "/mnt/backup", SyncMode.COPY)
        >>> for report in reports:
        ...     print(report.app_id, report.overall_status.display_name)
    """

    def __init__(
        self,
        resolver: Optional[SpecialFolderResolver] = None,
        operations: Optional[FileOperations] = None,
        dispatcher: Optional[CallbackDispatcher] = None,
        time_tolerance: float = DEFAULT_TIME_TOLERANCE,
        use_trash: bool = False,
    ):
        """Initialize sync engine.

        Args:
            resolver: Special-folder resolver (default: platform table)
            operations: Retrying file operations
            dispatcher: Delivers progress and status callbacks
            time_tolerance: Allowed modification time drift in seconds
            use_trash: Move deleted files to the OS trash instead of
                unlinking them
        """
        self.resolver = resolver or SpecialFolderResolver()
        self.scanner = PathContentScanner(self.resolver)
        self.operations = operations or FileOperations()
        self.dispatcher = dispatcher
        self.time_tolerance = time_tolerance
        self.comparator = FileComparator(time_tolerance)
        self.use_trash = use_trash
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # =========================
    # Public operations
    # =========================

    def update_status(
        self,
        apps: Optional[Iterable[Optional[AppConfig]]],
        backup_root: Union[str, Path],
        on_app_status: Optional[AppStatusCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[AppSyncReport]:
        """Compare live and backup content of each application.

        Read-only: nothing on disk is modified.

        Args:
            apps: Applications to check
            backup_root: Folder holding one subfolder per application
            on_app_status: Called once per application with its report
            cancel_token: Optional cancellation token

        Returns:
            Final reports in application order

        Raises:
            ValueError: If ``apps`` is None or ``backup_root`` is blank
        """
        app_list, root = self._validate_arguments(apps, backup_root)
        tracker = SyncProgressTracker(self.dispatcher, None, on_app_status)
        return self._run(
            app_list,
            root,
            lambda app, app_root, report, token: self._status_app(
                app, app_root, report
            ),
            tracker,
            cancel_token,
            announce=False,
        )

    def backup(
        self,
        apps: Optional[Iterable[Optional[AppConfig]]],
        backup_root: Union[str, Path],
        mode: Union[SyncMode, str] = SyncMode.COPY,
        progress: Optional[ProgressCallback] = None,
        on_app_status: Optional[AppStatusCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[AppSyncReport]:
        """Copy live application files into ``backup_root/<app id>/``.

        Args:
            apps: Applications to back up
            backup_root: Folder holding one subfolder per application
            mode: COPY only adds and overwrites, SYNC also deletes backup
                files that no longer exist live (unless protected)
            progress: Called with 0..100 after each application
            on_app_status: Called with a SYNCING report, then the final one
            cancel_token: Optional cancellation token

        Returns:
            Final reports in application order

        Raises:
            ValueError: On invalid arguments
        """
        app_list, root = self._validate_arguments(apps, backup_root)
        sync_mode = SyncMode.from_string(mode)
        tracker = SyncProgressTracker(self.dispatcher, progress, on_app_status)
        return self._run(
            app_list,
            root,
            lambda app, app_root, report, token: self._backup_app(
                app, app_root, sync_mode, report, token
            ),
            tracker,
            cancel_token,
        )

    def restore(
        self,
        apps: Optional[Iterable[Optional[AppConfig]]],
        backup_root: Union[str, Path],
        mode: Union[SyncMode, str] = SyncMode.COPY,
        progress: Optional[ProgressCallback] = None,
        on_app_status: Optional[AppStatusCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[AppSyncReport]:
        """Copy backed-up files back to their live locations.

        Args:
            apps: Applications to restore
            backup_root: Folder holding one subfolder per application
            mode: COPY only adds and overwrites, SYNC also deletes live files
                missing from the backup (unless protected)
            progress: Called with 0..100 after each application
            on_app_status: Called with a SYNCING report, then the final one
            cancel_token: Optional cancellation token

        Returns:
            Final reports in application order

        Raises:
            ValueError: On invalid arguments
        """
        app_list, root = self._validate_arguments(apps, backup_root)
        sync_mode = SyncMode.from_string(mode)
        tracker = SyncProgressTracker(self.dispatcher, progress, on_app_status)
        return self._run(
            app_list,
            root,
            lambda app, app_root, report, token: self._restore_app(
                app, app_root, sync_mode, report, token
            ),
            tracker,
            cancel_token,
        )

    # =========================
    # Background execution
    # =========================

    def start_update_status(self, *args: Any, **kwargs: Any) -> Future:
        """Run :meth:`update_status` on the engine's worker thread."""
        return self._submit(self.update_status, *args, **kwargs)

    def start_backup(self, *args: Any, **kwargs: Any) -> Future:
        """Run :meth:`backup` on the engine's worker thread."""
        return self._submit(self.backup, *args, **kwargs)

    def start_restore(self, *args: Any, **kwargs: Any) -> Future:
        """Run :meth:`restore` on the engine's worker thread."""
        return self._submit(self.restore, *args, **kwargs)

    def close(self) -> None:
        """Shut down the worker thread, waiting for running work."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "SyncEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        with self._executor_lock:
            if self._executor is None:
                # A single worker keeps invocations strictly sequential
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="backupwarden-sync"
                )
            return self._executor.submit(fn, *args, **kwargs)

    # =========================
    # Batch loop
    # =========================

    @staticmethod
    def _validate_arguments(
        apps: Optional[Iterable[Optional[AppConfig]]],
        backup_root: Union[str, Path],
    ) -> tuple[list[AppConfig], Path]:
        if apps is None:
            raise ValueError("apps must not be None")
        if backup_root is None or not str(backup_root).strip():
            raise ValueError("backup_root must not be empty")

        app_list = []
        for app in apps:
            if app is None:
                logger.debug("Skipping empty application entry")
                continue
            app_list.append(app)
        return app_list, Path(backup_root)

    def _run(
        self,
        apps: list[AppConfig],
        backup_root: Path,
        process: Callable[[AppConfig, Path, AppSyncReport, CancellationToken], None],
        tracker: SyncProgressTracker,
        cancel_token: Optional[CancellationToken],
        announce: bool = True,
    ) -> list[AppSyncReport]:
        token = cancel_token or CancellationToken()
        reports: list[AppSyncReport] = []
        total = len(apps)

        if total == 0:
            tracker.report_progress(0, 0)
            return reports

        for processed, app in enumerate(apps, start=1):
            if token.is_cancelled:
                skipped = total - processed + 1
                logger.info(f"Cancelled; {skipped} application(s) skipped")
                break

            report = AppSyncReport(app_id=app.id)
            cancelled = False
            try:
                app_root = self._app_backup_root(backup_root, app, report)
                if announce:
                    tracker.report_status(
                        app, AppSyncReport.syncing(app.id, report.app_backup_root_path)
                    )
                process(app, app_root, report, token)
            except SyncCancelledError:
                cancelled = True
                logger.warning(f"Operation cancelled while processing {app.id}")
                report.add_issue(
                    PathIssue(
                        path_spec=NO_PATH_SPEC,
                        expanded_path=None,
                        issue_type=PathIssueType.OPERATION_PREVENTED,
                        source=PathIssueSource.OPERATION,
                        description="Operation was cancelled before it completed.",
                    )
                )
            except Exception as e:
                logger.exception(f"Unexpected error while processing {app.id}")
                report.add_issue(
                    PathIssue(
                        path_spec=NO_PATH_SPEC,
                        expanded_path=None,
                        issue_type=PathIssueType.OPERATION_FAILED,
                        source=PathIssueSource.OPERATION,
                        description=f"Operation failed due to critical error: {e}",
                    )
                )

            report.update_overall_status()
            logger.debug(f"{app.id}: {report.overall_status.display_name}")
            reports.append(report)
            tracker.report_status(app, report)
            tracker.report_progress(processed, total)

            if cancelled:
                break

        return reports

    # =========================
    # Per-application work
    # =========================

    def _app_backup_root(
        self, backup_root: Path, app: AppConfig, report: AppSyncReport
    ) -> Path:
        app_id = app.id
        if (
            not app_id
            or not app_id.strip()
            or app_id in (".", "..")
            or any(sep in app_id for sep in "/\\")
        ):
            raise ValueError(f"Invalid application id: {app_id!r}")

        app_root = backup_root / app_id
        report.app_backup_root_path = os.path.join(str(app_root), "")
        return app_root

    def _scan_backup(self, report: AppSyncReport, app_root: Path) -> ScanResult:
        """Scan an application's backup folder keyed relative to it."""
        result = self.scanner.scan(
            [report.app_backup_root_path],
            issue_source=PathIssueSource.BACKUP_LOCATION,
            base_dir=app_root,
        )
        result.issues = [
            issue.with_source(PathIssueSource.BACKUP_LOCATION, BACKUP_ISSUE_PREFIX)
            for issue in result.issues
        ]
        return result

    def _needs_copy(self, source: LocalFile, destination: Path) -> bool:
        try:
            existing = LocalFile.from_path(destination, source.relative_path)
        except OSError:
            return True
        return not files_match(source, existing, self.time_tolerance)

    def _copy_with_timestamp(self, source: LocalFile, destination: Path) -> bool:
        """Copy if different, then stamp the source's modification time.

        Returns:
            True if the file was copied, False if it was already up to date
        """
        if not self._needs_copy(source, destination):
            logger.debug(f"Up to date: {destination}")
            return False
        self.operations.copy_file(source.path, destination)
        self.operations.set_modified_time(destination, source.mtime)
        return True

    def _status_app(
        self, app: AppConfig, app_root: Path, report: AppSyncReport
    ) -> None:
        live = self.scanner.scan(app.paths)
        report.add_issues(live.issues)

        backup = self._scan_backup(report, app_root)
        report.add_issues(backup.issues)

        if report.has_fatal_issue:
            logger.warning(f"{app.id}: comparison skipped because of path issues")
            return

        for difference in self.comparator.compare_files(
            live.files, backup.files, self.resolver.fold_key
        ):
            report.add_difference(difference)

    def _backup_app(
        self,
        app: AppConfig,
        app_root: Path,
        mode: SyncMode,
        report: AppSyncReport,
        token: CancellationToken,
    ) -> None:
        source = self.scanner.scan(app.paths)
        report.add_issues(source.issues)
        if report.has_fatal_issue:
            logger.warning(f"{app.id}: backup skipped because of source path issues")
            return

        try:
            self.operations.create_directory(app_root)
        except OSError as e:
            report.add_issue(
                PathIssue(
                    path_spec=report.app_backup_root_path,
                    expanded_path=str(app_root),
                    issue_type=PathIssueType.OPERATION_FAILED,
                    source=PathIssueSource.BACKUP_LOCATION,
                    description=f"Failed to create backup folder: {e}",
                )
            )
            return

        if source.is_effectively_empty:
            if mode.allows_delete:
                logger.warning(f"{app.id}: source is empty, backup folder left as is")
                report.add_issue(
                    PathIssue(
                        path_spec=report.app_backup_root_path,
                        expanded_path=str(app_root),
                        issue_type=PathIssueType.OPERATION_PREVENTED,
                        source=PathIssueSource.BACKUP_LOCATION,
                        description=(
                            "Backup folder will not be cleared because the "
                            "source is empty."
                        ),
                    )
                )
            return

        backed_up: set[str] = set()
        failed: set[str] = set()
        for key, source_file in source.files.items():
            token.raise_if_cancelled()
            destination = app_root.joinpath(*key.split("/"))
            try:
                self._copy_with_timestamp(source_file, destination)
                backed_up.add(key)
            except OSError as e:
                failed.add(key)
                logger.debug(f"Backup of {key} failed: {e}")
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.OPERATION_FAILED,
                        description=f"Failed to copy/update: {e}",
                        application_file=source_file,
                    )
                )

        if mode.allows_delete:
            keep = {self.resolver.fold_key(key) for key in backed_up | failed}
            self._clean_backup(app, app_root, source, keep, report, token)

    def _clean_backup(
        self,
        app: AppConfig,
        app_root: Path,
        source: ScanResult,
        keep: set[str],
        report: AppSyncReport,
        token: CancellationToken,
    ) -> None:
        """Delete backup files absent from the source, except protected ones.

        ``keep`` holds folded keys (see :meth:`SpecialFolderResolver.fold_key`).
        """
        index = SpecIndex.build(app, self.resolver)
        protected_specs = {
            issue.path_spec
            for issue in source.issues
            if issue.source == PathIssueSource.APPLICATION
            and issue.issue_type in PROTECTING_ISSUE_TYPES
        }

        backup = self._scan_backup(report, app_root)
        report.add_issues(
            [
                issue
                for issue in backup.issues
                if issue.issue_type != PathIssueType.PATH_IS_EFFECTIVELY_EMPTY
            ]
        )

        for key, backup_file in backup.files.items():
            if self.resolver.fold_key(key) in keep:
                continue
            token.raise_if_cancelled()

            spec = index.spec_for(key)
            if spec is not None and spec in protected_specs:
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.ONLY_IN_BACKUP,
                        description=(
                            f"Preserved: source path '{spec}' is missing or empty."
                        ),
                        backup_file=backup_file,
                    )
                )
                continue

            try:
                self.operations.delete_file(backup_file.path, use_trash=self.use_trash)
            except OSError as e:
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.OPERATION_FAILED,
                        description=f"Failed to delete from backup (Sync mode): {e}",
                        backup_file=backup_file,
                    )
                )

        self.operations.delete_empty_directories(app_root)

    def _restore_app(
        self,
        app: AppConfig,
        app_root: Path,
        mode: SyncMode,
        report: AppSyncReport,
        token: CancellationToken,
    ) -> None:
        live = self.scanner.scan(app.paths)
        report.add_issues(live.issues)
        if report.has_fatal_issue:
            logger.warning(f"{app.id}: restore skipped because of live path issues")
            return

        backup = self._scan_backup(report, app_root)
        report.add_issues(backup.issues)
        if not app_root.is_dir():
            return

        if any(
            issue.issue_type == PathIssueType.PATH_INACCESSIBLE
            for issue in backup.issues
        ):
            report.add_issue(
                PathIssue(
                    path_spec=report.app_backup_root_path,
                    expanded_path=str(app_root),
                    issue_type=PathIssueType.OPERATION_FAILED,
                    source=PathIssueSource.OPERATION,
                    description="Backup folder could not be read completely.",
                )
            )
            return

        if backup.is_effectively_empty:
            if mode.allows_delete:
                logger.warning(f"{app.id}: backup is empty, live paths left as is")
                report.add_issue(
                    PathIssue(
                        path_spec=NO_PATH_SPEC,
                        expanded_path=None,
                        issue_type=PathIssueType.OPERATION_PREVENTED,
                        source=PathIssueSource.APPLICATION,
                        description=(
                            "Live paths will not be cleared because the backup "
                            "is empty."
                        ),
                    )
                )
            return

        index = SpecIndex.build(app, self.resolver)
        covered_specs: set[str] = set()
        restored_specs: set[str] = set()

        for key, backup_file in backup.files.items():
            token.raise_if_cancelled()

            target = self.resolver.resolve_relative_key(key)
            if not target:
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.OPERATION_FAILED,
                        description="Could not determine the live path for this item.",
                        backup_file=backup_file,
                    )
                )
                continue

            entry = index.entry_for_path(target)
            if entry is None:
                logger.warning(f"{app.id}: {key} maps outside configured paths")
                report.add_issue(
                    PathIssue(
                        path_spec=key,
                        expanded_path=target,
                        issue_type=PathIssueType.OPERATION_PREVENTED,
                        source=PathIssueSource.OPERATION,
                        description=(
                            f"Backup item maps to '{target}', which is outside "
                            f"the configured paths. Skipped."
                        ),
                    )
                )
                continue

            covered_specs.add(entry.spec)
            try:
                self._copy_with_timestamp(backup_file, Path(target))
                restored_specs.add(entry.spec)
            except OSError as e:
                logger.debug(f"Restore of {key} failed: {e}")
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.OPERATION_FAILED,
                        description=f"Failed to restore to live path: {e}",
                        backup_file=backup_file,
                    )
                )

        # Missing or empty live paths that received content are resolved
        report.path_issues = [
            issue
            for issue in report.path_issues
            if not (
                issue.source == PathIssueSource.APPLICATION
                and issue.issue_type in PROTECTING_ISSUE_TYPES
                and issue.path_spec in restored_specs
            )
        ]

        if mode.allows_delete:
            self._clean_live(index, live, backup, covered_specs, report, token)

    def _clean_live(
        self,
        index: SpecIndex,
        live: ScanResult,
        backup: ScanResult,
        covered_specs: set[str],
        report: AppSyncReport,
        token: CancellationToken,
    ) -> None:
        """Delete live files absent from the backup, except protected ones."""
        for key, live_file in live.files.items():
            if backup.has_key(key):
                continue
            token.raise_if_cancelled()

            spec = index.spec_for(key)
            if spec is None or spec not in covered_specs:
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.ONLY_IN_APPLICATION,
                        description=(
                            f"Preserved: backup has no content for '{spec or key}'."
                        ),
                        application_file=live_file,
                    )
                )
                continue

            try:
                self.operations.delete_file(live_file.path, use_trash=self.use_trash)
            except OSError as e:
                report.add_difference(
                    FileDifference(
                        relative_path=key,
                        difference_type=FileDifferenceType.OPERATION_FAILED,
                        description=f"Failed to delete from live path (Sync mode): {e}",
                        application_file=live_file,
                    )
                )

        for entry in index.entries:
            if entry.is_directory and entry.spec in covered_specs:
                self.operations.delete_empty_directories(entry.expanded_path)
