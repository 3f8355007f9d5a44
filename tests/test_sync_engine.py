"""Tests for the SyncEngine class."""

import os
import shutil
import threading
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from backupwarden.models import AppConfig
from backupwarden.sync.concurrency import CancellationToken
from backupwarden.sync.engine import SpecIndex, SyncEngine
from backupwarden.sync.modes import SyncMode
from backupwarden.sync.operations import FileOperations
from backupwarden.sync.progress import QueueDispatcher
from backupwarden.sync.report import (
    FileDifferenceType,
    PathIssueSource,
    PathIssueType,
    SyncStatus,
)
from backupwarden.sync.special_folders import SpecialFolderResolver

CONFIG_KEY = "%Documents%/app/config.json"
FIXED_MTIME = 1_600_000_000.0


def _write(path, content="data", mtime=FIXED_MTIME):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def layout(tmp_path):
    """Fake home folder, empty backup root and a resolver pointing at them."""
    home = tmp_path / "home"
    documents = home / "Documents"
    documents.mkdir(parents=True)
    backup_root = tmp_path / "backup"
    backup_root.mkdir()
    resolver = SpecialFolderResolver(
        {
            "%UserProfile%": str(home),
            "%Documents%": str(documents),
            "%ProgramFiles%": "",
        }
    )
    return SimpleNamespace(
        home=home, documents=documents, backup_root=backup_root, resolver=resolver
    )


@pytest.fixture
def engine(layout):
    """Engine with the test resolver and no retry delays."""
    return SyncEngine(
        resolver=layout.resolver,
        operations=FileOperations(sleep=lambda _delay: None),
    )


def _backup_path(layout, app_id, key):
    return layout.backup_root.joinpath(app_id, *key.split("/"))


class TestConfigFileScenarios:
    """A single-file application through its life cycle."""

    @pytest.fixture
    def app(self, layout):
        _write(layout.documents / "app" / "config.json", '{"theme": "dark"}')
        return AppConfig(id="app", paths=["%Documents%/app/config.json"])

    def test_not_yet_backed_up(self, engine, layout, app):
        """Status against an empty backup root is NotYetBackedUp."""
        (report,) = engine.update_status([app], layout.backup_root)

        assert report.overall_status == SyncStatus.NOT_YET_BACKED_UP
        assert len(report.file_differences) == 1
        difference = report.file_differences[0]
        assert difference.difference_type == FileDifferenceType.ONLY_IN_APPLICATION
        assert difference.relative_path == CONFIG_KEY
        assert report.is_backup_root_missing

    def test_in_sync_after_copy_backup(self, engine, layout, app):
        """A Copy backup makes the next status check InSync."""
        (backup_report,) = engine.backup([app], layout.backup_root, SyncMode.COPY)
        (report,) = engine.update_status([app], layout.backup_root)

        assert backup_report.overall_status == SyncStatus.IN_SYNC
        assert report.overall_status == SyncStatus.IN_SYNC
        backup_file = _backup_path(layout, "app", CONFIG_KEY)
        assert backup_file.read_text() == '{"theme": "dark"}'
        assert backup_file.stat().st_mtime == FIXED_MTIME

    def test_out_of_sync_after_live_edit(self, engine, layout, app):
        """Editing the live file after a backup yields one ContentMismatch."""
        engine.backup([app], layout.backup_root)
        _write(
            layout.documents / "app" / "config.json",
            '{"theme": "light", "font": 12}',
            mtime=FIXED_MTIME + 3600,
        )

        (report,) = engine.update_status([app], layout.backup_root)

        assert report.overall_status == SyncStatus.OUT_OF_SYNC
        assert len(report.file_differences) == 1
        difference = report.file_differences[0]
        assert difference.difference_type == FileDifferenceType.CONTENT_MISMATCH
        assert difference.relative_path == CONFIG_KEY

    def test_sync_restore_recreates_deleted_file(self, engine, layout, app):
        """A Sync restore brings back a deleted file with the backup's timestamp."""
        engine.backup([app], layout.backup_root)
        live_file = layout.documents / "app" / "config.json"
        live_file.unlink()

        (report,) = engine.restore([app], layout.backup_root, SyncMode.SYNC)

        assert live_file.read_text() == '{"theme": "dark"}'
        assert live_file.stat().st_mtime == FIXED_MTIME
        assert report.overall_status == SyncStatus.IN_SYNC
        assert report.path_issues == []


class TestBackup:
    """Tests for backup in both modes."""

    @pytest.fixture
    def app(self, layout):
        _write(layout.documents / "app" / "a.txt", "a")
        _write(layout.documents / "app" / "sub" / "b.txt", "bb")
        return AppConfig(id="app", paths=["%Documents%/app/"])

    def test_copy_backup_is_idempotent(self, engine, layout, app):
        engine.backup([app], layout.backup_root)

        with patch.object(
            engine.operations, "copy_file", wraps=engine.operations.copy_file
        ) as copy_spy:
            (report,) = engine.backup([app], layout.backup_root)

        copy_spy.assert_not_called()
        assert report.overall_status == SyncStatus.IN_SYNC

    def test_copy_backup_keeps_stale_files(self, engine, layout, app):
        stale = _write(_backup_path(layout, "app", "%Documents%/app/old.txt"))

        engine.backup([app], layout.backup_root, "copy")

        assert stale.exists()
        assert _backup_path(layout, "app", "%Documents%/app/sub/b.txt").exists()

    def test_sync_backup_removes_stale_files(self, engine, layout, app):
        stale = _write(_backup_path(layout, "app", "%Documents%/app/gone/old.txt"))

        (report,) = engine.backup([app], layout.backup_root, "SYNC")

        assert not stale.exists()
        assert not stale.parent.exists()
        assert report.overall_status == SyncStatus.IN_SYNC

    def test_sync_backup_moves_stale_files_to_trash(self, layout, app):
        engine = SyncEngine(resolver=layout.resolver, use_trash=True)
        stale = _write(_backup_path(layout, "app", "%Documents%/app/old.txt"))

        with patch("backupwarden.sync.operations.send2trash") as mock_trash:
            engine.backup([app], layout.backup_root, SyncMode.SYNC)

        mock_trash.assert_called_once_with(str(stale))

    def test_sync_backup_with_empty_source_keeps_backup(self, engine, layout):
        (layout.documents / "empty").mkdir()
        kept = _write(_backup_path(layout, "empty", "%Documents%/empty/keep.txt"))
        app = AppConfig(id="empty", paths=["%Documents%/empty/"])

        (report,) = engine.backup([app], layout.backup_root, SyncMode.SYNC)

        assert kept.exists()
        issue_types = {issue.issue_type for issue in report.path_issues}
        assert PathIssueType.PATH_IS_EFFECTIVELY_EMPTY in issue_types
        assert PathIssueType.OPERATION_PREVENTED in issue_types
        assert report.overall_status == SyncStatus.WARNING

    def test_sync_backup_preserves_content_of_missing_spec(self, engine, layout, app):
        app.paths.append("%Documents%/missing/")
        preserved = _write(
            _backup_path(layout, "app", "%Documents%/missing/keep.txt")
        )
        stale = _write(_backup_path(layout, "app", "%Documents%/app/old.txt"))

        (report,) = engine.backup([app], layout.backup_root, SyncMode.SYNC)

        assert preserved.exists()
        assert not stale.exists()
        (difference,) = report.file_differences
        assert difference.difference_type == FileDifferenceType.ONLY_IN_BACKUP
        assert difference.relative_path == "%Documents%/missing/keep.txt"
        assert difference.description.startswith("Preserved:")
        assert report.overall_status == SyncStatus.OUT_OF_SYNC

    def test_copy_failure_is_recorded_per_file(self, engine, layout, app):
        with patch.object(
            engine.operations,
            "copy_file",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            (report,) = engine.backup([app], layout.backup_root)

        assert len(report.file_differences) == 2
        assert all(
            d.difference_type == FileDifferenceType.OPERATION_FAILED
            for d in report.file_differences
        )
        assert report.overall_status == SyncStatus.FAILED

    def test_sync_backup_keeps_backup_copy_when_update_fails(
        self, engine, layout, app
    ):
        engine.backup([app], layout.backup_root)
        _write(layout.documents / "app" / "a.txt", "changed", FIXED_MTIME + 60)
        backed_up = _backup_path(layout, "app", "%Documents%/app/a.txt")
        real_copy = engine.operations.copy_file

        def copy_file(source, destination):
            if destination.name == "a.txt":
                raise PermissionError(13, "Permission denied")
            return real_copy(source, destination)

        with patch.object(engine.operations, "copy_file", side_effect=copy_file):
            (report,) = engine.backup([app], layout.backup_root, SyncMode.SYNC)

        assert backed_up.read_text() == "a"
        (difference,) = report.file_differences
        assert difference.relative_path == "%Documents%/app/a.txt"
        assert difference.difference_type == FileDifferenceType.OPERATION_FAILED
        assert report.overall_status == SyncStatus.FAILED

    def test_sync_backup_delete_failure_is_recorded(self, engine, layout, app):
        stale = _write(_backup_path(layout, "app", "%Documents%/app/old.txt"))

        with patch.object(
            engine.operations,
            "delete_file",
            side_effect=PermissionError(13, "Permission denied"),
        ):
            (report,) = engine.backup([app], layout.backup_root, SyncMode.SYNC)

        assert stale.exists()
        (difference,) = report.file_differences
        assert difference.relative_path == "%Documents%/app/old.txt"
        assert difference.difference_type == FileDifferenceType.OPERATION_FAILED
        assert difference.description.startswith(
            "Failed to delete from backup (Sync mode):"
        )
        assert report.overall_status == SyncStatus.FAILED

    def test_app_without_paths_fails_without_touching_backup(self, engine, layout):
        app = AppConfig(id="nothing", paths=[])

        (report,) = engine.backup([app], layout.backup_root)

        assert report.overall_status == SyncStatus.FAILED
        assert report.path_issues[0].path_spec == "N/A"
        assert not (layout.backup_root / "nothing").exists()

    def test_unexpandable_spec_fails(self, engine, layout):
        app = AppConfig(id="tool", paths=["%ProgramFiles%/Tool/"])

        (report,) = engine.backup([app], layout.backup_root)

        assert report.overall_status == SyncStatus.FAILED
        assert report.path_issues[0].issue_type == PathIssueType.PATH_UNEXPANDABLE

    def test_backup_folder_path_ends_with_separator(self, engine, layout, app):
        (report,) = engine.backup([app], layout.backup_root)

        assert report.app_backup_root_path == str(layout.backup_root / "app") + os.sep


class TestRestore:
    """Tests for restore in both modes."""

    @pytest.fixture
    def app(self, layout):
        _write(layout.documents / "app" / "a.txt", "a")
        _write(layout.documents / "app" / "sub" / "b.txt", "bb")
        return AppConfig(id="app", paths=["%Documents%/app/"])

    def test_sync_round_trip(self, engine, layout, app):
        """Sync backup then Sync restore brings the live side back."""
        engine.backup([app], layout.backup_root, SyncMode.SYNC)
        (layout.documents / "app" / "a.txt").unlink()
        extra = _write(layout.documents / "app" / "sub" / "new.txt", "new")
        _write(layout.documents / "app" / "sub" / "b.txt", "changed", FIXED_MTIME + 60)

        (report,) = engine.restore([app], layout.backup_root, SyncMode.SYNC)
        (status,) = engine.update_status([app], layout.backup_root)

        assert (layout.documents / "app" / "a.txt").read_text() == "a"
        assert (layout.documents / "app" / "sub" / "b.txt").read_text() == "bb"
        assert not extra.exists()
        assert report.overall_status == SyncStatus.IN_SYNC
        assert status.overall_status == SyncStatus.IN_SYNC

    def test_copy_restore_keeps_extra_live_files(self, engine, layout, app):
        engine.backup([app], layout.backup_root)
        extra = _write(layout.documents / "app" / "new.txt", "new")

        engine.restore([app], layout.backup_root, SyncMode.COPY)

        assert extra.exists()

    def test_restore_without_backup_is_not_yet_backed_up(self, engine, layout, app):
        (report,) = engine.restore([app], layout.backup_root, SyncMode.SYNC)

        assert report.overall_status == SyncStatus.NOT_YET_BACKED_UP
        assert (layout.documents / "app" / "a.txt").exists()

    def test_sync_restore_from_empty_backup_keeps_live(self, engine, layout, app):
        (layout.backup_root / "app").mkdir()

        (report,) = engine.restore([app], layout.backup_root, SyncMode.SYNC)

        assert (layout.documents / "app" / "a.txt").exists()
        prevented = [
            issue
            for issue in report.path_issues
            if issue.issue_type == PathIssueType.OPERATION_PREVENTED
        ]
        assert len(prevented) == 1
        assert report.overall_status == SyncStatus.WARNING

    def test_sync_restore_keeps_live_files_of_spec_without_backup(
        self, engine, layout, app
    ):
        engine.backup([app], layout.backup_root)
        _write(layout.home / ".apprc", "rc")
        app.paths.append("%UserProfile%/.apprc")

        (report,) = engine.restore([app], layout.backup_root, SyncMode.SYNC)

        assert (layout.home / ".apprc").exists()
        (difference,) = report.file_differences
        assert difference.difference_type == FileDifferenceType.ONLY_IN_APPLICATION
        assert difference.description.startswith("Preserved:")

    def test_item_outside_configured_paths_is_skipped(self, engine, layout, app):
        engine.backup([app], layout.backup_root)
        _write(_backup_path(layout, "app", "%Documents%/other/x.txt"))

        (report,) = engine.restore([app], layout.backup_root)

        assert not (layout.documents / "other").exists()
        (issue,) = report.path_issues
        assert issue.issue_type == PathIssueType.OPERATION_PREVENTED
        assert issue.source == PathIssueSource.OPERATION
        assert report.overall_status == SyncStatus.WARNING

    def test_key_with_unknown_token_fails(self, engine, layout, app):
        engine.backup([app], layout.backup_root)
        _write(_backup_path(layout, "app", "%Bogus%/x.txt"))

        (report,) = engine.restore([app], layout.backup_root)

        (difference,) = report.file_differences
        assert difference.difference_type == FileDifferenceType.OPERATION_FAILED
        assert difference.relative_path == "%Bogus%/x.txt"
        assert report.overall_status == SyncStatus.FAILED

    def test_restore_into_missing_directory_resolves_issue(self, engine, layout, app):
        engine.backup([app], layout.backup_root)
        shutil.rmtree(layout.documents / "app")

        (report,) = engine.restore([app], layout.backup_root)

        assert (layout.documents / "app" / "sub" / "b.txt").read_text() == "bb"
        assert report.path_issues == []
        assert report.overall_status == SyncStatus.IN_SYNC


class TestCaseInsensitiveKeys:
    """Keys differing only in case name one file on Windows and macOS."""

    @pytest.fixture
    def folding_engine(self, layout):
        resolver = SpecialFolderResolver(layout.resolver.folders, case_sensitive=False)
        return SyncEngine(
            resolver=resolver, operations=FileOperations(sleep=lambda _delay: None)
        )

    @pytest.fixture
    def app(self, layout):
        return AppConfig(id="tool", paths=["%Documents%/tool/"])

    def test_sync_restore_keeps_live_file_renamed_by_case(
        self, folding_engine, layout, app
    ):
        live = _write(layout.documents / "tool" / "config.ini", "x=1")
        _write(_backup_path(layout, "tool", "%Documents%/tool/Config.ini"), "x=1")

        with patch.object(folding_engine.operations, "delete_file") as delete_file:
            (report,) = folding_engine.restore(
                [app], layout.backup_root, SyncMode.SYNC
            )

        delete_file.assert_not_called()
        assert live.exists()
        assert report.overall_status == SyncStatus.IN_SYNC

    def test_sync_backup_keeps_backup_file_renamed_by_case(
        self, folding_engine, layout, app
    ):
        _write(layout.documents / "tool" / "config.ini", "x=1")
        backed_up = _write(
            _backup_path(layout, "tool", "%Documents%/tool/Config.ini"), "stale"
        )

        with patch.object(folding_engine.operations, "delete_file") as delete_file:
            folding_engine.backup([app], layout.backup_root, SyncMode.SYNC)

        delete_file.assert_not_called()
        assert backed_up.exists()

    def test_status_matches_keys_ignoring_case(self, folding_engine, layout, app):
        _write(layout.documents / "tool" / "config.ini", "x=1")
        _write(_backup_path(layout, "tool", "%Documents%/tool/Config.ini"), "x=1")

        (report,) = folding_engine.update_status([app], layout.backup_root)

        assert report.file_differences == []
        assert report.overall_status == SyncStatus.IN_SYNC

    def test_spec_lookup_ignores_case(self, layout):
        resolver = SpecialFolderResolver(layout.resolver.folders, case_sensitive=False)
        app = AppConfig(id="tool", paths=["%Documents%/Tool/"])

        index = SpecIndex.build(app, resolver)

        assert index.spec_for("%documents%/tool/config.ini") == "%Documents%/Tool/"


class TestStatus:
    """Tests for update_status."""

    def test_status_is_read_only(self, engine, layout):
        _write(layout.documents / "app" / "a.txt")
        app = AppConfig(id="app", paths=["%Documents%/app/"])

        engine.update_status([app], layout.backup_root)

        assert list(layout.backup_root.iterdir()) == []

    def test_backup_only_files_are_out_of_sync(self, engine, layout):
        _write(layout.documents / "app" / "a.txt")
        app = AppConfig(id="app", paths=["%Documents%/app/"])
        engine.backup([app], layout.backup_root)
        _write(_backup_path(layout, "app", "%Documents%/app/old.txt"))

        (report,) = engine.update_status([app], layout.backup_root)

        assert report.overall_status == SyncStatus.OUT_OF_SYNC
        assert report.file_differences[0].difference_type == (
            FileDifferenceType.ONLY_IN_BACKUP
        )

    def test_fatal_issue_skips_comparison(self, engine, layout):
        app = AppConfig(id="app", paths=["%ProgramFiles%/Tool/"])

        (report,) = engine.update_status([app], layout.backup_root)

        assert report.file_differences == []
        assert report.overall_status == SyncStatus.FAILED


class TestBatchBehaviour:
    """Tests for argument handling, isolation, callbacks and cancellation."""

    @pytest.fixture
    def apps(self, layout):
        _write(layout.documents / "one" / "a.txt")
        _write(layout.documents / "two" / "b.txt")
        return [
            AppConfig(id="one", paths=["%Documents%/one/"]),
            AppConfig(id="two", paths=["%Documents%/two/"]),
        ]

    def test_apps_none_raises(self, engine, layout):
        with pytest.raises(ValueError):
            engine.backup(None, layout.backup_root)

    @pytest.mark.parametrize("backup_root", ["", "   ", None])
    def test_blank_backup_root_raises(self, engine, apps, backup_root):
        with pytest.raises(ValueError):
            engine.update_status(apps, backup_root)

    def test_invalid_mode_raises(self, engine, layout, apps):
        with pytest.raises(ValueError):
            engine.restore(apps, layout.backup_root, "mirror")

    def test_none_entries_are_skipped(self, engine, layout, apps):
        reports = engine.update_status([None, apps[0]], layout.backup_root)

        assert [r.app_id for r in reports] == ["one"]

    def test_empty_app_list(self, engine, layout):
        progress = Mock()

        assert engine.backup([], layout.backup_root, progress=progress) == []
        progress.assert_called_once_with(100)

    def test_invalid_app_id_only_fails_that_app(self, engine, layout, apps):
        bad = AppConfig(id="../evil", paths=["%Documents%/one/"])

        reports = engine.backup([bad] + apps, layout.backup_root)

        assert [r.overall_status for r in reports] == [
            SyncStatus.FAILED,
            SyncStatus.IN_SYNC,
            SyncStatus.IN_SYNC,
        ]
        assert reports[0].path_issues[0].description == (
            "Operation failed due to critical error: "
            "Invalid application id: '../evil'"
        )

    def test_unexpected_error_is_reported(self, engine, layout, apps):
        with patch.object(
            engine.scanner, "scan", side_effect=RuntimeError("disk on fire")
        ):
            reports = engine.update_status(apps, layout.backup_root)

        assert len(reports) == 2
        issue = reports[0].path_issues[0]
        assert issue.issue_type == PathIssueType.OPERATION_FAILED
        assert issue.source == PathIssueSource.OPERATION
        assert issue.description == (
            "Operation failed due to critical error: disk on fire"
        )

    def test_callbacks(self, engine, layout, apps):
        progress = Mock()
        statuses = []

        engine.backup(
            apps,
            layout.backup_root,
            progress=progress,
            on_app_status=lambda app, report: statuses.append(
                (app.id, report.overall_status)
            ),
        )

        assert [c.args[0] for c in progress.call_args_list] == [50, 100]
        assert statuses == [
            ("one", SyncStatus.SYNCING),
            ("one", SyncStatus.IN_SYNC),
            ("two", SyncStatus.SYNCING),
            ("two", SyncStatus.IN_SYNC),
        ]

    def test_syncing_report_names_backup_folder(self, engine, layout, apps):
        folders = []

        engine.backup(
            apps[:1],
            layout.backup_root,
            on_app_status=lambda app, report: folders.append(
                (report.overall_status, report.app_backup_root_path)
            ),
        )

        expected = str(layout.backup_root / "one") + os.sep
        assert folders == [
            (SyncStatus.SYNCING, expected),
            (SyncStatus.IN_SYNC, expected),
        ]

    def test_status_check_reports_final_status_only(self, engine, layout, apps):
        statuses = []

        engine.update_status(
            apps,
            layout.backup_root,
            on_app_status=lambda app, report: statuses.append(report.overall_status),
        )

        assert SyncStatus.SYNCING not in statuses
        assert len(statuses) == 2

    def test_cancel_before_start(self, engine, layout, apps):
        token = CancellationToken()
        token.cancel()

        assert engine.backup(apps, layout.backup_root, cancel_token=token) == []

    def test_cancel_during_first_app(self, engine, layout, apps):
        token = CancellationToken()

        def on_status(app, report):
            if report.overall_status == SyncStatus.SYNCING:
                token.cancel()

        reports = engine.backup(
            apps, layout.backup_root, on_app_status=on_status, cancel_token=token
        )

        assert len(reports) == 1
        issue = reports[0].path_issues[-1]
        assert issue.issue_type == PathIssueType.OPERATION_PREVENTED
        assert issue.description == "Operation was cancelled before it completed."
        assert reports[0].overall_status == SyncStatus.WARNING
        assert not (layout.backup_root / "two").exists()

    def test_background_run_with_queue_dispatcher(self, layout, apps):
        dispatcher = QueueDispatcher()
        progress = Mock()

        with SyncEngine(resolver=layout.resolver, dispatcher=dispatcher) as engine:
            future = engine.start_backup(apps, layout.backup_root, progress=progress)
            reports = future.result(timeout=30)

        progress.assert_not_called()
        assert dispatcher.process_pending() == 2
        assert [c.args[0] for c in progress.call_args_list] == [50, 100]
        assert [r.overall_status for r in reports] == [SyncStatus.IN_SYNC] * 2

    def test_background_runs_are_sequential(self, layout, apps):
        with SyncEngine(resolver=layout.resolver) as engine:
            first = engine.start_backup(apps, layout.backup_root)
            second = engine.start_update_status(apps, layout.backup_root)
            statuses = [r.overall_status for r in second.result(timeout=30)]

        assert first.done()
        assert statuses == [SyncStatus.IN_SYNC, SyncStatus.IN_SYNC]

    def test_concurrent_submissions_share_one_worker(self, layout, apps):
        futures = []

        with SyncEngine(resolver=layout.resolver) as engine:
            with patch(
                "backupwarden.sync.engine.ThreadPoolExecutor",
                wraps=ThreadPoolExecutor,
            ) as executor_class:
                threads = [
                    threading.Thread(
                        target=lambda: futures.append(
                            engine.start_update_status(apps, layout.backup_root)
                        )
                    )
                    for _ in range(8)
                ]
                for thread in threads:
                    thread.start()
                for thread in threads:
                    thread.join()

            results = [future.result(timeout=30) for future in futures]

        executor_class.assert_called_once()
        assert len(results) == 8


class TestSpecIndex:
    """Tests for mapping keys and paths back to their spec."""

    @pytest.fixture
    def index(self, layout):
        app = AppConfig(
            id="app",
            paths=[
                "%Documents%/app/",
                "%Documents%/app/profiles/",
                "%UserProfile%/.apprc",
                "",
                "%ProgramFiles%/Tool/",
            ],
        )
        return SpecIndex.build(app, layout.resolver)

    def test_blank_and_unexpandable_specs_are_skipped(self, index):
        assert [e.spec for e in index.entries] == [
            "%Documents%/app/",
            "%Documents%/app/profiles/",
            "%UserProfile%/.apprc",
        ]

    def test_most_specific_directory_wins(self, index):
        assert index.spec_for("%Documents%/app/profiles/x.ini") == (
            "%Documents%/app/profiles/"
        )
        assert index.spec_for("%Documents%/app/a.txt") == "%Documents%/app/"

    def test_file_spec_matches_exactly(self, index):
        assert index.spec_for("%UserProfile%/.apprc") == "%UserProfile%/.apprc"
        assert index.spec_for("%UserProfile%/.apprc2") is None

    def test_directory_prefix_needs_separator(self, index):
        assert index.spec_for("%Documents%/application/a.txt") is None

    def test_entry_for_path(self, index, layout):
        entry = index.entry_for_path(str(layout.documents / "app" / "x" / "y.txt"))

        assert entry.spec == "%Documents%/app/"
        assert index.entry_for_path(str(layout.documents / "other.txt")) is None
