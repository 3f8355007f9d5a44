"""Tests for FileOperations retry handling and filesystem helpers."""

import errno
import os
from unittest.mock import Mock, patch

import pytest

from backupwarden.sync.operations import FileOperations


class TestRetryPolicy:
    """Tests for deciding whether to retry."""

    def test_transient_error_is_retried(self):
        ops = FileOperations(max_retries=3)
        assert ops._should_retry(OSError(errno.EBUSY, "Device busy"), 1)

    def test_last_attempt_is_not_retried(self):
        ops = FileOperations(max_retries=3)
        assert not ops._should_retry(OSError(errno.EBUSY, "Device busy"), 3)

    @pytest.mark.parametrize(
        "error",
        [
            FileNotFoundError(errno.ENOENT, "missing"),
            PermissionError(errno.EACCES, "denied"),
            IsADirectoryError(errno.EISDIR, "is a directory"),
        ],
    )
    def test_logical_errors_are_not_retried(self, error):
        assert not FileOperations()._should_retry(error, 1)

    def test_non_os_errors_are_not_retried(self):
        assert not FileOperations()._should_retry(ValueError("bad"), 1)

    def test_linear_backoff(self):
        ops = FileOperations(retry_delay=0.5)

        assert ops._calculate_retry_delay(1) == 0.5
        assert ops._calculate_retry_delay(3) == 1.5

    def test_at_least_one_attempt(self):
        assert FileOperations(max_retries=0).max_retries == 1


class TestRunWithRetry:
    """Tests for the retry loop."""

    def test_succeeds_after_transient_failures(self):
        sleep = Mock()
        ops = FileOperations(max_retries=5, retry_delay=0.5, sleep=sleep)
        busy = OSError(errno.EBUSY, "busy")
        operation = Mock(side_effect=[busy, busy, 42])

        assert ops._run_with_retry("Test", operation) == 42
        assert operation.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up_after_max_retries(self):
        sleep = Mock()
        ops = FileOperations(max_retries=3, sleep=sleep)
        operation = Mock(side_effect=OSError(errno.EBUSY, "busy"))

        with pytest.raises(OSError):
            ops._run_with_retry("Test", operation)

        assert operation.call_count == 3
        assert sleep.call_count == 2

    def test_logical_error_raised_immediately(self):
        sleep = Mock()
        ops = FileOperations(sleep=sleep)
        operation = Mock(side_effect=PermissionError(errno.EACCES, "denied"))

        with pytest.raises(PermissionError):
            ops._run_with_retry("Test", operation)

        assert operation.call_count == 1
        sleep.assert_not_called()


class TestFileOperations:
    """Tests for the individual operations."""

    def test_copy_file_creates_parents(self, tmp_path):
        source = tmp_path / "source.txt"
        source.write_text("content")
        destination = tmp_path / "backup" / "app" / "source.txt"

        FileOperations().copy_file(source, destination)

        assert destination.read_text() == "content"

    def test_copy_file_overwrites(self, tmp_path):
        source = tmp_path / "source.txt"
        source.write_text("new")
        destination = tmp_path / "destination.txt"
        destination.write_text("old content")

        FileOperations().copy_file(source, destination)

        assert destination.read_text() == "new"

    def test_copy_missing_source_fails_fast(self, tmp_path):
        sleep = Mock()

        with pytest.raises(FileNotFoundError):
            FileOperations(sleep=sleep).copy_file(
                tmp_path / "missing.txt", tmp_path / "out.txt"
            )

        sleep.assert_not_called()

    def test_delete_file(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("x")

        FileOperations().delete_file(target)

        assert not target.exists()

    def test_delete_file_to_trash(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("x")

        with patch("backupwarden.sync.operations.send2trash") as mock_trash:
            FileOperations().delete_file(target, use_trash=True)

        mock_trash.assert_called_once_with(str(target))
        assert target.exists()

    def test_create_directory_is_idempotent(self, tmp_path):
        ops = FileOperations()
        target = tmp_path / "a" / "b"

        ops.create_directory(target)
        ops.create_directory(target)

        assert target.is_dir()

    def test_set_modified_time(self, tmp_path):
        target = tmp_path / "a.txt"
        target.write_text("x")

        FileOperations().set_modified_time(target, 1_000_000_000.0)

        assert os.stat(target).st_mtime == 1_000_000_000.0


class TestDeleteEmptyDirectories:
    """Tests for pruning empty directories."""

    def test_removes_nested_empty_directories(self, tmp_path):
        (tmp_path / "a" / "b" / "c").mkdir(parents=True)
        (tmp_path / "keep").mkdir()
        (tmp_path / "keep" / "file.txt").write_text("x")

        removed = FileOperations().delete_empty_directories(tmp_path)

        assert removed == 3
        assert not (tmp_path / "a").exists()
        assert (tmp_path / "keep" / "file.txt").exists()
        assert tmp_path.is_dir()

    def test_root_is_kept(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()

        assert FileOperations().delete_empty_directories(root) == 0
        assert root.is_dir()

    def test_missing_root(self, tmp_path):
        assert FileOperations().delete_empty_directories(tmp_path / "missing") == 0
