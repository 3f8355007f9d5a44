"""CLI progress display for backup and restore runs.

The engine works on its own worker thread and posts its callbacks to a
:class:`~backupwarden.sync.progress.QueueDispatcher`. The functions here
drain that queue on the main thread, so Rich is only ever touched from
one thread, and turn Ctrl-C into a cancellation request.
"""

from concurrent.futures import Future
from typing import Callable, Optional

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .models import AppConfig
from .sync.concurrency import CancellationToken
from .sync.progress import QueueDispatcher
from .sync.report import AppSyncReport, SyncStatus

# Seconds to wait for callbacks before checking the worker again
POLL_INTERVAL = 0.1


class SyncProgressDisplay:
    """Rich-based progress bar showing the application being processed."""

    def __init__(self, description: str, enabled: bool = True) -> None:
        """Initialize the progress display.

        Args:
            description: Task label, e.g. "Backing up"
            enabled: If False, nothing is rendered
        """
        self.description = description
        self.enabled = enabled
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def on_progress(self, percent: int) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.update(self._task, completed=percent)

    def on_app_status(self, app: AppConfig, report: AppSyncReport) -> None:
        if not self.enabled or self._progress is None or self._task is None:
            return
        if report.overall_status == SyncStatus.SYNCING:
            self._progress.update(self._task, app_info=app.display_name)
        else:
            self._progress.console.print(
                f"  {app.display_name}: {report.overall_status.display_name}",
                highlight=False,
            )

    def __enter__(self) -> "SyncProgressDisplay":
        """Enter context manager - start progress display."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[cyan]{task.fields[app_info]}"),
            TimeElapsedColumn(),
            refresh_per_second=4,
            disable=not self.enabled,
        )
        self._progress.__enter__()
        self._task = self._progress.add_task(self.description, total=100, app_info="")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager - stop progress display."""
        if self._progress is not None:
            if self._task is not None:
                self._progress.update(self._task, app_info="done")
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


def drain_until_done(
    future: Future,
    dispatcher: QueueDispatcher,
    cancel_token: CancellationToken,
) -> list[AppSyncReport]:
    """Deliver queued callbacks on this thread until the worker finishes.

    On Ctrl-C the token is cancelled, the current application is allowed to
    finish its report, and the KeyboardInterrupt is re-raised.

    Returns:
        The reports returned by the engine operation
    """
    try:
        while not future.done():
            dispatcher.process_pending(timeout=POLL_INTERVAL)
    except KeyboardInterrupt:
        cancel_token.cancel()
        future.result()
        dispatcher.process_pending()
        raise

    dispatcher.process_pending()
    return future.result()


def run_with_progress(
    start: Callable[..., Future],
    apps: list[AppConfig],
    backup_root: str,
    mode: str,
    dispatcher: QueueDispatcher,
    description: str,
    show_progress: bool = True,
) -> list[AppSyncReport]:
    """Run a backup or restore with a Rich progress display.

    Args:
        start: ``engine.start_backup`` or ``engine.start_restore``
        apps: Applications to process
        backup_root: Backup root folder
        mode: Sync mode name
        dispatcher: The engine's queue dispatcher
        description: Progress bar label
        show_progress: If False, run without rendering a bar

    Returns:
        Final reports in application order
    """
    cancel_token = CancellationToken()
    with SyncProgressDisplay(description, enabled=show_progress) as display:
        future = start(
            apps,
            backup_root,
            mode,
            progress=display.on_progress,
            on_app_status=display.on_app_status,
            cancel_token=cancel_token,
        )
        return drain_until_done(future, dispatcher, cancel_token)
