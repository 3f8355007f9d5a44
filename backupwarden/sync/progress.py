"""Callback delivery for progress and per-application status updates.

The engine runs on a worker thread. Callers that need their callbacks on
a particular thread (a UI loop, the CLI's main thread) use a
:class:`QueueDispatcher` and drain it from that thread; everyone else gets
a :class:`DirectDispatcher`, which calls back on the worker.
"""

import logging
import queue
import time
from typing import Any, Callable, Optional

from ..models import AppConfig
from .report import AppSyncReport

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
AppStatusCallback = Callable[[AppConfig, AppSyncReport], None]


class CallbackDispatcher:
    """Delivers a callback invocation somewhere."""

    def dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        raise NotImplementedError


class DirectDispatcher(CallbackDispatcher):
    """Invoke callbacks immediately on the calling thread."""

    def dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        callback(*args)


class QueueDispatcher(CallbackDispatcher):
    """Post callbacks to a queue drained by the owning thread.

    Examples:
        >>> dispatcher = QueueDispatcher()
        >>> dispatcher.dispatch(print, "hello")
        >>> dispatcher.process_pending()
        hello
        1
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[tuple[Callable[..., Any], tuple[Any, ...]]]" = (
            queue.Queue()
        )

    def dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        self._queue.put((callback, args))

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def process_pending(self, timeout: Optional[float] = None) -> int:
        """Run queued callbacks on the current thread.

        Args:
            timeout: Seconds to wait for the first callback if the queue is
                empty; None means do not wait

        Returns:
            Number of callbacks run
        """
        processed = 0
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                if processed == 0 and deadline is not None:
                    remaining = max(0.0, deadline - time.monotonic())
                    callback, args = self._queue.get(timeout=remaining)
                else:
                    callback, args = self._queue.get_nowait()
            except queue.Empty:
                return processed
            callback(*args)
            processed += 1


class SyncProgressTracker:
    """Wraps the caller's callbacks for one engine operation.

    Progress is clamped to 0..100. A callback that raises is logged and
    ignored so it cannot abort the batch.
    """

    def __init__(
        self,
        dispatcher: Optional[CallbackDispatcher] = None,
        progress: Optional[ProgressCallback] = None,
        on_app_status: Optional[AppStatusCallback] = None,
    ):
        """Initialize progress tracker.

        Args:
            dispatcher: Where callbacks are delivered (default: direct)
            progress: Called with an integer percentage
            on_app_status: Called with the application and its report
        """
        self.dispatcher = dispatcher or DirectDispatcher()
        self.progress = progress
        self.on_app_status = on_app_status

    def report_progress(self, processed: int, total: int) -> None:
        if self.progress is None:
            return
        percent = int(processed * 100 / total) if total > 0 else 100
        self._dispatch(self.progress, max(0, min(100, percent)))

    def report_status(self, app: AppConfig, report: AppSyncReport) -> None:
        if self.on_app_status is not None:
            self._dispatch(self.on_app_status, app, report)

    def _dispatch(self, callback: Callable[..., Any], *args: Any) -> None:
        self.dispatcher.dispatch(self._guarded, callback, *args)

    @staticmethod
    def _guarded(callback: Callable[..., Any], *args: Any) -> None:
        try:
            callback(*args)
        except Exception:
            logger.exception(f"Callback {callback!r} raised; continuing")
