"""Cancellation support for long-running sync operations."""

import threading

from ..exceptions import SyncCancelledError


class CancellationToken:
    """Thread-safe cancellation flag shared between a caller and the engine.

    The engine checks the token between applications and between files.

    Examples:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.is_cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise :class:`SyncCancelledError` if cancellation was requested."""
        if self._event.is_set():
            raise SyncCancelledError("Operation was cancelled")
