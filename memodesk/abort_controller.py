"""Abort controller for cancelling an in-flight chat stream."""

import threading
from typing import Callable

from .llm.errors import StreamCancelledError


class AbortController:
    """Lets one thread cancel a stream that another thread is reading.

    Usage:
        controller = AbortController()

        # In the relay, while a response is open:
        controller.add_callback(response.close)

        # From the UI thread (e.g. on Ctrl+C):
        controller.abort()  # Runs the callbacks, unblocking a stalled read

        # Between chunks in the relay:
        controller.check()  # Raises StreamCancelledError if aborted
    """

    def __init__(self):
        self._aborted = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def is_aborted(self) -> bool:
        """Check if abort was requested."""
        return self._aborted.is_set()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on abort, or right away if already aborted."""
        with self._lock:
            if not self._aborted.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def abort(self) -> None:
        """Request cancellation of the current stream."""
        with self._lock:
            self._aborted.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def reset(self) -> None:
        """Clear the abort flag before reusing the controller."""
        self._aborted.clear()

    def check(self) -> None:
        """Raise StreamCancelledError if abort was requested."""
        if self._aborted.is_set():
            raise StreamCancelledError("Response cancelled by user")
