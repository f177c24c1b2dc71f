"""Cancellation token shared between a turn's owner and its stream reader."""

import logging
import threading
from typing import Callable

from core.exceptions import TurnCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    One-shot, thread-safe cancellation flag.

    The owner of a turn calls `cancel()`; the stream reader checks the token
    between reads and registered callbacks run once, on the cancelling thread.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = self._callbacks
            self._callbacks = []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback failed")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run `callback` on cancel, or right away if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise TurnCancelledError("Turn was cancelled")
