"""
Hand-off points between the capture thread, the pipeline worker and the UI.

Every structure here holds at most one item, so a slow consumer can never cause
a backlog: frames are dropped oldest-first, commands merge, and published
images replace each other.
"""

from __future__ import annotations
import threading

import numpy as np

from .selection import Command


class FrameChannel:
    """Capacity-1, drop-oldest channel from the capture thread to the worker."""

    def __init__(self):
        self._cond = threading.Condition()
        self._item = None
        self._closed = False
        self.dropped = 0

    def put(self, item) -> bool:
        """Offers an item; returns False if the channel is closed."""
        with self._cond:
            if self._closed:
                return False
            if self._item is not None:
                self.dropped += 1
            self._item = item
            self._cond.notify()
            return True

    def get(self, timeout: float | None = None):
        """Waits for the next item; returns None on timeout or once closed."""
        with self._cond:
            if self._item is None and not self._closed:
                self._cond.wait(timeout)
            item, self._item = self._item, None
            return item

    def close(self):
        with self._cond:
            self._closed = True
            self._item = None
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed


class CommandSlot:
    """Latest user command, written by the UI and taken once per frame."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Command | None = None

    def put(self, command: Command):
        with self._lock:
            if self._pending is None:
                self._pending = command
            else:
                self._pending = self._pending.merge(command)

    def take(self) -> Command | None:
        with self._lock:
            command, self._pending = self._pending, None
            return command


class LatestImage:
    """Most-recent-wins slot between the worker and the presentation side."""

    def __init__(self):
        self._lock = threading.Lock()
        self._image: np.ndarray | None = None
        self._seq = 0

    def publish(self, image: np.ndarray):
        with self._lock:
            self._image = image
            self._seq += 1

    def latest(self) -> tuple[int, np.ndarray | None]:
        """Returns (sequence, image); the sequence only grows on publish."""
        with self._lock:
            return self._seq, self._image
