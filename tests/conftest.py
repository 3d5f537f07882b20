"""Shared fixtures: a scripted stand-in for a pyserial port."""

import threading
import time

import pytest


class FakeChannel:
    """Returns queued chunks (or raises queued exceptions) from ``read``."""

    def __init__(self, chunks=()):
        self._lock = threading.Lock()
        self._items = list(chunks)
        self.is_open = True
        self.close_calls = 0

    def feed(self, item):
        with self._lock:
            self._items.append(item)

    @property
    def in_waiting(self):
        with self._lock:
            if self._items and isinstance(self._items[0], (bytes, bytearray)):
                return len(self._items[0])
        return 0

    def read(self, size=1):
        with self._lock:
            item = self._items.pop(0) if self._items else None
        if item is None:
            time.sleep(0.005)
            return b""
        if isinstance(item, Exception):
            raise item
        return bytes(item)

    def close(self):
        self.is_open = False
        self.close_calls += 1


def wait_for(predicate, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def log_root(tmp_path):
    return tmp_path / "logs"
