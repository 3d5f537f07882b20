"""Bounded in-memory window of recent trace lines for live display."""

from __future__ import annotations

from collections import deque
import queue
import threading

from .const import DEFAULT_VIEW_LINES
from .types import Trace


class ViewSink:
    """Keeps the last ``max_lines`` lines per trace.

    Every push is also posted to ``updates`` so a display loop can append new
    lines without re-reading whole snapshots. Producers never block on it: the
    queue holds at most ``max_lines`` entries per trace and a full queue drops
    its oldest entry, which a slow display would have trimmed anyway.
    """

    def __init__(self, max_lines: int = DEFAULT_VIEW_LINES) -> None:
        if max_lines <= 0:
            raise ValueError("max_lines must be positive")
        self.max_lines = max_lines
        self._lock = threading.Lock()
        self._lines: dict[Trace, deque[str]] = {trace: deque(maxlen=max_lines) for trace in Trace}
        self.updates: queue.Queue[tuple[Trace, str]] = queue.Queue(maxsize=max_lines * len(Trace))

    def push(self, trace: Trace, text: str) -> None:
        trace = Trace(trace)
        with self._lock:
            self._lines[trace].append(text)
            while True:
                try:
                    self.updates.put_nowait((trace, text))
                    break
                except queue.Full:
                    try:
                        self.updates.get_nowait()
                    except queue.Empty:
                        pass

    def snapshot(self, trace: Trace) -> list[str]:
        with self._lock:
            return list(self._lines[Trace(trace)])

    def clear(self, trace: Trace | None = None) -> None:
        with self._lock:
            targets = list(Trace) if trace is None else [Trace(trace)]
            for target in targets:
                self._lines[target].clear()

    def drain(self, limit: int | None = None) -> list[tuple[Trace, str]]:
        """Pop pending updates without waiting."""
        items: list[tuple[Trace, str]] = []
        while limit is None or len(items) < limit:
            try:
                items.append(self.updates.get_nowait())
            except queue.Empty:
                break
        return items
