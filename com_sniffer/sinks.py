"""Serialized writes into the hex and ascii log files of the active session."""

from __future__ import annotations

import logging
import threading

from .errors import SinkError
from .session import SessionStore

_LOGGER = logging.getLogger(__name__)


def format_hex(data: bytes) -> str:
    return " ".join(f"{b:02X}" for b in data)


def format_line(timestamp: str, payload: str) -> str:
    return f"{timestamp}  {payload}"


class DualLogger:
    """Writes trace lines to the attached SessionStore.

    ``attach``/``detach`` and every write share one lock, so a write racing a
    close either lands before the files are closed or is dropped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: SessionStore | None = None

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._store is not None and self._store.is_open

    def attach(self, store: SessionStore) -> None:
        """Open both sinks of ``store`` and start routing writes to it."""
        with self._lock:
            if self._store is not None:
                raise SinkError("A session is already attached")
            store.open()
            self._store = store

    def detach(self) -> SessionStore | None:
        """Close both sinks and stop accepting writes. Safe to repeat."""
        with self._lock:
            store, self._store = self._store, None
            if store is not None:
                store.close()
        return store

    def write_hex(self, timestamp: str, data: bytes) -> None:
        self._write("hex", format_line(timestamp, format_hex(data)))

    def write_ascii(self, timestamp: str, line: str) -> None:
        self._write("ascii", format_line(timestamp, line))

    def write_marker(self, text: str) -> None:
        """Write the same line to both files."""
        self._write("both", text)

    def _write(self, trace: str, line: str) -> None:
        with self._lock:
            store = self._store
            if store is None or not store.is_open:
                _LOGGER.debug("Dropping %s line, no open session", trace)
                return
            try:
                if trace in ("hex", "both"):
                    store.hex_file.write(line + "\n")
                if trace in ("ascii", "both"):
                    store.ascii_file.write(line + "\n")
            except (OSError, ValueError) as err:
                raise SinkError(f"Failed writing {trace} log in {store.session.directory}: {err}") from err
