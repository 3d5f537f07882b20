"""Capture thread: drains the serial channel and fans bytes out to the sinks."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

import serial

from .errors import ReadError, SinkError
from .framing import FrameSplitter
from .sinks import DualLogger, format_hex, format_line
from .types import ByteChunk, Trace, ts_str
from .view import ViewSink

_LOGGER = logging.getLogger(__name__)

# Pause after a failed read so a dead device does not spin the thread.
ERROR_BACKOFF = 0.05


class RxCounter:
    """Received byte count for the active session."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def add(self, count: int) -> int:
        with self._lock:
            self._value += count
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0


class CaptureLoop:
    """Reads from ``channel`` until stopped.

    ``channel`` is anything with pyserial's ``in_waiting`` and ``read``; its
    read timeout bounds each call.
    """

    def __init__(
        self,
        channel: Any,
        logger: DualLogger,
        splitter: FrameSplitter,
        view: ViewSink,
        counter: RxCounter,
        on_fatal: Callable[[SinkError], None] | None = None,
    ) -> None:
        self.channel = channel
        self.logger = logger
        self.splitter = splitter
        self.view = view
        self.counter = counter
        self.on_fatal = on_fatal
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="com-sniffer-capture", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                _LOGGER.warning("Capture thread did not stop within %.1fs", timeout)

    def _run(self) -> None:
        _LOGGER.debug("Capture loop started")
        while not self._stop.is_set():
            try:
                self.poll_once()
            except SinkError as err:
                _LOGGER.error("Log write failed, ending session: %s", err)
                self._stop.set()
                if self.on_fatal is not None:
                    self.on_fatal(err)
                break
        _LOGGER.debug("Capture loop stopped")

    def read_chunk(self) -> bytes:
        try:
            waiting = self.channel.in_waiting
            return self.channel.read(max(waiting, 1))
        # pyserial may raise TypeError/AttributeError when the port is closed under a pending read.
        except (serial.SerialException, OSError, TypeError, AttributeError) as err:
            raise ReadError(str(err) or err.__class__.__name__) from err

    def poll_once(self) -> int:
        """Do one read step and return the number of bytes delivered."""
        try:
            data = self.read_chunk()
        except ReadError as err:
            if self._stop.is_set():
                return 0
            self.report_read_error(err)
            self._stop.wait(ERROR_BACKOFF)
            return 0
        if not data:
            return 0
        self.deliver(ByteChunk(data=bytes(data), timestamp=ts_str()))
        return len(data)

    def deliver(self, chunk: ByteChunk) -> None:
        self.counter.add(len(chunk.data))

        hex_payload = format_hex(chunk.data)
        self.logger.write_hex(chunk.timestamp, chunk.data)
        self.view.push(Trace.HEX, format_line(chunk.timestamp, hex_payload))

        for line in self.splitter.ingest(chunk.data, chunk.timestamp):
            self.logger.write_ascii(line.timestamp, line.text)
            self.view.push(Trace.ASCII, format_line(line.timestamp, line.text))

    def report_read_error(self, err: ReadError) -> None:
        _LOGGER.warning("Serial read failed: %s", err)
        self.view.push(Trace.ASCII, f"[{ts_str()}] ERROR reading serial: {err}")
