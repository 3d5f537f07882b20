"""Connect/disconnect orchestration for one serial channel and its session."""

from __future__ import annotations

from enum import Enum
import functools
import logging
from pathlib import Path
import threading
from typing import Any, Callable

import serial

from .capture import CaptureLoop, RxCounter
from .const import DEFAULT_MAX_PENDING, DEFAULT_VIEW_LINES, READ_TIMEOUT, WRITE_TIMEOUT
from .errors import AlreadyConnectedError, OpenError, SinkError, SnifferError
from .framing import FrameSplitter
from .session import Session, SessionStore, default_log_root
from .settings import SerialSettings
from .sinks import DualLogger
from .types import ts_str
from .view import ViewSink

_LOGGER = logging.getLogger(__name__)


class LifecycleState(Enum):
    DISCONNECTED = "Disconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"


def open_channel(settings: SerialSettings) -> serial.Serial:
    """Open the serial port with fixed timeouts and DTR/RTS asserted."""
    ser = serial.Serial()
    ser.port = settings.port
    for key, value in settings.serial_kwargs().items():
        setattr(ser, key, value)
    ser.timeout = READ_TIMEOUT
    ser.write_timeout = WRITE_TIMEOUT
    ser.dtr = True
    ser.rts = True
    ser.open()
    return ser


class SessionLifecycle:
    """Owns the single active channel/session pair.

    ``channel_factory`` receives the settings and returns an opened channel;
    tests substitute a fake. ``on_error`` is called with the message of an
    error that ended a session from the capture thread.
    """

    def __init__(
        self,
        log_root: Path | None = None,
        channel_factory: Callable[[SerialSettings], Any] = open_channel,
        view: ViewSink | None = None,
        max_pending: int = DEFAULT_MAX_PENDING,
        max_view_lines: int = DEFAULT_VIEW_LINES,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        self.log_root = Path(log_root) if log_root is not None else default_log_root()
        self.channel_factory = channel_factory
        self.view = view if view is not None else ViewSink(max_view_lines)
        self.splitter = FrameSplitter(max_pending)
        self.logger = DualLogger()
        self.counter = RxCounter()
        self.on_error = on_error

        self._lock = threading.RLock()
        self._state = LifecycleState.DISCONNECTED
        self._channel: Any = None
        self._capture: CaptureLoop | None = None
        self._settings: SerialSettings | None = None
        self.session: Session | None = None
        self.last_session_dir: Path | None = None
        self.last_error: str | None = None
        self._cancel_connect = False

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is LifecycleState.CONNECTED

    @property
    def rx_bytes(self) -> int:
        return self.counter.value

    @property
    def status_text(self) -> str:
        settings = self._settings
        if self._state is LifecycleState.CONNECTED and settings is not None:
            return f"Connected to {settings.port} ({settings.describe()})"
        return self._state.value

    def connect(self, settings: SerialSettings) -> Session:
        with self._lock:
            if self._state is not LifecycleState.DISCONNECTED:
                raise AlreadyConnectedError(f"Already {self._state.value.lower()}; disconnect first")
            self._state = LifecycleState.CONNECTING
            self._cancel_connect = False

        try:
            channel = self.channel_factory(settings)
        except Exception as err:  # noqa: BLE001 - any open failure leaves us disconnected
            self.last_error = f"Failed to open {settings.port}: {err}"
            self._set_disconnected()
            raise OpenError(self.last_error) from err

        store = None
        try:
            store = SessionStore.create(self.log_root)
            self.logger.attach(store)
            self.logger.write_marker(f"# START {ts_str()} {settings.marker_fields()}")
        except SinkError as err:
            self._abort_connect(channel, store)
            self.last_error = str(err)
            raise

        with self._lock:
            cancelled = self._cancel_connect
            if not cancelled:
                self.counter.reset()
                self.splitter.reset()
                self._channel = channel
                self._settings = settings
                self.session = store.session
                self.last_session_dir = store.session.directory
                self.last_error = None
                capture = CaptureLoop(channel, self.logger, self.splitter, self.view, self.counter)
                capture.on_fatal = functools.partial(self._on_capture_fatal, capture)
                self._capture = capture
                self._state = LifecycleState.CONNECTED
                capture.start()

        if cancelled:
            self._abort_connect(channel, store)
            raise OpenError(f"Connect to {settings.port} was cancelled by a disconnect")

        _LOGGER.info("Connected to %s, logging to %s", settings.port, store.session.directory)
        return store.session

    def disconnect(self) -> None:
        self._teardown()

    def _teardown(self, expected: CaptureLoop | None = None) -> bool:
        """Tear down the active session; with ``expected``, only if it still owns it."""
        with self._lock:
            if self._state is LifecycleState.DISCONNECTED:
                return False
            if self._state is LifecycleState.CONNECTING:
                # connect() sees the flag before going live and cleans up itself.
                self._cancel_connect = True
                return False
            if expected is not None and self._capture is not expected:
                return False
            capture, self._capture = self._capture, None
            channel, self._channel = self._channel, None

        # The capture thread may itself be waiting on the lock, so stop it outside.
        if capture is not None:
            capture.stop()
        self._close_channel(channel)
        self.logger.detach()

        with self._lock:
            self.session = None
            self._settings = None
            self._state = LifecycleState.DISCONNECTED
        _LOGGER.info("Disconnected")
        return True

    def _abort_connect(self, channel: Any, store: SessionStore | None) -> None:
        self.logger.detach()
        if store is not None:
            store.discard()
        self._close_channel(channel)
        self._set_disconnected()

    def _set_disconnected(self) -> None:
        with self._lock:
            self._cancel_connect = False
            self._state = LifecycleState.DISCONNECTED

    def _close_channel(self, channel: Any) -> None:
        if channel is None:
            return
        try:
            if getattr(channel, "is_open", True):
                channel.close()
        except Exception as err:  # noqa: BLE001 - shutdown is best-effort
            _LOGGER.debug("Ignoring error while closing channel: %s", err)

    def _on_capture_fatal(self, capture: CaptureLoop, err: SnifferError) -> None:
        with self._lock:
            if capture is not self._capture:
                _LOGGER.debug("Ignoring error from a finished capture loop: %s", err)
                return
            self.last_error = str(err)
        if self._teardown(expected=capture) and self.on_error is not None:
            self.on_error(self.last_error)
