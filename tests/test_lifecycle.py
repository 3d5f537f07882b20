"""Tests for connect/disconnect orchestration."""

import re

import pytest
import serial

from com_sniffer.errors import AlreadyConnectedError, OpenError, SinkError
from com_sniffer.lifecycle import LifecycleState, SessionLifecycle
from com_sniffer.settings import Parity, SerialSettings
from com_sniffer.types import Trace

from conftest import FakeChannel, wait_for

SETTINGS = SerialSettings(port="COM7", baudrate=19200, parity=Parity.EVEN)
MARKER = re.compile(
    r"^# START \S+ Port=COM7 Baud=19200 DataBits=8 Parity=Even StopBits=One Handshake=None$"
)


def make_lifecycle(log_root, channels, **kwargs):
    opened = iter(channels)
    return SessionLifecycle(log_root=log_root, channel_factory=lambda settings: next(opened), **kwargs)


def read_lines(path):
    return path.read_text(encoding="utf-8").splitlines()


@pytest.fixture
def lifecycle(log_root, channel):
    lc = make_lifecycle(log_root, [channel])
    yield lc
    lc.disconnect()


class TestConnect:
    def test_connect_creates_session_with_markers(self, lifecycle):
        session = lifecycle.connect(SETTINGS)
        assert lifecycle.state is LifecycleState.CONNECTED
        assert lifecycle.session is session
        assert session.directory.is_dir()
        assert lifecycle.status_text == "Connected to COM7 (19200 8E1, None)"
        assert lifecycle.rx_bytes == 0
        assert MARKER.match(read_lines(session.hex_path)[0])
        assert MARKER.match(read_lines(session.ascii_path)[0])

    def test_second_connect_rejected(self, lifecycle, channel):
        session = lifecycle.connect(SETTINGS)
        with pytest.raises(AlreadyConnectedError):
            lifecycle.connect(SETTINGS)
        assert lifecycle.session is session
        assert lifecycle.connected
        assert channel.close_calls == 0

    def test_open_failure(self, log_root):
        def refuse(settings):
            raise serial.SerialException("could not open port COM7: busy")

        lc = SessionLifecycle(log_root=log_root, channel_factory=refuse)
        with pytest.raises(OpenError, match="busy"):
            lc.connect(SETTINGS)
        assert lc.state is LifecycleState.DISCONNECTED
        assert lc.session is None
        assert "COM7" in lc.last_error
        assert not log_root.exists() or list(log_root.iterdir()) == []

    def test_sink_failure_on_connect_closes_channel(self, tmp_path, channel):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        lc = make_lifecycle(blocker / "logs", [channel])
        with pytest.raises(SinkError):
            lc.connect(SETTINGS)
        assert lc.state is LifecycleState.DISCONNECTED
        assert channel.close_calls == 1

    def test_disconnect_while_connecting_cancels(self, log_root, monkeypatch):
        first_channel, second_channel = FakeChannel(), FakeChannel()
        lc = make_lifecycle(log_root, [first_channel, second_channel])
        real_attach = lc.logger.attach

        def attach_then_disconnect(store):
            real_attach(store)
            assert lc.state is LifecycleState.CONNECTING
            lc.disconnect()

        monkeypatch.setattr(lc.logger, "attach", attach_then_disconnect)
        with pytest.raises(OpenError, match="cancelled"):
            lc.connect(SETTINGS)
        assert lc.state is LifecycleState.DISCONNECTED
        assert lc.session is None
        assert not lc.logger.is_open
        assert first_channel.close_calls == 1
        assert list(log_root.iterdir()) == []

        monkeypatch.undo()
        session = lc.connect(SETTINGS)
        second_channel.feed(b"ok\n")
        assert wait_for(lambda: lc.rx_bytes == 3)
        lc.disconnect()
        assert read_lines(session.ascii_path)[-1].endswith("  ok")


class TestCapture:
    def test_hello_logged_to_both_traces(self, lifecycle, channel):
        session = lifecycle.connect(SETTINGS)
        channel.feed(b"Hello\n")
        assert wait_for(lambda: len(lifecycle.view.snapshot(Trace.ASCII)) == 1)
        lifecycle.disconnect()

        hex_lines = read_lines(session.hex_path)
        ascii_lines = read_lines(session.ascii_path)
        assert hex_lines[1].endswith("  48 65 6C 6C 6F 0A")
        assert ascii_lines[1].endswith("  Hello")
        assert lifecycle.rx_bytes == 6

    def test_read_error_mid_session(self, lifecycle, channel):
        session = lifecycle.connect(SETTINGS)
        channel.feed(b"abc\n")
        assert wait_for(lambda: lifecycle.rx_bytes == 4)
        channel.feed(serial.SerialException("timeout"))
        assert wait_for(lambda: any("ERROR reading serial" in line for line in lifecycle.view.snapshot(Trace.ASCII)))
        assert lifecycle.rx_bytes == 4
        assert lifecycle.connected
        assert not session.closed

        channel.feed(b"def\n")
        assert wait_for(lambda: lifecycle.rx_bytes == 8)
        assert wait_for(lambda: len(lifecycle.view.snapshot(Trace.ASCII)) == 3)
        lifecycle.disconnect()
        assert len(read_lines(session.hex_path)) == 3
        assert read_lines(session.ascii_path)[-1].endswith("  def")

    def test_sink_failure_ends_session(self, log_root, channel):
        errors = []
        lc = make_lifecycle(log_root, [channel], on_error=errors.append)
        lc.connect(SETTINGS)
        lc.logger._store.hex_file.close()
        channel.feed(b"data")
        assert wait_for(lambda: lc.state is LifecycleState.DISCONNECTED)
        assert wait_for(lambda: len(errors) == 1)
        assert lc.last_error == errors[0]
        assert lc.session is None
        assert channel.close_calls == 1
        assert not lc.logger.is_open

    def test_error_from_finished_capture_is_ignored(self, log_root):
        errors = []
        lc = make_lifecycle(log_root, [FakeChannel(), FakeChannel()], on_error=errors.append)
        lc.connect(SETTINGS)
        old_capture = lc._capture
        lc.disconnect()
        session = lc.connect(SETTINGS)

        lc._on_capture_fatal(old_capture, SinkError("late write failure"))
        assert lc.connected
        assert lc.session is session
        assert lc.last_error is None
        assert errors == []
        lc.disconnect()


class TestDisconnect:
    def test_disconnect_closes_everything(self, lifecycle, channel):
        session = lifecycle.connect(SETTINGS)
        lifecycle.disconnect()
        assert lifecycle.state is LifecycleState.DISCONNECTED
        assert lifecycle.status_text == "Disconnected"
        assert lifecycle.session is None
        assert lifecycle.last_session_dir == session.directory
        assert session.closed
        assert channel.close_calls == 1
        assert not lifecycle.logger.is_open

    def test_disconnect_is_idempotent(self, lifecycle, channel):
        lifecycle.connect(SETTINGS)
        lifecycle.disconnect()
        lifecycle.disconnect()
        assert lifecycle.state is LifecycleState.DISCONNECTED
        assert channel.close_calls == 1

    def test_disconnect_without_connect(self, log_root):
        lc = SessionLifecycle(log_root=log_root, channel_factory=lambda s: FakeChannel())
        lc.disconnect()
        assert lc.state is LifecycleState.DISCONNECTED

    def test_close_errors_are_swallowed(self, log_root):
        class Stubborn(FakeChannel):
            def close(self):
                raise OSError("handle already disposed")

        lc = make_lifecycle(log_root, [Stubborn()])
        lc.connect(SETTINGS)
        lc.disconnect()
        assert lc.state is LifecycleState.DISCONNECTED


class TestReconnect:
    def test_two_sessions(self, log_root):
        first_channel, second_channel = FakeChannel(), FakeChannel()
        lc = make_lifecycle(log_root, [first_channel, second_channel])

        first = lc.connect(SETTINGS)
        first_channel.feed(b"first\n")
        assert wait_for(lambda: lc.rx_bytes == 6)
        lc.disconnect()

        second = lc.connect(SETTINGS)
        assert lc.rx_bytes == 0
        second_channel.feed(b"2\n")
        assert wait_for(lambda: lc.rx_bytes == 2)
        lc.disconnect()

        assert first.directory != second.directory
        assert first.directory.is_dir() and second.directory.is_dir()
        for session in (first, second):
            assert MARKER.match(read_lines(session.hex_path)[0])
            assert MARKER.match(read_lines(session.ascii_path)[0])
        assert read_lines(first.ascii_path)[-1].endswith("  first")
        assert read_lines(second.ascii_path)[-1].endswith("  2")

    def test_pending_ascii_reset_on_connect(self, log_root):
        first_channel, second_channel = FakeChannel(), FakeChannel()
        lc = make_lifecycle(log_root, [first_channel, second_channel])
        lc.connect(SETTINGS)
        first_channel.feed(b"unterminated")
        assert wait_for(lambda: lc.rx_bytes == 12)
        lc.disconnect()

        second = lc.connect(SETTINGS)
        second_channel.feed(b"fresh\n")
        assert wait_for(lambda: lc.rx_bytes == 6)
        lc.disconnect()
        assert read_lines(second.ascii_path)[-1].endswith("  fresh")


class TestOpenChannel:
    def test_applies_settings_and_fixed_timeouts(self, monkeypatch):
        from com_sniffer import lifecycle as lifecycle_module

        class RecordingSerial:
            def __init__(self):
                self.opened = False

            def open(self):
                self.opened = True

        monkeypatch.setattr(lifecycle_module.serial, "Serial", RecordingSerial)
        settings = SerialSettings(port="/dev/ttyUSB0", baudrate=57600, parity=Parity.ODD)
        ser = lifecycle_module.open_channel(settings)
        assert ser.opened
        assert ser.port == "/dev/ttyUSB0"
        assert ser.baudrate == 57600
        assert ser.parity == serial.PARITY_ODD
        assert ser.timeout == 0.5
        assert ser.write_timeout == 0.5
        assert ser.dtr is True and ser.rts is True
        assert ser.xonxoff is False and ser.rtscts is False
