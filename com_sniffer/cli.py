"""Command line entry point for COM Sniffer.

Usage examples:
  com-sniffer ports
  com-sniffer capture --port COM3                 # until Ctrl+C
  com-sniffer capture --port /dev/ttyUSB0 --baud 19200 --parity E --duration 30
  com-sniffer support-pack --folder ~/Documents/Machine
  com-sniffer gui
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
import time

from . import __version__
from .const import BAUD_CHOICES, DATA_BITS_CHOICES, DEFAULT_BAUD, DEFAULT_DATA_BITS
from .errors import SnifferError
from .lifecycle import SessionLifecycle
from .ports import collect_port_info, list_candidate_ports, preferred_port
from .session import default_log_root, latest_session_dir
from .settings import Handshake, Parity, SerialSettings, StopBits
from .support_pack import create_support_pack
from .types import Trace

_LOGGER = logging.getLogger(__name__)


def _add_serial_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--port", help="Serial port, e.g. COM3 or /dev/ttyUSB0 (default: first detected)")
    parser.add_argument("--baud", type=int, default=DEFAULT_BAUD, help=f"Baud rate, usually one of {BAUD_CHOICES}")
    parser.add_argument("--databits", type=int, choices=DATA_BITS_CHOICES, default=DEFAULT_DATA_BITS)
    parser.add_argument("--parity", default=Parity.NONE.value, help="None/Odd/Even/Mark/Space or N/O/E/M/S")
    parser.add_argument("--stopbits", default=StopBits.ONE.value, help="One/OnePointFive/Two or 1/1.5/2")
    parser.add_argument(
        "--handshake",
        default=Handshake.NONE.value,
        help="None/XOnXOff/RequestToSend/RequestToSendXOnXOff",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="com-sniffer",
        description="Serial line sniffer writing timestamped hex and ASCII logs per session.",
    )
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--log-root", type=Path, help="Session root folder (default: Documents/ComSnifferLogs)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("ports", help="List likely serial ports on this machine")
    sub.add_parser("info", help="Print the host serial port report")

    capture = sub.add_parser("capture", help="Capture one session and echo it to the terminal")
    _add_serial_args(capture)
    capture.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after N seconds (default: run until Ctrl+C)",
    )
    capture.add_argument("--hex", action="store_true", help="Echo the hex trace instead of the ASCII trace")

    pack = sub.add_parser("support-pack", help="Zip a folder together with a logger session")
    pack.add_argument("--folder", required=True, type=Path, help="External folder to include")
    pack.add_argument("--session", type=Path, help="Session directory (default: most recent)")

    sub.add_parser("gui", help="Open the capture window")
    return parser


def settings_from_args(args: argparse.Namespace) -> SerialSettings:
    port = args.port or preferred_port(list_candidate_ports())
    return SerialSettings.from_mapping(
        {
            "port": port,
            "baudrate": args.baud,
            "bytesize": args.databits,
            "parity": args.parity,
            "stopbits": args.stopbits,
            "handshake": args.handshake,
        }
    )


def _list_ports() -> None:
    candidates = list_candidate_ports()
    if not candidates:
        print("No serial ports auto-detected. Pass --port COMx or /dev/ttyUSBx manually.")
        return

    print("Candidate serial ports:")
    for port in candidates:
        print(f"- {port}")


def _capture(lifecycle: SessionLifecycle, settings: SerialSettings, duration: float | None, show_hex: bool) -> None:
    trace = Trace.HEX if show_hex else Trace.ASCII
    session = lifecycle.connect(settings)
    print(f"{lifecycle.status_text}. Logging to {session.directory}. Ctrl+C to stop.", flush=True)
    start = time.time()
    try:
        while lifecycle.connected:
            if duration and (time.time() - start) >= duration:
                break
            for item_trace, text in lifecycle.view.drain():
                if item_trace is trace or text.startswith("["):
                    print(text, flush=True)
            time.sleep(0.05)
    finally:
        lifecycle.disconnect()
        for item_trace, text in lifecycle.view.drain():
            if item_trace is trace:
                print(text)
    if lifecycle.last_error:
        raise SnifferError(lifecycle.last_error)
    print(f"Stopped. RX bytes: {lifecycle.rx_bytes}")


def _support_pack(root: Path, folder: Path, session_dir: Path | None) -> None:
    session_dir = session_dir or latest_session_dir(root)
    if session_dir is None:
        print("No logger session found; packing the folder alone.", file=sys.stderr)
    zip_path = create_support_pack(folder.expanduser(), session_dir, root)
    print(f"Support pack created: {zip_path}")


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    root = args.log_root.expanduser() if args.log_root else default_log_root()

    try:
        if args.command == "ports":
            _list_ports()
        elif args.command == "info":
            print(collect_port_info(), end="")
        elif args.command == "capture":
            settings = settings_from_args(args)
            _capture(SessionLifecycle(log_root=root), settings, args.duration, args.hex)
        elif args.command == "support-pack":
            _support_pack(root, args.folder, args.session)
        elif args.command == "gui":
            from .gui import run_gui

            return run_gui(root)
        return 0
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130
    except Exception as exc:  # noqa: BLE001 - single CLI error path
        print(f"ERROR: {exc}", file=sys.stderr)
        _LOGGER.debug("Command failed", exc_info=True)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
