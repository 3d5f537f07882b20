"""Serial port discovery and a plain-text report of the host's ports."""

from __future__ import annotations

import glob
import logging
import sys

from serial.tools import list_ports

from .const import PREFERRED_PORT
from .types import ts_str

_LOGGER = logging.getLogger(__name__)


def list_candidate_ports() -> list[str]:
    """Return likely serial ports on this machine (Windows + POSIX), sorted."""
    candidates: list[str] = []
    try:
        candidates = [port.device for port in list_ports.comports()]
    except Exception as err:  # noqa: BLE001 - enumeration is best-effort
        _LOGGER.debug("pyserial port enumeration failed: %s", err)
        candidates = []

    # Fallback globbing for POSIX if list_ports comes back empty
    if not candidates and not sys.platform.startswith("win"):
        for pattern in ("/dev/ttyUSB*", "/dev/ttyACM*", "/dev/serial/by-id/*"):
            candidates.extend(glob.glob(pattern))

    return sorted(set(candidates))


def preferred_port(ports: list[str], prefer: str = PREFERRED_PORT) -> str | None:
    if not ports:
        return None
    return prefer if prefer in ports else ports[0]


def collect_port_info() -> str:
    """Describe every serial device the OS reports, for support packs."""
    lines = [f"Collected: {ts_str()}", ""]
    try:
        ports = sorted(list_ports.comports(), key=lambda p: p.device)
    except Exception as err:  # noqa: BLE001 - report instead of failing the pack
        lines.append(f"Port enumeration failed: {err}")
        return "\n".join(lines) + "\n"

    if not ports:
        lines.append("No serial ports reported by the OS.")
    for port in ports:
        description = port.description if port.description and port.description != "n/a" else port.device
        lines.append(f"{description} ({port.device})")
        lines.append(f"  HWID: {port.hwid}")
        if port.manufacturer:
            lines.append(f"  Manufacturer: {port.manufacturer}")
        if port.serial_number:
            lines.append(f"  Serial: {port.serial_number}")
        lines.append("")
    return "\n".join(lines) + "\n"
