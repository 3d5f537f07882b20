"""COM Sniffer: capture a serial line into per-session hex and ASCII logs."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("com-sniffer")
except Exception:
    __version__ = "0.0.0.dev"
