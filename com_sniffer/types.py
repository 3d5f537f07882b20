"""Shared value types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Trace(str, Enum):
    HEX = "hex"
    ASCII = "ascii"


@dataclass(frozen=True, slots=True)
class ByteChunk:
    data: bytes
    timestamp: str


@dataclass(frozen=True, slots=True)
class AsciiLine:
    text: str
    timestamp: str
    raw: bytes = b""


def ts_str(when: datetime | None = None) -> str:
    """Sortable local ISO-8601 timestamp with microseconds and UTC offset."""
    if when is None:
        when = datetime.now()
    return when.astimezone().isoformat(timespec="microseconds")
