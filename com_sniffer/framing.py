"""Split raw serial bytes into printable text lines."""

from __future__ import annotations

from typing import Iterator

from .const import DEFAULT_MAX_PENDING
from .types import AsciiLine

LF = 0x0A
CR = 0x0D


def to_printable_ascii(data: bytes) -> str:
    """Replace non-printable bytes with '.' and drop CR/LF."""
    out: list[str] = []
    for b in data:
        if b in (CR, LF):
            continue
        out.append(chr(b) if 0x20 <= b <= 0x7E else ".")
    return "".join(out)


class FrameSplitter:
    """Accumulates bytes and yields one AsciiLine per LF-terminated run.

    A run that reaches ``max_pending`` bytes without a line feed is flushed
    as-is so the pending buffer stays bounded.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        if max_pending <= 0:
            raise ValueError("max_pending must be positive")
        self.max_pending = max_pending
        self._buf = bytearray()

    @property
    def pending(self) -> int:
        return len(self._buf)

    def reset(self) -> None:
        self._buf.clear()

    def ingest(self, data: bytes, timestamp: str) -> Iterator[AsciiLine]:
        """Append ``data`` and yield every completed line.

        The buffer is only trimmed as the caller consumes the generator, so it
        must be exhausted before the next call.
        """
        self._buf.extend(data)

        while True:
            idx = self._buf.find(LF)
            if idx < 0:
                break
            run = bytes(self._buf[: idx + 1])
            del self._buf[: idx + 1]
            yield AsciiLine(text=to_printable_ascii(run), timestamp=timestamp, raw=run)

        while len(self._buf) >= self.max_pending:
            run = bytes(self._buf[: self.max_pending])
            del self._buf[: self.max_pending]
            yield AsciiLine(text=to_printable_ascii(run), timestamp=timestamp, raw=run)
