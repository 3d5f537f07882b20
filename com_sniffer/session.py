"""On-disk session directories and their two log files."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
import os
import re
from pathlib import Path
from typing import TextIO

from .const import ASCII_LOG_NAME, HEX_LOG_NAME, LOG_DIR_NAME, LOG_ROOT_ENV_VAR, SESSION_DIR_FORMAT
from .errors import SinkError

_LOGGER = logging.getLogger(__name__)

SESSION_DIR_RE = re.compile(r"^(\d{8}_\d{6})(?:_(\d+))?$")


def default_log_root() -> Path:
    """Return the log root: env override, else ``~/Documents/<App>Logs``."""
    override = os.environ.get(LOG_ROOT_ENV_VAR, "").strip()
    if override:
        return Path(override).expanduser()
    docs = Path.home() / "Documents"
    base = docs if docs.is_dir() else Path.home()
    return base / LOG_DIR_NAME


@dataclass(slots=True)
class Session:
    """One connect-to-disconnect lifetime."""

    session_id: str
    directory: Path
    created: datetime
    closed: bool = False

    @property
    def hex_path(self) -> Path:
        return self.directory / HEX_LOG_NAME

    @property
    def ascii_path(self) -> Path:
        return self.directory / ASCII_LOG_NAME


@dataclass(slots=True)
class SessionStore:
    """Owns a session directory and its hex/ascii sinks, opened as a pair."""

    session: Session
    hex_file: TextIO | None = field(default=None, repr=False)
    ascii_file: TextIO | None = field(default=None, repr=False)

    @classmethod
    def create(cls, root: Path, now: datetime | None = None) -> "SessionStore":
        """Make a fresh uniquely named session directory under ``root``."""
        now = now or datetime.now()
        base_id = now.strftime(SESSION_DIR_FORMAT)
        try:
            root.mkdir(parents=True, exist_ok=True)
            session_id = base_id
            suffix = 1
            while True:
                directory = root / session_id
                try:
                    directory.mkdir()
                    break
                except FileExistsError:
                    suffix += 1
                    session_id = f"{base_id}_{suffix}"
        except OSError as err:
            raise SinkError(f"Cannot create session directory under {root}: {err}") from err
        _LOGGER.debug("Created session directory %s", directory)
        return cls(session=Session(session_id=session_id, directory=directory, created=now))

    @property
    def is_open(self) -> bool:
        return self.hex_file is not None and self.ascii_file is not None

    def open(self) -> None:
        if self.is_open:
            return
        hex_file = None
        try:
            hex_file = self.session.hex_path.open("a", encoding="utf-8", buffering=1)
            ascii_file = self.session.ascii_path.open("a", encoding="utf-8", buffering=1)
        except OSError as err:
            if hex_file is not None:
                hex_file.close()
            raise SinkError(f"Cannot open log files in {self.session.directory}: {err}") from err
        self.hex_file = hex_file
        self.ascii_file = ascii_file

    def close(self) -> None:
        files = (self.hex_file, self.ascii_file)
        self.hex_file = None
        self.ascii_file = None
        self.session.closed = True
        for fh in files:
            if fh is None:
                continue
            try:
                fh.close()
            except OSError as err:
                _LOGGER.debug("Ignoring error closing %s: %s", fh.name, err)

    def discard(self) -> None:
        """Remove a session that never went live: its two logs, then the directory if empty."""
        self.close()
        for path in (self.session.hex_path, self.session.ascii_path):
            try:
                path.unlink(missing_ok=True)
            except OSError as err:
                _LOGGER.debug("Could not remove %s: %s", path, err)
        try:
            self.session.directory.rmdir()
        except OSError:
            pass


def _session_sort_key(directory: Path) -> tuple[str, int] | None:
    match = SESSION_DIR_RE.match(directory.name)
    if match is None:
        return None
    return match.group(1), int(match.group(2) or 1)


def latest_session_dir(root: Path) -> Path | None:
    """Most recent session directory under ``root``, if any.

    ``20261018_140509_10`` is newer than ``20261018_140509_2``.
    """
    if not root.is_dir():
        return None
    keyed: list[tuple[tuple[str, int], Path]] = []
    for path in root.iterdir():
        key = _session_sort_key(path)
        if key is not None and path.is_dir():
            keyed.append((key, path))
    return max(keyed)[1] if keyed else None
