"""Bundle a session folder and a user-chosen folder into one zip."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
import zipfile

from .const import (
    SUPPORT_PACK_FOLDER_ENTRY,
    SUPPORT_PACK_FORMAT,
    SUPPORT_PACK_SESSION_ENTRY,
    SYSTEM_INFO_NAME,
)
from .errors import SnifferError
from .ports import collect_port_info

_LOGGER = logging.getLogger(__name__)


def add_folder_to_zip(zf: zipfile.ZipFile, folder: Path, root_name: str) -> int:
    """Add every file below ``folder`` under ``root_name/``; return the count."""
    count = 0
    for path in sorted(folder.rglob("*")):
        if not path.is_file():
            continue
        arcname = f"{root_name}/{path.relative_to(folder).as_posix()}"
        zf.write(path, arcname)
        count += 1
    return count


def create_support_pack(
    folder: Path,
    session_dir: Path | None,
    out_root: Path,
    port_info: str | None = None,
    now: datetime | None = None,
) -> Path:
    """Write ``support_pack_<ts>.zip`` into ``out_root`` and return its path.

    The session directory also gets a fresh ``system_com_info.txt`` before it
    is packed.
    """
    folder = Path(folder)
    if not folder.is_dir():
        raise SnifferError(f"Folder not found: {folder}")

    out_root.mkdir(parents=True, exist_ok=True)
    zip_path = out_root / (now or datetime.now()).strftime(SUPPORT_PACK_FORMAT)

    if session_dir is not None:
        session_dir = Path(session_dir)
        session_dir.mkdir(parents=True, exist_ok=True)
        info = port_info if port_info is not None else collect_port_info()
        (session_dir / SYSTEM_INFO_NAME).write_text(info, encoding="utf-8")

    if zip_path.exists():
        zip_path.unlink()
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        added = add_folder_to_zip(zf, folder, SUPPORT_PACK_FOLDER_ENTRY)
        if session_dir is not None:
            added += add_folder_to_zip(zf, session_dir, SUPPORT_PACK_SESSION_ENTRY)

    _LOGGER.info("Support pack %s created with %d files", zip_path, added)
    return zip_path
