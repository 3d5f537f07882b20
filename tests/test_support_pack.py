"""Tests for support pack creation."""

from datetime import datetime
import zipfile

import pytest

from com_sniffer.errors import SnifferError
from com_sniffer.support_pack import create_support_pack

WHEN = datetime(2026, 10, 18, 16, 45, 0)


@pytest.fixture
def machine_folder(tmp_path):
    folder = tmp_path / "Machine"
    (folder / "sub").mkdir(parents=True)
    (folder / "settings.ini").write_text("speed=3\n")
    (folder / "sub" / "calib.dat").write_bytes(b"\x00\x01")
    return folder


@pytest.fixture
def session_dir(log_root):
    directory = log_root / "20261018_164000"
    directory.mkdir(parents=True)
    (directory / "serial_raw_hex.log").write_text("# START\n")
    (directory / "serial_ascii.log").write_text("# START\n")
    return directory


class TestSupportPack:
    def test_zip_contains_both_folders(self, machine_folder, session_dir, log_root):
        zip_path = create_support_pack(machine_folder, session_dir, log_root, port_info="Collected: now\n", now=WHEN)
        assert zip_path == log_root / "support_pack_20261018_164500.zip"
        with zipfile.ZipFile(zip_path) as zf:
            names = sorted(zf.namelist())
            assert names == [
                "ExternalFolder/settings.ini",
                "ExternalFolder/sub/calib.dat",
                "LoggerSession/serial_ascii.log",
                "LoggerSession/serial_raw_hex.log",
                "LoggerSession/system_com_info.txt",
            ]
            assert zf.read("LoggerSession/system_com_info.txt") == b"Collected: now\n"
            assert zf.read("ExternalFolder/sub/calib.dat") == b"\x00\x01"

    def test_port_report_written_to_session(self, machine_folder, session_dir, log_root):
        create_support_pack(machine_folder, session_dir, log_root, port_info="report", now=WHEN)
        assert (session_dir / "system_com_info.txt").read_text(encoding="utf-8") == "report"

    def test_existing_pack_replaced(self, machine_folder, session_dir, log_root):
        log_root.mkdir(exist_ok=True)
        stale = log_root / "support_pack_20261018_164500.zip"
        stale.write_bytes(b"not a zip")
        zip_path = create_support_pack(machine_folder, session_dir, log_root, port_info="", now=WHEN)
        assert zipfile.is_zipfile(zip_path)

    def test_without_session(self, machine_folder, tmp_path):
        zip_path = create_support_pack(machine_folder, None, tmp_path / "out", now=WHEN)
        with zipfile.ZipFile(zip_path) as zf:
            assert all(name.startswith("ExternalFolder/") for name in zf.namelist())

    def test_missing_folder(self, tmp_path):
        with pytest.raises(SnifferError):
            create_support_pack(tmp_path / "nope", None, tmp_path / "out", now=WHEN)
