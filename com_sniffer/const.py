"""Constants for COM Sniffer."""

from __future__ import annotations

APP_NAME = "ComSniffer"
LOG_DIR_NAME = f"{APP_NAME}Logs"
LOG_ROOT_ENV_VAR = "COM_SNIFFER_LOG_ROOT"

SESSION_DIR_FORMAT = "%Y%m%d_%H%M%S"
HEX_LOG_NAME = "serial_raw_hex.log"
ASCII_LOG_NAME = "serial_ascii.log"
SYSTEM_INFO_NAME = "system_com_info.txt"

READ_TIMEOUT = 0.5
WRITE_TIMEOUT = 0.5

DEFAULT_MAX_PENDING = 512
DEFAULT_VIEW_LINES = 20000

BAUD_CHOICES: tuple[int, ...] = (9600, 19200, 38400, 57600, 115200)
DATA_BITS_CHOICES: tuple[int, ...] = (7, 8)
DEFAULT_BAUD = 9600
DEFAULT_DATA_BITS = 8
PREFERRED_PORT = "COM3"

SUPPORT_PACK_FORMAT = "support_pack_%Y%m%d_%H%M%S.zip"
SUPPORT_PACK_FOLDER_ENTRY = "ExternalFolder"
SUPPORT_PACK_SESSION_ENTRY = "LoggerSession"
