"""Serial line settings and their validation schema."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import serial
import voluptuous as vol

from .const import DATA_BITS_CHOICES, DEFAULT_BAUD, DEFAULT_DATA_BITS
from .errors import OpenError


class Parity(Enum):
    NONE = "None"
    ODD = "Odd"
    EVEN = "Even"
    MARK = "Mark"
    SPACE = "Space"


class StopBits(Enum):
    ONE = "One"
    ONE_POINT_FIVE = "OnePointFive"
    TWO = "Two"


class Handshake(Enum):
    NONE = "None"
    XON_XOFF = "XOnXOff"
    REQUEST_TO_SEND = "RequestToSend"
    REQUEST_TO_SEND_XON_XOFF = "RequestToSendXOnXOff"


PARITY_MAP = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
    Parity.MARK: serial.PARITY_MARK,
    Parity.SPACE: serial.PARITY_SPACE,
}

STOPBITS_MAP = {
    StopBits.ONE: serial.STOPBITS_ONE,
    StopBits.ONE_POINT_FIVE: serial.STOPBITS_ONE_POINT_FIVE,
    StopBits.TWO: serial.STOPBITS_TWO,
}

# Short forms accepted on the command line, e.g. "--parity E --stopbits 1".
_ALIASES: dict[type[Enum], dict[str, Enum]] = {
    Parity: {"n": Parity.NONE, "o": Parity.ODD, "e": Parity.EVEN, "m": Parity.MARK, "s": Parity.SPACE},
    StopBits: {"1": StopBits.ONE, "1.5": StopBits.ONE_POINT_FIVE, "2": StopBits.TWO},
    Handshake: {
        "xonxoff": Handshake.XON_XOFF,
        "rts": Handshake.REQUEST_TO_SEND,
        "rtscts": Handshake.REQUEST_TO_SEND,
        "both": Handshake.REQUEST_TO_SEND_XON_XOFF,
    },
}


def _normalize(text: str) -> str:
    return text.strip().lower().replace("-", "").replace("_", "").replace(" ", "")


def parse_enum(enum_cls: type[Enum], value: Any) -> Enum:
    """Resolve ``value`` to a member of ``enum_cls`` by value, name or alias."""
    if isinstance(value, enum_cls):
        return value
    text = str(value)
    alias = _ALIASES.get(enum_cls, {}).get(text.strip().lower())
    if alias is not None:
        return alias
    normalized = _normalize(text)
    for member in enum_cls:
        if normalized in (_normalize(member.value), _normalize(member.name)):
            return member
    choices = ", ".join(member.value for member in enum_cls)
    raise vol.Invalid(f"Unknown value '{text}'. Valid values: {choices}")


def _enum_validator(enum_cls: type[Enum]):
    def validate(value: Any) -> Enum:
        return parse_enum(enum_cls, value)

    return validate


def _port_name(value: Any) -> str:
    text = str(value).strip()
    if not text:
        raise vol.Invalid("No serial port selected")
    return text


SETTINGS_SCHEMA = vol.Schema(
    {
        vol.Required("port"): _port_name,
        vol.Optional("baudrate", default=DEFAULT_BAUD): vol.All(vol.Coerce(int), vol.Range(min=1)),
        vol.Optional("bytesize", default=DEFAULT_DATA_BITS): vol.All(vol.Coerce(int), vol.In(DATA_BITS_CHOICES)),
        vol.Optional("parity", default=Parity.NONE.value): _enum_validator(Parity),
        vol.Optional("stopbits", default=StopBits.ONE.value): _enum_validator(StopBits),
        vol.Optional("handshake", default=Handshake.NONE.value): _enum_validator(Handshake),
    }
)


@dataclass(frozen=True)
class SerialSettings:
    port: str
    baudrate: int = DEFAULT_BAUD
    bytesize: int = DEFAULT_DATA_BITS
    parity: Parity = Parity.NONE
    stopbits: StopBits = StopBits.ONE
    handshake: Handshake = Handshake.NONE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SerialSettings":
        """Validate raw user input; invalid parameters raise OpenError."""
        cleaned = {key: value for key, value in data.items() if value is not None and value != ""}
        try:
            values = SETTINGS_SCHEMA(cleaned)
        except vol.Invalid as err:
            raise OpenError(f"Invalid serial settings: {err}") from err
        return cls(**values)

    @property
    def xonxoff(self) -> bool:
        return self.handshake in (Handshake.XON_XOFF, Handshake.REQUEST_TO_SEND_XON_XOFF)

    @property
    def rtscts(self) -> bool:
        return self.handshake in (Handshake.REQUEST_TO_SEND, Handshake.REQUEST_TO_SEND_XON_XOFF)

    def serial_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``serial.Serial`` (port excluded)."""
        return {
            "baudrate": self.baudrate,
            "bytesize": self.bytesize,
            "parity": PARITY_MAP[self.parity],
            "stopbits": STOPBITS_MAP[self.stopbits],
            "xonxoff": self.xonxoff,
            "rtscts": self.rtscts,
        }

    def describe(self) -> str:
        """Compact form like ``9600 8N1, None``."""
        stop = "1" if self.stopbits is StopBits.ONE else self.stopbits.value
        return f"{self.baudrate} {self.bytesize}{self.parity.value[0]}{stop}, {self.handshake.value}"

    def marker_fields(self) -> str:
        return (
            f"Port={self.port} Baud={self.baudrate} DataBits={self.bytesize} "
            f"Parity={self.parity.value} StopBits={self.stopbits.value} Handshake={self.handshake.value}"
        )


def common_settings(port: str) -> SerialSettings:
    """The usual first guess for an unknown device: 9600 8N1, no handshake."""
    return SerialSettings(port=port)
