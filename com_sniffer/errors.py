"""Exceptions raised by COM Sniffer."""

from __future__ import annotations


class SnifferError(Exception):
    """Base error for the sniffer."""


class OpenError(SnifferError):
    """The serial channel could not be opened or its settings are invalid."""


class ReadError(SnifferError):
    """A read from the channel failed; capture keeps running."""


class SinkError(SnifferError):
    """A log file could not be opened or written; fatal to the session."""


class AlreadyConnectedError(SnifferError):
    """A connect was requested while a session is active."""
