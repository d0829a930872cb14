"""SCPI client error types.

This module defines the exception hierarchy raised by the SCPI client. All
exceptions inherit from :class:`ScpiError`, allowing callers to catch every
client error with a single except clause.

Exception hierarchy:
    ScpiError (base)
    +-- InvalidProtocolError: Unsupported transport requested at construction
    +-- ScpiTransportError: Dial, write or read failure
    +-- InvalidFormatError: Error report matched neither accepted grammar
    +-- ScpiCommandError: Instrument reported a fault for a command
    +-- ScpiTimeoutError: Deadline elapsed before the instrument replied
    +-- SessionClosedError: Operation attempted on a closed client
"""

from __future__ import annotations

from dataclasses import dataclass


class ScpiError(Exception):
    """Base exception for SCPI client errors."""


class InvalidProtocolError(ScpiError):
    """Raised when a client is requested for an unsupported protocol.

    Attributes:
        protocol: The rejected protocol name.
    """

    def __init__(self, protocol: str) -> None:
        self.protocol = protocol
        super().__init__(f"invalid protocol {protocol}")


class ScpiTransportError(ScpiError):
    """Raised when the underlying connection fails to dial, write or read.

    Transport failures are never retried and are fatal to the operation in
    flight.
    """


class ScpiTimeoutError(ScpiError):
    """Raised when a deadline elapses before the instrument responds."""


class SessionClosedError(ScpiError):
    """Raised when an operation is attempted on a closed client."""


class InvalidFormatError(ScpiError):
    """Raised when an error report matches neither accepted grammar.

    Attributes:
        text: The raw error report, verbatim.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f"invalid format: {text}")


@dataclass(frozen=True)
class ScpiInstrumentError:
    """Single entry from an instrument's error queue.

    Attributes:
        code: SCPI error code (negative for standard errors, positive for
            device-specific ones, zero for "no error").
        message: Error description, lowercased on decode.
    """

    code: int
    message: str

    def __str__(self) -> str:
        """Return the entry in the wire form reported by ``SYST:ERR?``.

        Returns:
            Error formatted as ``+code,"message"`` with an explicit sign.
        """
        return f'{self.code:+d},"{self.message}"'


class ScpiCommandError(ScpiError):
    """Raised when the instrument reports a fault after a command.

    The fault is attributed to the command that was just sent, not to the
    ``SYST:ERR?`` query that revealed it. For a bulk execution the command is
    the whole ``;``-joined batch.

    Attributes:
        command: The command whose execution triggered the fault.
        error: The decoded error queue entry.

    Example:
        >>> try:
        ...     client.exec("VOLT 999")
        ... except ScpiCommandError as e:
        ...     print(e.code, e.message)
        -222 data out of range
    """

    def __init__(self, command: str, error: ScpiInstrumentError) -> None:
        self.command = command
        self.error = error
        super().__init__(f"'{command}' returned {error.code}: {error.message}")

    @property
    def code(self) -> int:
        """The instrument error code."""
        return self.error.code

    @property
    def message(self) -> str:
        """The lowercased instrument error message."""
        return self.error.message
