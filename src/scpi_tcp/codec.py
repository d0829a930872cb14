"""Decoder for the instrument error report returned by ``SYST:ERR?``.

Two report shapes are accepted::

    -101,"Invalid character"
    -101, Invalid character

The code must carry an explicit sign. The message is everything after the
comma, with optional surrounding quotes removed and ASCII case folded to
lowercase. Code ``0`` means "no error".
"""

from __future__ import annotations

import re

from scpi_tcp.errors import InvalidFormatError, ScpiCommandError, ScpiInstrumentError

# Signed code, comma, optional whitespace, optionally quoted message.
_ERROR_RE = re.compile(r'^([+-]\d+),\s*"?(.*?)"?$', re.DOTALL)


def parse_error_report(text: str) -> ScpiInstrumentError | None:
    """Parse a ``SYST:ERR?`` response into an error queue entry.

    Surrounding whitespace (including the instrument's line terminator) is
    ignored.

    Args:
        text: The raw error report.

    Returns:
        The decoded entry, or ``None`` when the report indicates no error.

    Raises:
        InvalidFormatError: If the text matches neither accepted grammar.
    """
    match = _ERROR_RE.match(text.strip())
    if match is None:
        raise InvalidFormatError(text)
    code = int(match.group(1))
    if code == 0:
        return None
    return ScpiInstrumentError(code=code, message=match.group(2).lower())


def check_error_report(cmd: str, text: str) -> None:
    """Decode an error report in the context of the command just sent.

    Args:
        cmd: The command whose execution is being verified.
        text: The raw ``SYST:ERR?`` response.

    Raises:
        InvalidFormatError: If the text matches neither accepted grammar.
        ScpiCommandError: If the instrument reported a non-zero code.
    """
    error = parse_error_report(text)
    if error is not None:
        raise ScpiCommandError(cmd, error)
