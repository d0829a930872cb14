"""IEEE 488.2 common-command facade over a SCPI client.

:class:`Instrument` supplies semantically named methods for the common
commands (reset, identify, status registers, save/recall) by formatting a
command string and delegating to the client's public operations. Commands go
through :meth:`ScpiClient.exec`, so they are always verified against the
error queue.

Typical usage::

    from scpi_tcp import Instrument, new_client

    inst = Instrument(new_client("tcp", "192.168.1.100:5025", timeout=5.0))
    inst.reset()
    identity = inst.get_identity()
    inst.wait_for_complete(timeout=30.0)
    inst.close()
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from scpi_tcp.client import ERROR_QUERY, ScpiClient
from scpi_tcp.codec import parse_error_report
from scpi_tcp.errors import ScpiInstrumentError
from scpi_tcp.waiter import wait_for_complete

MEMORY_LOCATIONS = range(10)
"""Non-volatile setting locations addressable by ``*SAV``/``*RCL``."""

_MAX_QUEUED_ERRORS = 100

_REGISTER_RE = re.compile(r"\d{1,3}")


@dataclass(frozen=True)
class InstrumentIdentity:
    """Instrument identification returned by ``*IDN?``.

    Attributes:
        manufacturer: Instrument manufacturer name (e.g., "Keysight").
        model: Instrument model number or name (e.g., "34465A").
        serial: Serial number string (or "0").
        firmware: Firmware version string.
    """

    manufacturer: str
    model: str
    serial: str
    firmware: str


def parse_idn_response(response: str) -> InstrumentIdentity:
    """Parse a ``*IDN?`` response into an :class:`InstrumentIdentity`.

    The standard format is four comma-separated fields::

        manufacturer,model,serial_number,firmware_version

    Extra fields are joined into the firmware string.

    Raises:
        ValueError: If the response has fewer than four fields.
    """
    parts = [p.strip() for p in response.split(",")]
    if len(parts) < 4:
        raise ValueError(
            f"Expected at least 4 comma-separated fields in *IDN? response, "
            f"got {len(parts)}: {response!r}"
        )
    return InstrumentIdentity(
        manufacturer=parts[0],
        model=parts[1],
        serial=parts[2],
        firmware=",".join(parts[3:]),
    )


def parse_register(response: str) -> int:
    """Parse an 8-bit status register value from a query response.

    Raises:
        ValueError: If no value in 0..255 is found.
    """
    match = _REGISTER_RE.search(response)
    if match is None:
        raise ValueError(f"No register value in response: {response!r}")
    value = int(match.group(0))
    if value > 255:
        raise ValueError(f"Register value out of range: {value}")
    return value


class Instrument:
    """IEEE 488.2 common commands for an instrument behind a client.

    Args:
        client: The client used for all communication. The facade owns it
            and closes it in :meth:`close`.
    """

    def __init__(self, client: ScpiClient) -> None:
        self._client = client

    @property
    def client(self) -> ScpiClient:
        """The underlying client."""
        return self._client

    # -- Device state --------------------------------------------------------

    def reset(self) -> None:
        """Reset to the factory pre-defined condition and clear the error log."""
        self._client.exec("*RST;*CLS")

    def clear_status(self) -> None:
        """Clear the status registers and error queue (``*CLS``)."""
        self._client.exec("*CLS")

    def trigger(self) -> None:
        """Trigger the device (``*TRG``).

        Only has an effect when bus triggering is the selected trigger source.
        """
        self._client.exec("*TRG")

    def save(self, mem: int) -> None:
        """Save the instrument setting to a non-volatile location (0-9)."""
        self._client.exec(f"*SAV {_check_memory(mem)}")

    def recall(self, mem: int) -> None:
        """Restore a setting previously stored with :meth:`save`."""
        self._client.exec(f"*RCL {_check_memory(mem)}")

    def wait_for_complete(self, timeout: float) -> None:
        """Wait for all queued operations to complete, up to ``timeout`` seconds.

        Raises:
            ScpiTimeoutError: If the deadline elapses first.
        """
        wait_for_complete(self._client, timeout)

    # -- Identification ------------------------------------------------------

    def identify(self) -> str:
        """Return the raw identification string (``*IDN?``).

        The standard field order is manufacturer, model number, serial
        number (or 0), firmware version.
        """
        return self._client.query("*IDN?").strip()

    def get_identity(self) -> InstrumentIdentity:
        """Query and parse the instrument identification."""
        return parse_idn_response(self.identify())

    # -- Status registers ----------------------------------------------------

    def set_event_status_enable(self, bits: int) -> None:
        """Set the Standard Event Status enable register (``*ESE``).

        The selected bits are reported to bit 5 of the Status Byte.
        """
        self._client.exec(f"*ESE {_check_register(bits)}")

    def query_event_status_enable(self) -> int:
        """Query the Standard Event Status enable register."""
        return parse_register(self._client.query("*ESE?"))

    def query_event_status_register(self) -> int:
        """Query the Standard Event Status register. Reading clears it."""
        return parse_register(self._client.query("*ESR?"))

    def set_service_request_enable(self, bits: int) -> None:
        """Set the Service Request enable register (``*SRE``)."""
        self._client.exec(f"*SRE {_check_register(bits)}")

    def query_service_request_enable(self) -> int:
        """Query the Service Request enable register."""
        return parse_register(self._client.query("*SRE?"))

    def query_status_byte_register(self) -> int:
        """Query the Status Byte register (``*STB?``)."""
        return parse_register(self._client.query("*STB?"))

    # -- Error queue ---------------------------------------------------------

    def get_errors(self) -> tuple[ScpiInstrumentError, ...]:
        """Drain the instrument error queue.

        Repeatedly queries ``SYST:ERR?`` until the instrument reports no
        error, reading at most a fixed number of entries.

        Returns:
            Every queued error, oldest first. Empty if there were none.

        Raises:
            InvalidFormatError: If a report is malformed.
        """
        errors: list[ScpiInstrumentError] = []
        for _ in range(_MAX_QUEUED_ERRORS):
            error = parse_error_report(self._client.query(ERROR_QUERY))
            if error is None:
                break
            errors.append(error)
        return tuple(errors)

    # -- Lifecycle -----------------------------------------------------------

    def close(self) -> None:
        """Close the underlying client."""
        self._client.close()


def _check_memory(mem: int) -> int:
    if mem not in MEMORY_LOCATIONS:
        raise ValueError(f"Memory location must be 0 to 9, got {mem}")
    return mem


def _check_register(bits: int) -> int:
    if not 0 <= bits <= 255:
        raise ValueError(f"Register value must be 0 to 255, got {bits}")
    return bits
