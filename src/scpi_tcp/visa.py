"""PyVISA transport for SCPI instruments.

This module provides a VISA-based implementation of
:class:`~scpi_tcp.transport.ScpiTransport`. The PyVISA library is lazily
imported on :meth:`VisaTransport.open` so the TCP transport works without
VISA installed.

Supported resource string formats include:
- TCPIP: ``TCPIP::192.168.1.100::5025::SOCKET`` (raw LAN socket)
- TCPIP: ``TCPIP::192.168.1.100::INSTR`` (VXI-11 / HiSLIP)
- USB: ``USB0::0x0957::0x0407::MY12345678::0::INSTR``
- GPIB: ``GPIB0::22::INSTR``
"""

from __future__ import annotations

import logging
from typing import Any

from scpi_tcp.errors import ScpiTimeoutError, ScpiTransportError

logger = logging.getLogger(__name__)


class VisaTransport:
    """SCPI transport backed by PyVISA.

    Writes and reads are raw: the client appends the command terminator
    itself, and a read returns at most ``size`` bytes of one VISA message.

    Args:
        resource_string: VISA resource address.
        timeout: I/O timeout in seconds, or None to block indefinitely.

    Example:
        >>> transport = VisaTransport("TCPIP::192.168.1.100::5025::SOCKET")
        >>> transport.open()
        >>> transport.write(b"*IDN?\\n")
        >>> transport.read(1024)
        >>> transport.close()
    """

    def __init__(self, resource_string: str, *, timeout: float | None = 5.0) -> None:
        self._resource_string = resource_string
        self._timeout = timeout
        self._pyvisa: Any = None
        self._rm: Any = None
        self._resource: Any = None

    # -- Properties ----------------------------------------------------------

    @property
    def resource_string(self) -> str:
        """The VISA resource string."""
        return self._resource_string

    @property
    def is_open(self) -> bool:
        """Return True if the resource is currently open."""
        return self._resource is not None

    # -- Lifecycle -----------------------------------------------------------

    def open(self) -> None:
        """Open the VISA resource.

        Lazily imports ``pyvisa`` and creates a ``ResourceManager``.

        Raises:
            ScpiTransportError: If ``pyvisa`` is not installed or the
                resource cannot be opened.
        """
        if self._resource is not None:
            return

        try:
            import pyvisa  # type: ignore[import-not-found]  # pylint: disable=import-outside-toplevel
        except ImportError as exc:
            raise ScpiTransportError(
                "pyvisa library is not installed. Install with: pip install scpi-tcp[visa]"
            ) from exc

        self._pyvisa = pyvisa
        try:
            self._rm = pyvisa.ResourceManager()
            self._resource = self._rm.open_resource(self._resource_string)
            self._resource.timeout = _to_visa_timeout(self._timeout)
        except Exception as exc:
            self._resource = None
            self.close()
            raise ScpiTransportError(
                f"Failed to open VISA resource {self._resource_string!r}: {exc}"
            ) from exc
        logger.info("Opened VISA resource %s", self._resource_string)

    def close(self) -> None:
        """Close the VISA resource and resource manager.

        Safe to call multiple times.
        """
        if self._resource is not None:
            try:
                self._resource.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing VISA resource", exc_info=True)
            self._resource = None
        if self._rm is not None:
            try:
                self._rm.close()
            except Exception:  # pylint: disable=broad-except
                logger.debug("Error closing VISA resource manager", exc_info=True)
            self._rm = None

    # -- Transport interface -------------------------------------------------

    def write(self, data: bytes) -> None:
        resource = self._require_resource()
        try:
            resource.write_raw(data)
        except self._pyvisa.errors.VisaIOError as exc:
            raise self._wrap(exc, "write") from exc

    def read(self, size: int) -> bytes:
        resource = self._require_resource()
        try:
            data: bytes = resource.read_raw(size)
        except self._pyvisa.errors.VisaIOError as exc:
            raise self._wrap(exc, "read") from exc
        if not data:
            raise ScpiTransportError("Connection closed by instrument")
        return data[:size]

    def set_timeout(self, timeout: float | None) -> None:
        self._require_resource().timeout = _to_visa_timeout(timeout)

    # -- Private helpers -----------------------------------------------------

    def _require_resource(self) -> Any:
        if self._resource is None:
            raise ScpiTransportError("VISA resource is not open")
        return self._resource

    def _wrap(self, exc: Exception, operation: str) -> Exception:
        timeout_code = self._pyvisa.constants.StatusCode.error_timeout
        if getattr(exc, "error_code", None) == timeout_code:
            return ScpiTimeoutError(f"Timed out on VISA {operation}")
        return ScpiTransportError(f"VISA {operation} failed: {exc}")


def _to_visa_timeout(timeout: float | None) -> float | None:
    """Convert seconds to the milliseconds PyVISA expects (None = infinite)."""
    return None if timeout is None else timeout * 1000.0
