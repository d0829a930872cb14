"""SCPI transport protocol and the TCP socket transport.

This module defines the :class:`ScpiTransport` protocol, the raw byte-stream
capability that :class:`~scpi_tcp.client.ScpiClient` is built on, and
:class:`TcpTransport`, its implementation over a TCP connection.

Transports carry bytes only. Framing (the command terminator) and the
single bounded read per response are the client's concern.

Implementations include:
- :class:`TcpTransport`: raw socket, usually port 5025
- :class:`scpi_tcp.visa.VisaTransport`: PyVISA-backed transport
"""

from __future__ import annotations

import logging
import socket
from typing import Protocol

from scpi_tcp.config import split_address
from scpi_tcp.errors import ScpiTimeoutError, ScpiTransportError

logger = logging.getLogger(__name__)


class ScpiTransport(Protocol):
    """Protocol for a byte-stream connection to one instrument.

    This is a structural subtyping protocol. Any class implementing these
    methods with matching signatures is a valid transport, which lets tests
    substitute an in-memory transport for a live socket.
    """

    def write(self, data: bytes) -> None:
        """Send all of ``data`` in one transmission.

        Raises:
            ScpiTransportError: If the write fails.
            ScpiTimeoutError: If the write times out.
        """
        ...

    def read(self, size: int) -> bytes:
        """Perform one read of at most ``size`` bytes.

        Raises:
            ScpiTransportError: If the read fails or the peer closed.
            ScpiTimeoutError: If the read times out.
        """
        ...

    def set_timeout(self, timeout: float | None) -> None:
        """Set the I/O timeout in seconds, or None to block indefinitely."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        ...


class TcpTransport:
    """SCPI transport over a TCP socket.

    Args:
        sock: A connected socket. The transport takes exclusive ownership.
        timeout: Initial I/O timeout in seconds, or None to block.
    """

    def __init__(self, sock: socket.socket, timeout: float | None = None) -> None:
        sock.settimeout(timeout)
        self._sock: socket.socket | None = sock

    @classmethod
    def dial(
        cls,
        address: str,
        dial_timeout: float,
        io_timeout: float | None = None,
    ) -> TcpTransport:
        """Resolve ``address`` and open a TCP connection to it.

        Args:
            address: ``host:port`` or ``[ipv6]:port``.
            dial_timeout: Connection establishment timeout in seconds.
            io_timeout: I/O timeout applied once connected.

        Returns:
            A connected transport.

        Raises:
            ValueError: If the address is malformed.
            ScpiTransportError: If the connection cannot be established.
        """
        host, port = split_address(address)
        try:
            sock = socket.create_connection((host, port), timeout=dial_timeout)
        except OSError as exc:
            raise ScpiTransportError(f"Failed to connect to {address}: {exc}") from exc
        logger.info("Connected to %s:%d", host, port)
        return cls(sock, timeout=io_timeout)

    @property
    def is_open(self) -> bool:
        """Return True if the socket has not been closed."""
        return self._sock is not None

    def write(self, data: bytes) -> None:
        sock = self._require_socket()
        try:
            sock.sendall(data)
        except socket.timeout as exc:
            raise ScpiTimeoutError("Timed out writing to instrument") from exc
        except OSError as exc:
            raise ScpiTransportError(f"Failed to write to instrument: {exc}") from exc

    def read(self, size: int) -> bytes:
        sock = self._require_socket()
        try:
            data = sock.recv(size)
        except socket.timeout as exc:
            raise ScpiTimeoutError("Timed out reading from instrument") from exc
        except OSError as exc:
            raise ScpiTransportError(f"Failed to read from instrument: {exc}") from exc
        if not data:
            raise ScpiTransportError("Connection closed by instrument")
        return data

    def set_timeout(self, timeout: float | None) -> None:
        self._require_socket().settimeout(timeout)

    def close(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        finally:
            self._sock = None
            logger.info("TCP transport closed")

    def _require_socket(self) -> socket.socket:
        if self._sock is None:
            raise ScpiTransportError("TCP transport is closed")
        return self._sock
