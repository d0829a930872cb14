"""SCPI client with implicit error-queue verification.

This module provides :class:`ScpiClient`, which owns one transport to one
instrument and implements the command/response protocol:

- :meth:`ScpiClient.exec` sends a command, then verifies it by querying
  ``SYST:ERR?`` and decoding the report. Every exec is two round trips.
- :meth:`ScpiClient.bulk_exec` joins commands with ``;`` into one line and
  verifies the batch once. A fault anywhere in the batch is attributed to
  the whole joined command.
- :meth:`ScpiClient.query` sends a query and performs exactly one bounded
  read. It does not verify, since verification is itself a query.

Responses are not delimiter-framed: whatever a single read of at most
``buffer_size`` bytes returns is the response, and longer responses are
truncated.

The client is not thread-safe. At most one command/response cycle may be in
flight per client; callers sharing a client must serialize access.

Typical usage::

    from scpi_tcp import new_client

    with new_client("tcp", "192.168.1.100:5025", timeout=5.0) as client:
        client.exec("CONF:VOLT:DC 10")
        client.bulk_exec("TRIG:SOUR BUS", "INIT")
        print(client.query("*IDN?"))
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

from scpi_tcp.codec import check_error_report
from scpi_tcp.config import ScpiClientConfig
from scpi_tcp.errors import InvalidProtocolError, SessionClosedError
from scpi_tcp.transport import ScpiTransport, TcpTransport
from scpi_tcp.visa import VisaTransport

logger = logging.getLogger(__name__)

ERROR_QUERY = "SYST:ERR?"
"""Reserved query issued after every exec to read the instrument error queue."""

BULK_SEPARATOR = ";"

PROTOCOLS = ("tcp", "visa")


class ScpiClient:
    """Session with one SCPI instrument over an exclusively owned transport.

    Every operation accepts an optional ``timeout`` in seconds. When given,
    it is applied to the transport for the duration of that call and the
    client's default I/O timeout is restored afterwards.

    Args:
        transport: An open transport. The client takes exclusive ownership.
        buffer_size: Capacity of the single receive buffer in bytes.
        encoding: Text encoding for commands and responses.
        terminator: Line terminator appended to every command.
        io_timeout: Default transport timeout in seconds, or None to block.

    Example:
        >>> client = ScpiClient(transport)
        >>> client.exec("*RST")
        >>> client.query("*IDN?")
        'KEYSIGHT,34465A,MY123,A.02.14\\n'
        >>> client.close()
    """

    def __init__(
        self,
        transport: ScpiTransport,
        *,
        buffer_size: int = 1024,
        encoding: str = "ascii",
        terminator: str = "\n",
        io_timeout: float | None = None,
    ) -> None:
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._transport = transport
        self._buffer_size = buffer_size
        self._encoding = encoding
        self._terminator = terminator
        self._io_timeout = io_timeout
        self._closed = False
        self._timeout_lock = threading.Lock()
        self._timeout_generation = 0

    # -- Properties ----------------------------------------------------------

    @property
    def buffer_size(self) -> int:
        """Receive buffer capacity in bytes."""
        return self._buffer_size

    @property
    def closed(self) -> bool:
        """Return True once :meth:`close` has been called."""
        return self._closed

    # -- Core operations -----------------------------------------------------

    def exec(self, cmd: str, *, timeout: float | None = None) -> None:
        """Execute a command and verify it against the error queue.

        Args:
            cmd: The SCPI command, without a line terminator.
            timeout: Optional deadline in seconds for this call.

        Raises:
            SessionClosedError: If the client is closed.
            ScpiTransportError: If the write or the verification I/O fails.
            ScpiTimeoutError: If the transport times out.
            InvalidFormatError: If the error report is malformed.
            ScpiCommandError: If the instrument reports a fault for ``cmd``.
        """
        self._require_open()
        with self._deadline(timeout):
            self._send(cmd)
            self._verify(cmd)

    def bulk_exec(self, *cmds: str, timeout: float | None = None) -> None:
        """Execute several commands as one ``;``-joined line.

        Commands run left to right on the instrument. The error check runs
        once, and a fault is reported against the joined command string.

        Args:
            *cmds: The SCPI commands, in execution order.
            timeout: Optional deadline in seconds for this call.

        Raises:
            Same as :meth:`exec`.
        """
        self.exec(BULK_SEPARATOR.join(cmds), timeout=timeout)

    def query(self, cmd: str, *, timeout: float | None = None) -> str:
        """Send a query and return the response of a single bounded read.

        The response is returned as decoded, terminator included. No error
        queue verification is performed.

        Args:
            cmd: The SCPI query string (e.g. ``"MEAS:VOLT:DC?"``).
            timeout: Optional deadline in seconds for this call.

        Returns:
            At most ``buffer_size`` bytes of response, decoded as text.

        Raises:
            SessionClosedError: If the client is closed.
            ScpiTransportError: If the write or read fails.
            ScpiTimeoutError: If the transport times out.
        """
        self._require_open()
        with self._deadline(timeout):
            self._send(cmd)
            return self._receive()

    def ping(self, *, timeout: float | None = None) -> None:
        """Verify the session is usable, without touching instrument state.

        No liveness probe command is defined, so this only checks that the
        client has not been closed.

        Raises:
            SessionClosedError: If the client is closed.
        """
        del timeout
        self._require_open()

    def close(self) -> None:
        """Close the transport. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self._transport.close()

    def __enter__(self) -> ScpiClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- Private helpers -----------------------------------------------------

    def _send(self, cmd: str) -> None:
        """Write ``cmd`` plus terminator in one transmission."""
        if self._terminator in cmd:
            raise ValueError(f"Command must not contain the line terminator: {cmd!r}")
        logger.debug(">> %s", cmd)
        self._transport.write((cmd + self._terminator).encode(self._encoding))

    def _receive(self) -> str:
        """Read once, up to the buffer capacity."""
        data = self._transport.read(self._buffer_size)
        if len(data) >= self._buffer_size:
            logger.debug("Response filled the %d byte buffer and may be truncated", self._buffer_size)
        response = data.decode(self._encoding, errors="replace")
        logger.debug("<< %r", response)
        return response

    def _verify(self, cmd: str) -> None:
        """Query the error queue and attribute any fault to ``cmd``."""
        report = self.query(ERROR_QUERY)
        check_error_report(cmd, report)

    @contextmanager
    def _deadline(self, timeout: float | None) -> Iterator[None]:
        if timeout is None:
            yield
            return
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        with self._timeout_lock:
            self._timeout_generation += 1
            generation = self._timeout_generation
            self._transport.set_timeout(timeout)
        try:
            yield
        finally:
            # Only the most recent override restores the default timeout.
            with self._timeout_lock:
                if not self._closed and generation == self._timeout_generation:
                    self._transport.set_timeout(self._io_timeout)

    def _require_open(self) -> None:
        if self._closed:
            raise SessionClosedError("SCPI session is closed")


def new_client(protocol: str, address: str, timeout: float, **kwargs: object) -> ScpiClient:
    """Open a client to the instrument at ``address``.

    Args:
        protocol: ``"tcp"`` or ``"visa"``.
        address: ``host:port`` for TCP, a VISA resource string for VISA.
        timeout: Dial timeout in seconds.
        **kwargs: Additional :class:`ScpiClientConfig` options.

    Returns:
        A connected client.

    Raises:
        InvalidProtocolError: If ``protocol`` is not supported.
        ScpiTransportError: If the connection cannot be established.
    """
    if protocol not in PROTOCOLS:
        raise InvalidProtocolError(protocol)
    config = ScpiClientConfig.from_address(
        address, protocol=protocol, dial_timeout=timeout, **kwargs
    )
    return connect(config)


def connect(config: ScpiClientConfig) -> ScpiClient:
    """Open a client described by ``config``.

    Args:
        config: Client configuration.

    Returns:
        A connected client.

    Raises:
        InvalidProtocolError: If ``config.protocol`` is not supported.
        ScpiTransportError: If the connection cannot be established.
    """
    transport: ScpiTransport
    if config.protocol == "tcp":
        transport = TcpTransport.dial(config.address, config.dial_timeout, config.io_timeout)
    elif config.protocol == "visa":
        visa = VisaTransport(config.address, timeout=config.dial_timeout)
        visa.open()
        visa.set_timeout(config.io_timeout)
        transport = visa
    else:
        raise InvalidProtocolError(config.protocol)

    return ScpiClient(
        transport,
        buffer_size=config.buffer_size,
        encoding=config.encoding,
        terminator=config.terminator,
        io_timeout=config.io_timeout,
    )
