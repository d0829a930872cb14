"""TCP server exposing an :class:`InstrumentEmulator` on a raw SCPI socket.

Allows :class:`~scpi_tcp.client.ScpiClient`, PyVISA (``::SOCKET``
resources), telnet or netcat to talk to an emulated instrument.

Example:
    Start an emulator server on an ephemeral port::

        from scpi_tcp import EmulatorServer, InstrumentEmulator, new_client

        server = EmulatorServer(InstrumentEmulator(), port=0)
        server.start()

        host, port = server.address
        with new_client("tcp", f"{host}:{port}", timeout=5.0) as client:
            print(client.query("*IDN?"))

        server.stop()
"""

from __future__ import annotations

import logging
import socketserver
import threading
from typing import Any

from scpi_tcp.emulator import InstrumentEmulator

logger = logging.getLogger(__name__)


class _ScpiRequestHandler(socketserver.StreamRequestHandler):
    """Handle one TCP connection, forwarding lines to the emulator.

    Each received line is processed as a whole; a response is written back
    only when the line contained answerable queries.
    """

    server: _ScpiTcpServer

    def handle(self) -> None:
        logger.info("Client connected from %s:%d", *self.client_address[:2])
        emulator = self.server.emulator
        try:
            for raw_line in self.rfile:
                line = raw_line.decode("ascii", errors="replace").strip()
                if not line:
                    continue
                with self.server.lock:
                    response = emulator.process(line)
                if response is not None:
                    self.wfile.write((response + "\n").encode("ascii"))
                    self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("Client went away with a response pending")
        logger.info("Client disconnected")


class _ScpiTcpServer(socketserver.TCPServer):
    """TCPServer subclass that holds a reference to the emulator."""

    allow_reuse_address = True

    def __init__(
        self,
        server_address: tuple[str, int],
        emulator: InstrumentEmulator,
        **kwargs: Any,
    ) -> None:
        self.emulator = emulator
        self.lock = threading.Lock()
        super().__init__(server_address, _ScpiRequestHandler, **kwargs)


class EmulatorServer:
    """TCP server wrapping an :class:`InstrumentEmulator`.

    Runs in a background daemon thread and serves one client connection at
    a time, like a typical instrument's raw socket port.

    Args:
        emulator: The emulator to serve.
        host: Bind address (default ``"127.0.0.1"``).
        port: Bind port (default ``5025``). Use ``0`` for an OS-assigned
            ephemeral port.
    """

    def __init__(
        self,
        emulator: InstrumentEmulator,
        host: str = "127.0.0.1",
        port: int = 5025,
    ) -> None:
        self._server = _ScpiTcpServer((host, port), emulator)
        self._thread: threading.Thread | None = None

    @property
    def emulator(self) -> InstrumentEmulator:
        """The served emulator."""
        return self._server.emulator

    @property
    def address(self) -> tuple[str, int]:
        """Return the actual bound ``(host, port)`` address."""
        addr = self._server.server_address
        return (str(addr[0]), int(addr[1]))

    def start(self) -> None:
        """Start serving in a daemon thread."""
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="scpi-emulator", daemon=True
        )
        self._thread.start()
        logger.info("Emulator listening on %s:%d", *self.address)

    def stop(self) -> None:
        """Shut down the server and wait for the thread to exit.

        Blocks until any connected client has disconnected.
        """
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join()
        self._server.server_close()

    def serve_forever(self) -> None:
        """Serve in the calling thread until interrupted."""
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()

    def __enter__(self) -> EmulatorServer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
