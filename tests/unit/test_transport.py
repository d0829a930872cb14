"""Tests for TcpTransport over real local sockets."""

from __future__ import annotations

import socket
from collections.abc import Iterator

import pytest

from scpi_tcp.errors import ScpiTimeoutError, ScpiTransportError
from scpi_tcp.transport import TcpTransport


@pytest.fixture
def pair() -> Iterator[tuple[TcpTransport, socket.socket]]:
    """A transport and the peer socket it is connected to."""
    left, right = socket.socketpair()
    transport = TcpTransport(left, timeout=2.0)
    try:
        yield transport, right
    finally:
        transport.close()
        right.close()


class TestReadWrite:
    """Tests for write and read."""

    def test_write_sends_all_bytes(self, pair: tuple[TcpTransport, socket.socket]) -> None:
        transport, peer = pair
        transport.write(b"*IDN?\n")
        assert peer.recv(1024) == b"*IDN?\n"

    def test_read_returns_available_bytes(self, pair: tuple[TcpTransport, socket.socket]) -> None:
        transport, peer = pair
        peer.sendall(b"1\n")
        assert transport.read(1024) == b"1\n"

    def test_read_bounded_by_size(self, pair: tuple[TcpTransport, socket.socket]) -> None:
        transport, peer = pair
        peer.sendall(b"0123456789")
        assert transport.read(4) == b"0123"

    def test_read_after_peer_close(self, pair: tuple[TcpTransport, socket.socket]) -> None:
        transport, peer = pair
        peer.close()
        with pytest.raises(ScpiTransportError, match="Connection closed"):
            transport.read(1024)

    def test_read_timeout(self, pair: tuple[TcpTransport, socket.socket]) -> None:
        transport, _ = pair
        transport.set_timeout(0.05)
        with pytest.raises(ScpiTimeoutError):
            transport.read(1024)


class TestLifecycle:
    """Tests for close and dial."""

    def test_close_idempotent(self) -> None:
        left, right = socket.socketpair()
        transport = TcpTransport(left)
        transport.close()
        transport.close()
        assert not transport.is_open
        right.close()

    def test_operations_after_close(self) -> None:
        left, right = socket.socketpair()
        transport = TcpTransport(left)
        transport.close()
        with pytest.raises(ScpiTransportError, match="closed"):
            transport.write(b"*RST\n")
        with pytest.raises(ScpiTransportError, match="closed"):
            transport.read(1024)
        right.close()

    def test_dial_connects(self) -> None:
        with socket.create_server(("127.0.0.1", 0)) as listener:
            port = listener.getsockname()[1]
            transport = TcpTransport.dial(f"127.0.0.1:{port}", dial_timeout=2.0)
            conn, _ = listener.accept()
            try:
                transport.write(b"*CLS\n")
                assert conn.recv(1024) == b"*CLS\n"
            finally:
                conn.close()
                transport.close()

    def test_dial_refused(self) -> None:
        with socket.create_server(("127.0.0.1", 0)) as listener:
            port = listener.getsockname()[1]
        with pytest.raises(ScpiTransportError, match="Failed to connect"):
            TcpTransport.dial(f"127.0.0.1:{port}", dial_timeout=2.0)

    def test_dial_bad_address(self) -> None:
        with pytest.raises(ValueError):
            TcpTransport.dial("127.0.0.1:notaport", dial_timeout=2.0)
