"""Tests for VisaTransport with mocked pyvisa module."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from scpi_tcp.errors import ScpiTimeoutError, ScpiTransportError
from scpi_tcp.visa import VisaTransport

TIMEOUT_CODE = -1073807339


class FakeVisaIOError(Exception):
    """Stand-in for pyvisa.errors.VisaIOError."""

    def __init__(self, error_code: int) -> None:
        super().__init__(f"VISA error {error_code}")
        self.error_code = error_code


def _make_mock_pyvisa() -> MagicMock:
    """Create a mock pyvisa module with ResourceManager."""
    mock_pyvisa = MagicMock()
    mock_rm = MagicMock()
    mock_resource = MagicMock()
    mock_rm.open_resource.return_value = mock_resource
    mock_pyvisa.ResourceManager.return_value = mock_rm
    mock_pyvisa.errors.VisaIOError = FakeVisaIOError
    mock_pyvisa.constants.StatusCode.error_timeout = TIMEOUT_CODE
    return mock_pyvisa


def _open(timeout: float | None = 5.0) -> tuple[VisaTransport, MagicMock]:
    """Open a transport against a mock pyvisa; return it and its resource."""
    mock_pyvisa = _make_mock_pyvisa()
    visa = VisaTransport("TCPIP::192.168.1.1::5025::SOCKET", timeout=timeout)
    with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
        visa.open()
    return visa, mock_pyvisa.ResourceManager().open_resource()


# ---------------------------------------------------------------------------
# open / close lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Tests for open/close lifecycle."""

    def test_open_opens_resource(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaTransport("TCPIP::192.168.1.1::5025::SOCKET")
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
        assert visa.is_open
        mock_pyvisa.ResourceManager().open_resource.assert_called_once_with(
            "TCPIP::192.168.1.1::5025::SOCKET"
        )

    def test_open_sets_timeout_in_ms(self) -> None:
        _, resource = _open(timeout=2.5)
        assert resource.timeout == 2500.0

    def test_open_idempotent(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        visa = VisaTransport("GPIB0::22::INSTR")
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            visa.open()
            visa.open()
        mock_pyvisa.ResourceManager.assert_called_once()

    def test_open_without_pyvisa(self) -> None:
        visa = VisaTransport("GPIB0::22::INSTR")
        with patch.dict(sys.modules, {"pyvisa": None}):
            with pytest.raises(ScpiTransportError, match="pyvisa library is not installed"):
                visa.open()
        assert not visa.is_open

    def test_open_failure_cleans_up(self) -> None:
        mock_pyvisa = _make_mock_pyvisa()
        mock_rm = mock_pyvisa.ResourceManager()
        mock_rm.open_resource.side_effect = RuntimeError("no such device")
        visa = VisaTransport("GPIB0::22::INSTR")
        with patch.dict(sys.modules, {"pyvisa": mock_pyvisa}):
            with pytest.raises(ScpiTransportError, match="no such device"):
                visa.open()
        assert not visa.is_open
        mock_rm.close.assert_called_once()

    def test_close_idempotent(self) -> None:
        visa, resource = _open()
        visa.close()
        visa.close()
        assert not visa.is_open
        resource.close.assert_called_once()


# ---------------------------------------------------------------------------
# Transport interface
# ---------------------------------------------------------------------------


class TestTransport:
    """Tests for write, read and set_timeout."""

    def test_write_raw(self) -> None:
        visa, resource = _open()
        visa.write(b"*RST\n")
        resource.write_raw.assert_called_once_with(b"*RST\n")

    def test_read_raw_bounded(self) -> None:
        visa, resource = _open()
        resource.read_raw.return_value = b"0123456789"
        assert visa.read(4) == b"0123"

    def test_read_empty_is_transport_error(self) -> None:
        visa, resource = _open()
        resource.read_raw.return_value = b""
        with pytest.raises(ScpiTransportError):
            visa.read(1024)

    def test_read_timeout(self) -> None:
        visa, resource = _open()
        resource.read_raw.side_effect = FakeVisaIOError(TIMEOUT_CODE)
        with pytest.raises(ScpiTimeoutError):
            visa.read(1024)

    def test_write_io_error(self) -> None:
        visa, resource = _open()
        resource.write_raw.side_effect = FakeVisaIOError(-1)
        with pytest.raises(ScpiTransportError, match="VISA write failed"):
            visa.write(b"*RST\n")

    def test_set_timeout_none_is_infinite(self) -> None:
        visa, resource = _open()
        visa.set_timeout(None)
        assert resource.timeout is None

    def test_operations_when_not_open(self) -> None:
        visa = VisaTransport("GPIB0::22::INSTR")
        with pytest.raises(ScpiTransportError, match="not open"):
            visa.write(b"*RST\n")
        with pytest.raises(ScpiTransportError, match="not open"):
            visa.read(1024)
