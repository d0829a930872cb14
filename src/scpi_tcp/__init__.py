"""SCPI instrument client over TCP.

This package sends SCPI command lines to an instrument over a byte-stream
transport and correlates each command with the instrument's error queue.
It includes:

- A client whose ``exec`` verifies every command with ``SYST:ERR?``
- A decoder for the instrument's error report
- A bounded wait for IEEE 488.2 operation complete (``*WAI;*OPC?``)
- TCP and PyVISA transports behind one transport protocol
- A facade for the IEEE 488.2 common commands
- An instrument emulator and TCP server for testing without hardware

Typical usage::

    from scpi_tcp import Instrument, new_client

    client = new_client("tcp", "192.168.1.100:5025", timeout=5.0)
    client.exec("CONF:VOLT:DC 10")
    print(client.query("*IDN?"))

    inst = Instrument(client)
    inst.wait_for_complete(timeout=30.0)
    inst.close()
"""

from scpi_tcp.client import ScpiClient, connect, new_client
from scpi_tcp.codec import check_error_report, parse_error_report
from scpi_tcp.config import ScpiClientConfig, load_config
from scpi_tcp.emulator import EmulatorConfig, InstrumentEmulator
from scpi_tcp.errors import (
    InvalidFormatError,
    InvalidProtocolError,
    ScpiCommandError,
    ScpiError,
    ScpiInstrumentError,
    ScpiTimeoutError,
    ScpiTransportError,
    SessionClosedError,
)
from scpi_tcp.instrument import Instrument, InstrumentIdentity, parse_idn_response
from scpi_tcp.server import EmulatorServer
from scpi_tcp.transport import ScpiTransport, TcpTransport
from scpi_tcp.visa import VisaTransport
from scpi_tcp.waiter import wait_for_complete

__all__ = [
    # Client
    "ScpiClient",
    "connect",
    "new_client",
    # Error report decoding
    "check_error_report",
    "parse_error_report",
    # Configuration
    "ScpiClientConfig",
    "load_config",
    # Errors
    "InvalidFormatError",
    "InvalidProtocolError",
    "ScpiCommandError",
    "ScpiError",
    "ScpiInstrumentError",
    "ScpiTimeoutError",
    "ScpiTransportError",
    "SessionClosedError",
    # Facade
    "Instrument",
    "InstrumentIdentity",
    "parse_idn_response",
    "wait_for_complete",
    # Transports
    "ScpiTransport",
    "TcpTransport",
    "VisaTransport",
    # Emulation
    "EmulatorConfig",
    "EmulatorServer",
    "InstrumentEmulator",
]
