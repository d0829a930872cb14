"""In-process emulator of a generic SCPI instrument.

Implements the IEEE 488.2 common commands, the ``SYST:ERR?`` error queue and
a free-form settings store, so clients can be exercised end to end without
hardware. Serve it over TCP with :class:`~scpi_tcp.server.EmulatorServer`.

Lines may hold several ``;``-separated program units. Responses to the
queries on one line are joined with ``;``. A unit the emulator does not
understand pushes an error onto the queue and produces no response.
"""

from __future__ import annotations

import logging
import re
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

# Standard Event Status register bits.
ESR_OPC = 0x01
ESR_QYE = 0x04
ESR_DDE = 0x08
ESR_EXE = 0x10
ESR_CME = 0x20

# Status Byte bits.
STB_EAV = 0x04
STB_ESB = 0x20
STB_MSS = 0x40

NO_ERROR = '+0,"No error"'

_SETTING_RE = re.compile(r"^[A-Z][A-Z0-9:]*$")


@dataclass(frozen=True)
class EmulatorConfig:
    """Configuration for an instrument emulator.

    Args:
        identity: ``*IDN?`` response string.
        opc_delay: Seconds ``*OPC?`` takes to answer, emulating pending
            operations.
        error_queue_size: Capacity of the error queue. Overflow replaces the
            newest entry with ``-350,"Queue overflow"``.
    """

    identity: str = "SCPI-TCP,EMULATOR,0,1.0"
    opc_delay: float = 0.0
    error_queue_size: int = 20

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("identity must be non-empty")
        if self.opc_delay < 0:
            raise ValueError("opc_delay must be >= 0")
        if self.error_queue_size < 1:
            raise ValueError("error_queue_size must be >= 1")


class InstrumentEmulator:
    """Emulated instrument processing one line of SCPI at a time.

    Args:
        config: Emulator configuration. Defaults to :class:`EmulatorConfig`.
    """

    def __init__(self, config: EmulatorConfig | None = None) -> None:
        self._config = config or EmulatorConfig()
        self._errors: deque[tuple[int, str]] = deque()
        self._settings: dict[str, str] = {}
        self._saved: dict[int, dict[str, str]] = {}
        self._esr = 0
        self._ese = 0
        self._sre = 0
        self.received: list[str] = []
        self.trigger_count = 0

        self._set_handlers: dict[str, Callable[[str], None]] = {
            "*RST": self._reset,
            "*CLS": self._clear_status,
            "*TRG": self._trigger,
            "*WAI": self._wait,
            "*OPC": self._set_opc,
            "*ESE": self._set_ese,
            "*SRE": self._set_sre,
            "*SAV": self._save,
            "*RCL": self._recall,
        }
        self._query_handlers: dict[str, Callable[[], str]] = {
            "*IDN?": lambda: self._config.identity,
            "*OPC?": self._query_opc,
            "*ESE?": lambda: str(self._ese),
            "*ESR?": self._query_esr,
            "*SRE?": lambda: str(self._sre),
            "*STB?": lambda: str(self.status_byte),
            "SYST:ERR?": self._next_error,
            "SYST:ERR:NEXT?": self._next_error,
            "SYSTEM:ERROR?": self._next_error,
            "SYSTEM:ERROR:NEXT?": self._next_error,
        }

    # -- Properties ----------------------------------------------------------

    @property
    def status_byte(self) -> int:
        """Current Status Byte, summarizing the error queue and ESR."""
        stb = 0
        if self._errors:
            stb |= STB_EAV
        if self._esr & self._ese:
            stb |= STB_ESB
        if stb & self._sre:
            stb |= STB_MSS
        return stb

    @property
    def settings(self) -> dict[str, str]:
        """Copy of the free-form settings store."""
        return dict(self._settings)

    @property
    def pending_errors(self) -> tuple[tuple[int, str], ...]:
        """Errors currently queued, oldest first."""
        return tuple(self._errors)

    # -- Processing ----------------------------------------------------------

    def process(self, line: str) -> str | None:
        """Process one line of SCPI.

        Args:
            line: The received line, terminator stripped.

        Returns:
            The response line for any queries on it, or None.
        """
        self.received.append(line)
        responses: list[str] = []
        for unit in line.split(";"):
            unit = unit.strip()
            if not unit:
                continue
            header, _, argument = unit.partition(" ")
            header = header.upper().lstrip(":")
            argument = argument.strip()
            if header.endswith("?"):
                response = self._query(header)
                if response is not None:
                    responses.append(response)
            else:
                self._command(header, argument)
        return ";".join(responses) if responses else None

    def push_error(self, code: int, message: str) -> None:
        """Queue an instrument error and set the matching ESR bit."""
        if len(self._errors) >= self._config.error_queue_size:
            self._errors[-1] = (-350, "Queue overflow")
        else:
            self._errors.append((code, message))
        if -200 < code <= -100:
            self._esr |= ESR_CME
        elif -300 < code <= -200:
            self._esr |= ESR_EXE
        elif -400 < code <= -300 or code > 0:
            self._esr |= ESR_DDE
        elif -500 < code <= -400:
            self._esr |= ESR_QYE

    # -- Dispatch ------------------------------------------------------------

    def _query(self, header: str) -> str | None:
        handler = self._query_handlers.get(header)
        if handler is not None:
            return handler()
        value = self._settings.get(header[:-1])
        if value is None:
            logger.debug("Undefined query header: %s", header)
            self.push_error(-113, "Undefined header")
        return value

    def _command(self, header: str, argument: str) -> None:
        handler = self._set_handlers.get(header)
        if handler is not None:
            handler(argument)
        elif header.startswith("*") or not _SETTING_RE.match(header):
            logger.debug("Undefined command header: %s", header)
            self.push_error(-113, "Undefined header")
        elif not argument:
            self.push_error(-109, "Missing parameter")
        else:
            self._settings[header] = argument

    def _int_argument(self, argument: str, low: int, high: int) -> int | None:
        if not argument:
            self.push_error(-109, "Missing parameter")
            return None
        try:
            value = int(argument)
        except ValueError:
            self.push_error(-104, "Data type error")
            return None
        if not low <= value <= high:
            self.push_error(-222, "Data out of range")
            return None
        return value

    # -- Common commands -----------------------------------------------------

    def _reset(self, _argument: str) -> None:
        self._settings.clear()

    def _clear_status(self, _argument: str) -> None:
        self._errors.clear()
        self._esr = 0

    def _trigger(self, _argument: str) -> None:
        self.trigger_count += 1

    def _wait(self, _argument: str) -> None:
        # Operations complete synchronously; *OPC? carries the latency.
        pass

    def _set_opc(self, _argument: str) -> None:
        self._esr |= ESR_OPC

    def _set_ese(self, argument: str) -> None:
        value = self._int_argument(argument, 0, 255)
        if value is not None:
            self._ese = value

    def _set_sre(self, argument: str) -> None:
        value = self._int_argument(argument, 0, 255)
        if value is not None:
            self._sre = value

    def _save(self, argument: str) -> None:
        mem = self._int_argument(argument, 0, 9)
        if mem is not None:
            self._saved[mem] = dict(self._settings)

    def _recall(self, argument: str) -> None:
        mem = self._int_argument(argument, 0, 9)
        if mem is None:
            return
        if mem not in self._saved:
            self.push_error(-224, "Illegal parameter value")
            return
        self._settings = dict(self._saved[mem])

    def _query_opc(self) -> str:
        if self._config.opc_delay:
            time.sleep(self._config.opc_delay)
        return "1"

    def _query_esr(self) -> str:
        value = self._esr
        self._esr = 0
        return str(value)

    def _next_error(self) -> str:
        if not self._errors:
            return NO_ERROR
        code, message = self._errors.popleft()
        return f'{code:+d},"{message}"'
