"""Configuration for SCPI client connections.

A client configuration can be built in code or loaded from a YAML file::

    scpi:
      address: 192.168.1.100:5025
      protocol: tcp
      dial_timeout: 5.0
      io_timeout: 10.0
      buffer_size: 1024
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_PORT = 5025
"""Raw-socket SCPI port used when an address omits one."""


@dataclass(frozen=True)
class ScpiClientConfig:
    """Configuration for connecting to a SCPI instrument.

    Attributes:
        address: ``host:port`` for TCP, or a VISA resource string for VISA.
        protocol: Transport protocol, ``"tcp"`` or ``"visa"``.
        dial_timeout: Connection establishment timeout in seconds.
        io_timeout: Per-operation read/write timeout in seconds, or None to
            block indefinitely.
        buffer_size: Capacity of the single receive buffer in bytes. Longer
            responses are truncated.
        encoding: Text encoding for commands and responses.
        terminator: Line terminator appended to every command.
    """

    address: str
    protocol: str = "tcp"
    dial_timeout: float = 5.0
    io_timeout: float | None = None
    buffer_size: int = 1024
    encoding: str = "ascii"
    terminator: str = "\n"

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.address:
            raise ValueError("address must be non-empty")
        if self.dial_timeout <= 0:
            raise ValueError("dial_timeout must be positive")
        if self.io_timeout is not None and self.io_timeout <= 0:
            raise ValueError("io_timeout must be positive")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if not self.terminator:
            raise ValueError("terminator must be non-empty")

    @classmethod
    def from_address(cls, address: str, **kwargs: Any) -> ScpiClientConfig:
        """Create config from a single instrument address.

        Args:
            address: Instrument address (e.g., "192.168.1.100:5025").
            **kwargs: Additional configuration options.

        Returns:
            ScpiClientConfig instance.
        """
        return cls(address=address, **kwargs)


def split_address(address: str) -> tuple[str, int]:
    """Split a TCP address into host and port.

    Accepts ``host``, ``host:port`` and ``[ipv6]:port``.

    Args:
        address: The address string.

    Returns:
        Tuple of (host, port).

    Raises:
        ValueError: If the port is not a valid integer.
    """
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep:
            raise ValueError(f"Unterminated IPv6 address: {address!r}")
        port_str = rest[1:] if rest.startswith(":") else ""
    elif address.count(":") == 1:
        host, _, port_str = address.partition(":")
    else:
        host, port_str = address, ""

    if not port_str:
        return host, DEFAULT_PORT
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in address {address!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range in address {address!r}")
    return host, port


def load_config(path: str | Path) -> ScpiClientConfig:
    """Load a client configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Parsed client configuration.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If the config is invalid or missing required fields.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError("Config must be a YAML mapping")

    section = data.get("scpi")
    if not isinstance(section, dict):
        raise ValueError("Missing required section: scpi")
    if not section.get("address"):
        raise ValueError("Missing required field: scpi.address")

    known = {f.name for f in fields(ScpiClientConfig)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown scpi fields: {', '.join(unknown)}")

    return ScpiClientConfig(**section)
