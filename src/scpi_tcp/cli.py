"""Command-line interface for scpi-tcp.

Usage:
    # Execute commands (verified against the error queue)
    scpi-tcp --address 192.168.1.100:5025 exec "*RST" "VOLT 5"

    # Query and print the raw response
    scpi-tcp --address 192.168.1.100:5025 query "*IDN?"

    # Wait up to 30 s for pending operations
    scpi-tcp --config bench.yaml wait --deadline 30

    # Drain and print the error queue
    scpi-tcp --address 192.168.1.100:5025 errors

    # Serve an emulated instrument
    scpi-tcp serve --port 5025 --opc-delay 0.5
"""

from __future__ import annotations

import argparse
import logging
import sys

from scpi_tcp.client import PROTOCOLS, connect
from scpi_tcp.config import ScpiClientConfig, load_config
from scpi_tcp.emulator import EmulatorConfig, InstrumentEmulator
from scpi_tcp.errors import ScpiError
from scpi_tcp.instrument import Instrument
from scpi_tcp.server import EmulatorServer


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_config(args: argparse.Namespace) -> ScpiClientConfig:
    """Build the client configuration from ``--config`` or ``--address``."""
    if args.config:
        return load_config(args.config)
    if not args.address:
        raise ValueError("Either --address or --config is required")
    return ScpiClientConfig.from_address(
        args.address,
        protocol=args.protocol,
        dial_timeout=args.timeout,
        io_timeout=args.io_timeout,
    )


def cmd_exec(args: argparse.Namespace, instrument: Instrument) -> int:
    """Execute one command, or several as a single batch."""
    instrument.client.bulk_exec(*args.commands)
    return 0


def cmd_query(args: argparse.Namespace, instrument: Instrument) -> int:
    """Send a query and print the response."""
    print(instrument.client.query(args.query).rstrip("\r\n"))
    return 0


def cmd_wait(args: argparse.Namespace, instrument: Instrument) -> int:
    """Wait for operation complete."""
    instrument.wait_for_complete(args.deadline)
    print("Operation complete")
    return 0


def cmd_errors(args: argparse.Namespace, instrument: Instrument) -> int:
    """Drain the error queue and print each entry."""
    errors = instrument.get_errors()
    for error in errors:
        print(error)
    if not errors:
        print("No errors")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve an emulated instrument until interrupted."""
    emulator = InstrumentEmulator(EmulatorConfig(opc_delay=args.opc_delay))
    server = EmulatorServer(emulator, host=args.host, port=args.port)
    host, port = server.address
    print(f"Emulator listening on {host}:{port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SCPI instrument client over TCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--address", "-a", help="Instrument address (host:port)")
    parser.add_argument("--config", "-c", help="YAML client configuration file")
    parser.add_argument(
        "--protocol", choices=PROTOCOLS, default="tcp",
        help="Transport protocol (default: tcp)"
    )
    parser.add_argument(
        "--timeout", type=float, default=5.0,
        help="Dial timeout in seconds (default: 5.0)"
    )
    parser.add_argument(
        "--io-timeout", type=float, default=None,
        help="Read/write timeout in seconds (default: block)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    exec_parser = subparsers.add_parser("exec", help="Execute commands")
    exec_parser.add_argument("commands", nargs="+", help="SCPI commands, run as one batch")

    query_parser = subparsers.add_parser("query", help="Send a query")
    query_parser.add_argument("query", help="SCPI query (e.g. *IDN?)")

    wait_parser = subparsers.add_parser("wait", help="Wait for operation complete")
    wait_parser.add_argument(
        "--deadline", type=float, default=10.0,
        help="Wait deadline in seconds (default: 10.0)"
    )

    subparsers.add_parser("errors", help="Drain the instrument error queue")

    serve_parser = subparsers.add_parser("serve", help="Serve an emulated instrument")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=5025, help="Bind port")
    serve_parser.add_argument(
        "--opc-delay", type=float, default=0.0,
        help="Seconds *OPC? takes to answer (default: 0.0)"
    )

    args = parser.parse_args(argv)
    setup_logging(args.debug)

    if args.command is None:
        parser.print_help()
        return 1

    if args.command == "serve":
        return cmd_serve(args)

    handlers = {
        "exec": cmd_exec,
        "query": cmd_query,
        "wait": cmd_wait,
        "errors": cmd_errors,
    }

    try:
        instrument = Instrument(connect(build_config(args)))
    except (ScpiError, ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        return handlers[args.command](args, instrument)
    except (ScpiError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        instrument.close()


if __name__ == "__main__":
    sys.exit(main())
