"""Bounded wait for IEEE 488.2 operation complete.

:func:`wait_for_complete` sends ``*WAI;*OPC?``, which the instrument answers
only once every queued operation has finished, and races that blocking query
against a deadline.

The query runs in a background worker thread that reports into a
single-slot queue, so the worker never blocks on a caller that has already
given up. On timeout the worker is abandoned, not cancelled: its eventual
result is discarded. The deadline is also applied to the transport's own
read timeout, which bounds how long the abandoned read can hold the
connection. Until that read ends, the client is in a response-pending state
and a reply may still arrive for the abandoned query.
"""

from __future__ import annotations

import logging
import queue
import threading

from scpi_tcp.client import ScpiClient
from scpi_tcp.errors import ScpiTimeoutError

logger = logging.getLogger(__name__)

OPC_QUERY = "*WAI;*OPC?"


def wait_for_complete(client: ScpiClient, timeout: float) -> None:
    """Wait until the instrument reports all queued operations complete.

    Args:
        client: The client to query.
        timeout: Deadline in seconds.

    Raises:
        ValueError: If ``timeout`` is not positive.
        ScpiTimeoutError: If the deadline elapses before the reply.
        ScpiError: Any error raised by the underlying query.
    """
    if timeout <= 0:
        raise ValueError("timeout must be positive")

    results: queue.Queue[Exception | None] = queue.Queue(maxsize=1)

    def worker() -> None:
        try:
            client.query(OPC_QUERY, timeout=timeout)
        except Exception as exc:  # pylint: disable=broad-except
            results.put_nowait(exc)
        else:
            results.put_nowait(None)

    thread = threading.Thread(target=worker, name="scpi-opc-wait", daemon=True)
    thread.start()

    try:
        error = results.get(timeout=timeout)
    except queue.Empty:
        logger.warning("Operation complete not reported within %.3f s; abandoning wait", timeout)
        raise ScpiTimeoutError(f"operation not complete after {timeout} s") from None

    if error is not None:
        raise error
