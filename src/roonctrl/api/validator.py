"""Single-attempt handshake against a Roon Core.

The validator answers one question per call: does ``host:port`` speak
the Core's websocket API right now? It never retries; retrying is the
job of ``ConnectionSupervisor``.
"""

import asyncio
import base64
import logging
import os
from contextlib import suppress
from typing import Protocol

from roonctrl.models.connection import ConnectionOutcome

logger = logging.getLogger(__name__)

ROON_API_PATH = "/api"


class ConnectionValidator(Protocol):
    """Performs one connection attempt and classifies it."""

    async def validate_connection(self, host: str, port: int) -> ConnectionOutcome:
        """Attempt one handshake with ``host:port``."""
        ...


class RoonConnectionValidator:
    """Validator that performs a websocket upgrade on the Core's API path.

    A ``101 Switching Protocols`` reply means a Core is listening. Any other
    reply means something answered that is not a Core.

    Example:
        validator = RoonConnectionValidator(timeout=5.0)
        outcome = await validator.validate_connection("192.168.1.20", 9330)
    """

    _DEFAULT_TIMEOUT: float = 5.0

    def __init__(self, timeout: float = _DEFAULT_TIMEOUT) -> None:
        """Initialize the validator.

        Args:
            timeout: Timeout for connect plus handshake in seconds.
        """
        self._timeout = timeout

    async def validate_connection(self, host: str, port: int) -> ConnectionOutcome:
        """Attempt one handshake.

        Args:
            host: Core hostname or IP.
            port: Core websocket port.

        Returns:
            The classified outcome of this single attempt.
        """
        try:
            return await asyncio.wait_for(self._handshake(host, port), timeout=self._timeout)
        except TimeoutError:
            logger.debug("Handshake with %s:%d timed out", host, port)
            return ConnectionOutcome.timeout(f"Connection to {host}:{port} timed out")
        except OSError as e:
            logger.debug("Handshake with %s:%d failed: %s", host, port, e)
            return ConnectionOutcome.network_error(f"Cannot reach {host}:{port}: {e}")
        except ValueError as e:
            # readline() raises ValueError when the reply line exceeds the buffer limit
            return ConnectionOutcome.invalid_core(f"{host}:{port} sent a malformed reply: {e}")

    async def _handshake(self, host: str, port: int) -> ConnectionOutcome:
        reader, writer = await asyncio.open_connection(host, port)
        try:
            writer.write(_upgrade_request(host, port))
            await writer.drain()
            status_line = await reader.readline()
        finally:
            writer.close()
            with suppress(OSError, TimeoutError):
                await asyncio.wait_for(writer.wait_closed(), timeout=1.0)

        return _classify_status_line(status_line, host, port)


def _upgrade_request(host: str, port: int) -> bytes:
    """Build the HTTP websocket upgrade request for the API path."""
    key = base64.b64encode(os.urandom(16)).decode("ascii")
    lines = [
        f"GET {ROON_API_PATH} HTTP/1.1",
        f"Host: {host}:{port}",
        "Upgrade: websocket",
        "Connection: Upgrade",
        f"Sec-WebSocket-Key: {key}",
        "Sec-WebSocket-Version: 13",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("ascii")


def _classify_status_line(status_line: bytes, host: str, port: int) -> ConnectionOutcome:
    """Classify the first line of the handshake reply."""
    if not status_line:
        return ConnectionOutcome.invalid_core(f"{host}:{port} closed the connection without a reply")

    text = status_line.decode("latin-1").strip()
    parts = text.split(" ", 2)
    if len(parts) >= 2 and parts[0].startswith("HTTP/") and parts[1] == "101":  # noqa: PLR2004
        return ConnectionOutcome.success()

    logger.debug("Unexpected handshake reply from %s:%d: %r", host, port, text)
    return ConnectionOutcome.invalid_core(f"{host}:{port} is not a Roon Core ({text or 'no reply'})")
