"""TCP stream connection to a BZRobots game server.

The connection is an :class:`asyncio.Protocol`: received bytes are handed
verbatim to a :class:`~..protocol.framing.LineBuffer`, and outgoing
commands are written as single newline-terminated lines. A lost
connection is reported but never re-established.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..protocol.errors import ConnectionClosed
from ..protocol.framing import ENCODING, LineBuffer

logger = logging.getLogger(__name__)

CloseCallback = Callable[[ConnectionClosed], None]


class TCPConnection(asyncio.Protocol):
    """Owns the socket and the line buffer fed from it.

    Usage::

        conn = await TCPConnection.open("localhost", 50100)
        conn.send("teams")
        line = await conn.lines.next_line()
        conn.close()
    """

    def __init__(self, on_close: CloseCallback | None = None) -> None:
        self.lines = LineBuffer()
        self._transport: asyncio.Transport | None = None
        self._on_close = on_close
        self._closed = False
        self.peer: tuple | None = None

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        timeout: float = 10.0,
        on_close: CloseCallback | None = None,
    ) -> TCPConnection:
        """Connect to ``host:port``.

        Raises:
            ConnectionError: If the server cannot be reached in time.
        """
        loop = asyncio.get_running_loop()
        try:
            _, protocol = await asyncio.wait_for(
                loop.create_connection(lambda: cls(on_close), host, port),
                timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            raise ConnectionError(
                f"Could not connect to BZRobots server at {host}:{port}. "
                f"Last error: {e!r}"
            ) from e
        return protocol

    @property
    def connected(self) -> bool:
        return self._transport is not None and not self._closed

    def set_close_callback(self, on_close: CloseCallback | None) -> None:
        self._on_close = on_close

    # asyncio.Protocol callbacks

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport
        self.peer = transport.get_extra_info("peername")
        logger.info("Connected to %s", self.peer)

    def data_received(self, data: bytes) -> None:
        self.lines.feed(data)

    def eof_received(self) -> bool | None:
        logger.info("Server closed the stream")
        return None

    def connection_lost(self, exc: Exception | None) -> None:
        self._closed = True
        if exc is None:
            error = ConnectionClosed("Connection closed")
        else:
            error = ConnectionClosed(f"Connection lost: {exc}")
            error.__cause__ = exc
        logger.info("Disconnected from %s", self.peer)
        self.lines.close(error)
        if self._on_close is not None:
            self._on_close(error)

    # Outgoing

    def send(self, line: str) -> None:
        """Write ``line`` followed by a newline.

        Raises:
            ConnectionClosed: If the connection is not open.
        """
        if not self.connected:
            raise ConnectionClosed("Not connected to server")
        logger.debug("Sent: %s", line)
        self._transport.write(line.encode(ENCODING) + b"\n")

    def close(self) -> None:
        """Close the connection; pending readers fail with ConnectionClosed."""
        if self._transport is not None and not self._closed:
            self._transport.close()
