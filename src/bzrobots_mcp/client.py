"""Asynchronous client for the BZRobots tank control protocol.

One coroutine per server command. Calls may be issued concurrently; they
are written to the wire one at a time, in call order, and each awaits
its own decoded response::

    async with await BZRobotsClient.connect(port=50100) as client:
        tanks, timestamp = await client.get_my_tanks()
        await client.set_speed(tanks[0].index, 1.0)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .config import ClientConfig
from .models.occgrid import OccupancyGrid
from .models.records import Base, Flag, MyTank, Obstacle, OtherTank, Shot, Team
from .protocol.commands import (
    HANDSHAKE_REPLY,
    Command,
    build_angvel,
    build_occgrid,
    build_query,
    build_shoot,
    build_speed,
)
from .protocol.errors import ConnectionClosed, ProtocolError
from .protocol.parser import (
    READERS,
    LineReader,
    read_ack,
    read_boolean,
    read_handshake,
    read_timestamp,
)
from .transport.dispatcher import CommandDispatcher
from .transport.tcp_connection import TCPConnection

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "bzrobots_mcp"


async def _read_action(reader: LineReader) -> bool:
    await read_ack(reader)
    return await read_boolean(reader)


def _query_decoder(command: Command):
    read_payload = READERS[command]

    async def decode(reader: LineReader) -> tuple[Any, float]:
        timestamp = await read_timestamp(reader)
        return await read_payload(reader), timestamp

    return decode


class BZRobotsClient:
    """Drives one agent's tanks over a single server connection."""

    def __init__(self, config: ClientConfig) -> None:
        self.config = config
        self._connection: TCPConnection | None = None
        self._dispatcher: CommandDispatcher | None = None
        self.handshake: asyncio.Future | None = None
        if config.debug:
            logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)

    @classmethod
    async def connect(
        cls,
        port: int | None = None,
        host: str | None = None,
        *,
        config: ClientConfig | None = None,
    ) -> BZRobotsClient:
        """Open a connection and complete the handshake."""
        if config is None:
            if port is None:
                raise ValueError("Either port or config is required")
            config = ClientConfig(port=port, host=host or "localhost")
        client = cls(config)
        await client.open()
        try:
            await client.handshake
        except ProtocolError:
            client.close()
            raise
        return client

    async def open(self) -> None:
        """Connect and queue the handshake as the first operation."""
        if self._connection is not None:
            raise RuntimeError("Client is already connected")
        self._connection = await TCPConnection.open(
            self.config.host,
            self.config.port,
            timeout=self.config.connect_timeout,
        )
        self._dispatcher = CommandDispatcher(self._connection.send, self._connection.lines)
        self._connection.set_close_callback(self._dispatcher.close)
        self.handshake = self._dispatcher.submit(None, self._handshake)

    async def _handshake(self, reader: LineReader) -> None:
        await read_handshake(reader)
        self._connection.send(HANDSHAKE_REPLY)
        logger.info("Handshake complete with %s:%s", self.config.host, self.config.port)

    @property
    def connected(self) -> bool:
        return self._connection is not None and self._connection.connected

    @property
    def dispatcher(self) -> CommandDispatcher:
        if self._dispatcher is None:
            raise ConnectionClosed("Client is not connected")
        return self._dispatcher

    def close(self) -> None:
        """Close the connection. Unfinished operations fail with ConnectionClosed."""
        if self._connection is not None:
            self._connection.close()

    async def __aenter__(self) -> BZRobotsClient:
        if self._connection is None:
            await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ─── ACTIONS ─────────────────────────────────────────────────────

    async def _action(self, command: str) -> bool:
        return await self.dispatcher.submit(command, _read_action)

    async def shoot(self, tank: int) -> bool:
        """Fire tank ``tank``'s weapon. Returns False if the server refused."""
        return await self._action(build_shoot(tank))

    async def set_speed(self, tank: int, speed: float) -> bool:
        return await self._action(build_speed(tank, speed))

    async def set_angular_velocity(self, tank: int, angvel: float) -> bool:
        return await self._action(build_angvel(tank, angvel))

    # ─── QUERIES ─────────────────────────────────────────────────────
    # Each returns (value, timestamp) with the server's timestamp.

    async def _query(self, command: Command, line: str | None = None) -> tuple[Any, float]:
        if line is None:
            line = build_query(command)
        return await self.dispatcher.submit(line, _query_decoder(command))

    async def get_teams(self) -> tuple[list[Team], float]:
        return await self._query(Command.TEAMS)

    async def get_obstacles(self) -> tuple[list[Obstacle], float]:
        return await self._query(Command.OBSTACLES)

    async def get_occupancy_grid(self, tank: int | None = None) -> tuple[OccupancyGrid, float]:
        """Query the occupancy grid, optionally around one tank.

        A refused query yields an empty grid (``grid.empty``).
        """
        return await self._query(Command.OCCGRID, build_occgrid(tank))

    async def get_flags(self) -> tuple[list[Flag], float]:
        return await self._query(Command.FLAGS)

    async def get_shots(self) -> tuple[list[Shot], float]:
        return await self._query(Command.SHOTS)

    async def get_my_tanks(self) -> tuple[list[MyTank], float]:
        return await self._query(Command.MYTANKS)

    async def get_other_tanks(self) -> tuple[list[OtherTank], float]:
        return await self._query(Command.OTHERTANKS)

    async def get_bases(self) -> tuple[list[Base], float]:
        return await self._query(Command.BASES)

    async def get_constants(self) -> tuple[dict[str, str], float]:
        """Return server constants as raw strings keyed by name."""
        return await self._query(Command.CONSTANTS)
