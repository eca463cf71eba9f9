"""MCP server entry point for BZRobots tank control.

Exposes the protocol client's actions and queries as tools via the
Model Context Protocol using the official Python MCP SDK with stdio
transport.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import BZRobotsClient
from .config import ClientConfig

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "bzrobots",
    instructions="Drive tanks in a BZRobots capture-the-flag simulation",
)

# Global connection state
_client: BZRobotsClient | None = None


def _get_client() -> BZRobotsClient:
    """Get the connected client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to a game server. Use the 'connect' tool first."
        )
    return _client


def _records(items: list, timestamp: float, key: str) -> dict[str, Any]:
    return {"timestamp": timestamp, key: [item.to_dict() for item in items]}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect(port: int | None = None, host: str = "localhost") -> dict[str, Any]:
    """Connect to a BZRobots server and perform the agent handshake.

    Args:
        port: Agent port the server listens on. Defaults to the
            BZROBOTS_PORT environment variable (and BZROBOTS_HOST).
        host: Server host name (default localhost).
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "host": _client.config.host,
            "port": _client.config.port,
        }

    if port is None:
        config = ClientConfig.from_env()
    else:
        config = ClientConfig(port=port, host=host)
    _client = await BZRobotsClient.connect(config=config)
    logger.info("Agent connected to %s:%s", config.host, config.port)
    return {"connected": True, "host": config.host, "port": config.port}


@mcp.tool()
async def disconnect() -> dict[str, bool]:
    """Close the connection to the game server."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
    return {"disconnected": True}


# ─── ACTION TOOLS ────────────────────────────────────────────────────

@mcp.tool()
async def shoot(tank: int) -> dict[str, bool]:
    """Fire a tank's weapon.

    Args:
        tank: Index of one of our tanks.
    """
    return {"ok": await _get_client().shoot(tank)}


@mcp.tool()
async def set_speed(tank: int, speed: float) -> dict[str, bool]:
    """Set a tank's target speed.

    Args:
        tank: Index of one of our tanks.
        speed: Fraction of maximum speed, -1.0 to 1.0.
    """
    return {"ok": await _get_client().set_speed(tank, speed)}


@mcp.tool()
async def set_angular_velocity(tank: int, angvel: float) -> dict[str, bool]:
    """Set a tank's target angular velocity.

    Args:
        tank: Index of one of our tanks.
        angvel: Fraction of maximum turn rate, -1.0 to 1.0.
    """
    return {"ok": await _get_client().set_angular_velocity(tank, angvel)}


# ─── QUERY TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
async def get_teams() -> dict[str, Any]:
    """List teams and their tank counts."""
    teams, timestamp = await _get_client().get_teams()
    return _records(teams, timestamp, "teams")


@mcp.tool()
async def get_obstacles() -> dict[str, Any]:
    """List obstacle polygons."""
    obstacles, timestamp = await _get_client().get_obstacles()
    return _records(obstacles, timestamp, "obstacles")


@mcp.tool()
async def get_occupancy_grid(tank: int | None = None) -> dict[str, Any]:
    """Read the occupancy grid sensed around a tank.

    Args:
        tank: Index of one of our tanks; omit for the server default.
    """
    grid, timestamp = await _get_client().get_occupancy_grid(tank)
    return {"timestamp": timestamp, "grid": grid.to_dict()}


@mcp.tool()
async def get_flags() -> dict[str, Any]:
    """List flags, who carries them, and where they are."""
    flags, timestamp = await _get_client().get_flags()
    return _records(flags, timestamp, "flags")


@mcp.tool()
async def get_shots() -> dict[str, Any]:
    """List shots currently in flight."""
    shots, timestamp = await _get_client().get_shots()
    return _records(shots, timestamp, "shots")


@mcp.tool()
async def get_my_tanks() -> dict[str, Any]:
    """List our tanks with position, velocity, and weapon state."""
    tanks, timestamp = await _get_client().get_my_tanks()
    return _records(tanks, timestamp, "tanks")


@mcp.tool()
async def get_other_tanks() -> dict[str, Any]:
    """List tanks belonging to other teams."""
    tanks, timestamp = await _get_client().get_other_tanks()
    return _records(tanks, timestamp, "tanks")


@mcp.tool()
async def get_bases() -> dict[str, Any]:
    """List team bases as four corner points."""
    bases, timestamp = await _get_client().get_bases()
    return _records(bases, timestamp, "bases")


@mcp.tool()
async def get_constants() -> dict[str, Any]:
    """Return game constants (values are unparsed strings)."""
    constants, timestamp = await _get_client().get_constants()
    return {"timestamp": timestamp, "constants": constants}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("bzrobots://connection/status")
def resource_connection_status() -> str:
    """Connection state and server address."""
    if _client is None or not _client.connected:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "host": _client.config.host,
        "port": _client.config.port,
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
