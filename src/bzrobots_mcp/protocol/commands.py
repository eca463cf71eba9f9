"""Command keywords and command-line builders.

Every request is a single space-separated line. Actions carry a tank
index and optionally a value; queries are a bare keyword.
"""

from __future__ import annotations

import math
from enum import Enum

HANDSHAKE_GREETING = ("bzrobots", "1")
HANDSHAKE_REPLY = "agent 1"


class Command(str, Enum):
    """Command keywords understood by the server."""

    SHOOT = "shoot"
    SPEED = "speed"
    ANGVEL = "angvel"
    TEAMS = "teams"
    OBSTACLES = "obstacles"
    OCCGRID = "occgrid"
    FLAGS = "flags"
    SHOTS = "shots"
    MYTANKS = "mytanks"
    OTHERTANKS = "othertanks"
    BASES = "bases"
    CONSTANTS = "constants"


ACTION_COMMANDS = frozenset({Command.SHOOT, Command.SPEED, Command.ANGVEL})

QUERY_COMMANDS = frozenset(Command) - ACTION_COMMANDS


def _format_value(value: float) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Value must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValueError(f"Value must be finite, got {value}")
    return repr(value) if isinstance(value, float) else str(value)


def _check_tank(tank: int) -> int:
    if isinstance(tank, bool) or not isinstance(tank, int) or tank < 0:
        raise ValueError(f"Tank index must be a non-negative integer, got {tank!r}")
    return tank


def build_command(command: Command, *args: object) -> str:
    """Join a command keyword and its arguments into one request line."""
    return " ".join([command.value, *(str(arg) for arg in args)])


def build_shoot(tank: int) -> str:
    """Build ``shoot <tank>``."""
    return build_command(Command.SHOOT, _check_tank(tank))


def build_speed(tank: int, speed: float) -> str:
    """Build ``speed <tank> <value>``.

    Args:
        tank: Index of one of our tanks.
        speed: Target speed as a fraction of maximum, usually -1.0 to 1.0.
    """
    return build_command(Command.SPEED, _check_tank(tank), _format_value(speed))


def build_angvel(tank: int, angvel: float) -> str:
    """Build ``angvel <tank> <value>``."""
    return build_command(Command.ANGVEL, _check_tank(tank), _format_value(angvel))


def build_occgrid(tank: int | None = None) -> str:
    """Build an occupancy grid query, optionally scoped to one tank."""
    if tank is None:
        return build_command(Command.OCCGRID)
    return build_command(Command.OCCGRID, _check_tank(tank))


def build_query(command: Command) -> str:
    """Build a bare-keyword query line."""
    if command not in QUERY_COMMANDS:
        raise ValueError(f"{command.value!r} is not a query command")
    return build_command(command)
