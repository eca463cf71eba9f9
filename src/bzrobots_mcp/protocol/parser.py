"""Response readers for server messages.

Every reader pulls lines from a :class:`~.framing.LineBuffer` (anything
with an awaitable ``next_line()``) and either returns a decoded value or
raises :class:`~.errors.ProtocolViolation` on the first line that breaks
the grammar. Nothing is skipped and nothing is retried.

Two response shapes sit on top of the acknowledgement line:

- Actions: ``ack ...`` then ``ok`` or ``fail``.
- Queries: ``ack <timestamp> ...`` then a record stream::

      begin
      <tag> <field> <field> ...
      end

The occupancy grid is the odd one out; see :func:`read_occgrid`.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol, TypeVar

from ..models.occgrid import OccupancyGrid
from ..models.records import (
    Base,
    Flag,
    MyTank,
    Obstacle,
    OtherTank,
    Point,
    Shot,
    Team,
)
from .commands import HANDSHAKE_GREETING, Command
from .errors import ProtocolViolation
from .framing import expect, expect_one_of, tokenize

T = TypeVar("T")

BEGIN = "begin"
END = "end"


class LineReader(Protocol):
    async def next_line(self) -> str: ...


# ─── FIELD CONVERSION ────────────────────────────────────────────────

def _record_error(tag: str, fields: list[str]) -> ProtocolViolation:
    return ProtocolViolation(f"{tag} record", [tag, *fields])


def _float(tag: str, fields: list[str], index: int) -> float:
    try:
        return float(fields[index])
    except (IndexError, ValueError) as e:
        raise _record_error(tag, fields) from e


def _int(tag: str, fields: list[str], index: int) -> int:
    try:
        return int(fields[index])
    except (IndexError, ValueError) as e:
        raise _record_error(tag, fields) from e


def _str(tag: str, fields: list[str], index: int) -> str:
    try:
        return fields[index]
    except IndexError as e:
        raise _record_error(tag, fields) from e


def _points(tag: str, fields: list[str]) -> list[Point]:
    if len(fields) % 2:
        raise _record_error(tag, fields)
    return [
        Point(_float(tag, fields, i), _float(tag, fields, i + 1))
        for i in range(0, len(fields), 2)
    ]


# ─── RECORD PARSERS ──────────────────────────────────────────────────
# Each takes the tokens following the record tag.

def parse_team(fields: list[str]) -> Team:
    """``team <color> <count>``"""
    return Team(color=_str("team", fields, 0), count=_int("team", fields, 1))


def parse_obstacle(fields: list[str]) -> Obstacle:
    """``obstacle <x1> <y1> <x2> <y2> ...``"""
    return Obstacle(points=tuple(_points("obstacle", fields)))


def parse_flag(fields: list[str]) -> Flag:
    """``flag <color> <possessionColor> <x> <y>``"""
    return Flag(
        color=_str("flag", fields, 0),
        possession_color=_str("flag", fields, 1),
        location=Point(_float("flag", fields, 2), _float("flag", fields, 3)),
    )


def parse_shot(fields: list[str]) -> Shot:
    """``shot <x> <y> <vx> <vy>``"""
    x, y, vx, vy = (_float("shot", fields, i) for i in range(4))
    return Shot(x=x, y=y, vx=vx, vy=vy)


def parse_my_tank(fields: list[str]) -> MyTank:
    """``mytank <index> <callsign> <status> <shots> <reload> <flag> <x> <y> <angle> <vx> <vy> <angvel>``"""
    tag = "mytank"
    return MyTank(
        index=_int(tag, fields, 0),
        callsign=_str(tag, fields, 1),
        status=_str(tag, fields, 2),
        shots_available=_int(tag, fields, 3),
        time_to_reload=_float(tag, fields, 4),
        flag=_str(tag, fields, 5),
        location=Point(_float(tag, fields, 6), _float(tag, fields, 7)),
        angle=_float(tag, fields, 8),
        vx=_float(tag, fields, 9),
        vy=_float(tag, fields, 10),
        angvel=_float(tag, fields, 11),
    )


def parse_other_tank(fields: list[str]) -> OtherTank:
    """``othertank <callsign> <color> <status> <flag> <x> <y> <angle>``"""
    tag = "othertank"
    return OtherTank(
        callsign=_str(tag, fields, 0),
        color=_str(tag, fields, 1),
        status=_str(tag, fields, 2),
        flag=_str(tag, fields, 3),
        location=Point(_float(tag, fields, 4), _float(tag, fields, 5)),
        angle=_float(tag, fields, 6),
    )


def parse_base(fields: list[str]) -> Base:
    """``base <color> <x1> <y1> <x2> <y2> <x3> <y3> <x4> <y4>``"""
    color = _str("base", fields, 0)
    corners = tuple(
        Point(_float("base", fields, i), _float("base", fields, i + 1))
        for i in range(1, 9, 2)
    )
    return Base(color=color, corners=corners)


def parse_constant(fields: list[str]) -> tuple[str, str]:
    """``constant <name> <value>``; the value stays a raw string.

    A value spanning several tokens is rejoined with single spaces rather
    than truncated to its first token.
    """
    name = _str("constant", fields, 0)
    if len(fields) < 2:
        raise _record_error("constant", fields)
    return name, " ".join(fields[1:])


# ─── LINE-LEVEL READERS ──────────────────────────────────────────────

async def read_tokens(reader: LineReader) -> list[str]:
    """Read one line and split it into tokens."""
    return tokenize(await reader.next_line())


async def read_expect(
    reader: LineReader, expected: str | list[str], full: bool = False
) -> list[str]:
    """Read one line and match it against *expected*."""
    return expect(await read_tokens(reader), expected, full)


async def read_handshake(reader: LineReader) -> None:
    """Consume the server greeting ``bzrobots 1``."""
    await read_expect(reader, list(HANDSHAKE_GREETING), full=True)


async def read_ack(reader: LineReader) -> list[str]:
    """Consume an ``ack`` line and return the tokens following it."""
    return await read_expect(reader, "ack")


async def read_timestamp(reader: LineReader) -> float:
    """Consume a query ``ack <timestamp>`` line and return the timestamp."""
    tokens = await read_tokens(reader)
    payload = expect(tokens, "ack")
    try:
        return float(payload[0])
    except (IndexError, ValueError) as e:
        raise ProtocolViolation("ack <timestamp>", tokens) from e


async def read_boolean(reader: LineReader) -> bool:
    """Consume an ``ok`` / ``fail`` line."""
    index, _ = expect_one_of(await read_tokens(reader), ["ok", "fail"], full=True)
    return index == 0


async def read_list(
    reader: LineReader, tag: str, parse: Callable[[list[str]], T]
) -> list[T]:
    """Read a ``begin`` ... ``end`` stream of *tag* records."""
    await read_expect(reader, BEGIN, full=True)
    records: list[T] = []
    while True:
        index, fields = expect_one_of(await read_tokens(reader), [tag, END])
        if index == 1:
            return records
        records.append(parse(fields))


async def read_teams(reader: LineReader) -> list[Team]:
    return await read_list(reader, "team", parse_team)


async def read_obstacles(reader: LineReader) -> list[Obstacle]:
    return await read_list(reader, "obstacle", parse_obstacle)


async def read_flags(reader: LineReader) -> list[Flag]:
    return await read_list(reader, "flag", parse_flag)


async def read_shots(reader: LineReader) -> list[Shot]:
    return await read_list(reader, "shot", parse_shot)


async def read_my_tanks(reader: LineReader) -> list[MyTank]:
    return await read_list(reader, "mytank", parse_my_tank)


async def read_other_tanks(reader: LineReader) -> list[OtherTank]:
    return await read_list(reader, "othertank", parse_other_tank)


async def read_bases(reader: LineReader) -> list[Base]:
    return await read_list(reader, "base", parse_base)


async def read_constants(reader: LineReader) -> dict[str, str]:
    """Read the ``constant`` stream into a name -> raw value mapping."""
    return dict(await read_list(reader, "constant", parse_constant))


# ─── OCCUPANCY GRID ──────────────────────────────────────────────────

def _parse_origin(tokens: list[str], payload: list[str]) -> Point:
    try:
        x, y = payload[0].split(",")
        return Point(float(x), float(y))
    except (IndexError, ValueError) as e:
        raise ProtocolViolation("at <x>,<y>", tokens) from e


def _parse_size(tokens: list[str], payload: list[str]) -> tuple[int, int]:
    try:
        width, height = payload[0].split("x")
        return int(width), int(height)
    except (IndexError, ValueError) as e:
        raise ProtocolViolation("size <width>x<height>", tokens) from e


async def read_occgrid(reader: LineReader) -> OccupancyGrid:
    """Read an occupancy grid.

    Layout::

        at <x>,<y>
        size <width>x<height>
        <width rows of height '0'/'1' characters>

    ``at`` and ``size`` may also share one line. A first line containing
    ``fail`` yields an empty grid and nothing further is read. If the grid
    is bracketed by ``begin``/``end`` sentinels, both are consumed.
    """
    tokens = await read_tokens(reader)
    if "fail" in tokens:
        return OccupancyGrid()

    bracketed = tokens == [BEGIN]
    if bracketed:
        tokens = await read_tokens(reader)

    payload = expect(tokens, "at")
    origin = _parse_origin(tokens, payload)
    rest = payload[1:]
    if not rest:
        tokens = await read_tokens(reader)
        rest = tokens
    payload = expect(rest, "size")
    width, height = _parse_size(rest, payload)

    cells: dict[tuple[int, int], bool] = {}
    for row in range(width):
        line = (await reader.next_line()).strip()
        if len(line) != height or set(line) - {"0", "1"}:
            raise ProtocolViolation(f"{height} grid cells of 0/1", [line])
        for column, cell in enumerate(line):
            cells[(row, column)] = cell == "1"

    if bracketed:
        await read_expect(reader, END, full=True)
    return OccupancyGrid(origin=origin, size=(width, height), cells=cells)


# Reader used to decode the payload that follows a query's ack line.
READERS: dict[Command, Callable[[LineReader], Awaitable[Any]]] = {
    Command.TEAMS: read_teams,
    Command.OBSTACLES: read_obstacles,
    Command.OCCGRID: read_occgrid,
    Command.FLAGS: read_flags,
    Command.SHOTS: read_shots,
    Command.MYTANKS: read_my_tanks,
    Command.OTHERTANKS: read_other_tanks,
    Command.BASES: read_bases,
    Command.CONSTANTS: read_constants,
}
