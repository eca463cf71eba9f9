"""Immutable snapshots of simulation state.

Each record is built while decoding a single response and handed to the
caller whole; the client keeps no copy.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field

NO_FLAG = "-"


@dataclass(frozen=True)
class Point:
    """A 2-D world coordinate."""

    x: float
    y: float


@dataclass(frozen=True)
class Team:
    """A team color and the number of tanks it fields."""

    color: str
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Obstacle:
    """A polygonal obstacle, vertices in server order."""

    points: tuple[Point, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"points": [asdict(p) for p in self.points]}


@dataclass(frozen=True)
class Flag:
    """A team flag.

    ``possession_color`` is ``"none"`` while nobody carries the flag.
    """

    color: str
    possession_color: str
    location: Point

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Shot:
    """A shot in flight."""

    x: float
    y: float
    vx: float
    vy: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MyTank:
    """One of the tanks this agent controls."""

    index: int
    callsign: str
    status: str
    shots_available: int
    time_to_reload: float
    flag: str
    location: Point
    angle: float
    vx: float
    vy: float
    angvel: float

    @property
    def alive(self) -> bool:
        return self.status == "alive"

    @property
    def carrying_flag(self) -> bool:
        return self.flag != NO_FLAG

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OtherTank:
    """A tank belonging to another team."""

    callsign: str
    color: str
    status: str
    flag: str
    location: Point
    angle: float

    @property
    def alive(self) -> bool:
        return self.status == "alive"

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Base:
    """A team base, given as its four corners."""

    color: str
    corners: tuple[Point, Point, Point, Point]

    def to_dict(self) -> dict:
        return {"color": self.color, "corners": [asdict(p) for p in self.corners]}


def index_tanks(tanks: list[MyTank]) -> dict[int, MyTank]:
    """Key our tanks by their index, as commands address them."""
    return {tank.index: tank for tank in tanks}
