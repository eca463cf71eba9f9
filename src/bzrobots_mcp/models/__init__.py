"""Data models for the records the server reports."""

from .records import (
    Point,
    Team,
    Obstacle,
    Flag,
    Shot,
    MyTank,
    OtherTank,
    Base,
    index_tanks,
)
from .occgrid import OccupancyGrid
