"""Occupancy grid model."""

from __future__ import annotations

from dataclasses import dataclass, field

from .records import Point


@dataclass(frozen=True)
class OccupancyGrid:
    """Boolean cell states around a tank, relative to ``origin``.

    ``cells`` maps ``(row, column)`` to ``True`` for occupied cells and
    ``False`` for free ones. A failed query yields an empty grid with no
    origin or size.
    """

    origin: Point | None = None
    size: tuple[int, int] | None = None
    cells: dict[tuple[int, int], bool] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return self.size is None

    def is_occupied(self, row: int, column: int) -> bool:
        return self.cells.get((row, column), False)

    def rows(self) -> list[str]:
        """Render the grid back into its ``0``/``1`` row strings."""
        if self.size is None:
            return []
        width, height = self.size
        return [
            "".join("1" if self.is_occupied(r, c) else "0" for c in range(height))
            for r in range(width)
        ]

    def to_dict(self) -> dict:
        if self.empty:
            return {"origin": None, "size": None, "rows": []}
        return {
            "origin": {"x": self.origin.x, "y": self.origin.y},
            "size": {"width": self.size[0], "height": self.size[1]},
            "rows": self.rows(),
        }
