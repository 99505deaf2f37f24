"""The Go board: an immutable N x N grid of stones. All rules that act on it live in src/go/rules.py"""

from dataclasses import dataclass
from typing import Iterable, Self

from src.core.config import BOARD_SIZE
from src.core.exceptions import InvalidBoardError
from src.go.point import Point
from src.go.stones import DIAGRAM_TO_STONE, STONE_TO_DIAGRAM, Stone

Row = tuple[Stone, ...]


@dataclass(frozen=True)
class Board:
    """
    Rows are indexed by y (top to bottom), columns by x (left to right): cells[y][x].

    Frozen, so a board can be stored in the history as is and compared with == (or hashed) for ko checks.
    """

    cells: tuple[Row, ...]

    @classmethod
    def empty(cls, size: int = BOARD_SIZE) -> Self:
        return cls(tuple(tuple(Stone.EMPTY for _ in range(size)) for _ in range(size)))

    @classmethod
    def from_diagram(cls, rows: Iterable[str]) -> Self:
        """Construct a board from a text diagram.

        One string per row, top row first. Each character is one point:
        * "." an empty point
        * "B" a black stone
        * "W" a white stone

        ex. a 3x3 board with a black stone in the center and a white one in the top-left corner:
        ["W..", ".B.", "..."]
        """
        rows = [row.strip() for row in rows]
        size = len(rows)
        if size == 0:
            raise InvalidBoardError("Board diagram is empty.")

        cells: list[Row] = []
        for y, row in enumerate(rows):
            if len(row) != size:
                raise InvalidBoardError(
                    f"Row {y} has {len(row)} points, expected {size} (board must be square)."
                )
            unknown = set(row) - DIAGRAM_TO_STONE.keys()
            if unknown:
                raise InvalidBoardError(
                    f"Unknown characters {''.join(sorted(unknown))!r} in row {y}."
                )
            cells.append(tuple(DIAGRAM_TO_STONE[character] for character in row))
        return cls(tuple(cells))

    def to_diagram(self) -> list[str]:
        return [
            "".join(STONE_TO_DIAGRAM[stone] for stone in row) for row in self.cells
        ]

    def __str__(self) -> str:
        return "\n".join(self.to_diagram())

    @property
    def size(self) -> int:
        return len(self.cells)

    def contains(self, point: Point) -> bool:
        return point.is_within_bounds(self.size)

    def stone(self, point: Point) -> Stone:
        return self.cells[point.y][point.x]

    def is_empty(self, point: Point) -> bool:
        return self.stone(point) == Stone.EMPTY

    def place(self, point: Point, stone: Stone) -> Self:
        """New board with the given point set to `stone`"""
        row = self.cells[point.y]
        new_row = row[: point.x] + (stone,) + row[point.x + 1 :]
        return type(self)(
            self.cells[: point.y] + (new_row,) + self.cells[point.y + 1 :]
        )

    def remove(self, points: Iterable[Point]) -> Self:
        """New board with all given points emptied (captured stones are taken off the board)"""
        to_clear = set(points)
        if not to_clear:
            return self
        return type(self)(
            tuple(
                tuple(
                    Stone.EMPTY if Point(x, y) in to_clear else stone
                    for x, stone in enumerate(row)
                )
                for y, row in enumerate(self.cells)
            )
        )

    def locate(self, stone: Stone) -> list[Point]:
        return [
            Point(x, y)
            for y, row in enumerate(self.cells)
            for x, cell in enumerate(row)
            if cell == stone
        ]

    def count(self, stone: Stone) -> int:
        """Number of points holding the given stone (used for area scoring)"""
        return sum(row.count(stone) for row in self.cells)
