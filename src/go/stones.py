"""Defines what can occupy a point on the board"""

from enum import Enum, auto
from typing import Self

from src.core.shared_types import Color


class Stone(Enum):
    EMPTY = auto()
    BLACK = auto()
    WHITE = auto()

    @classmethod
    def of(cls, color: Color) -> Self:
        return cls[color.name]

    @property
    def opponent(self) -> "Stone":
        if self == Stone.EMPTY:
            return Stone.EMPTY
        return Stone.WHITE if self == Stone.BLACK else Stone.BLACK


DIAGRAM_TO_STONE: dict[str, Stone] = {
    ".": Stone.EMPTY,
    "B": Stone.BLACK,
    "W": Stone.WHITE,
}

STONE_TO_DIAGRAM: dict[Stone, str] = {
    value: key for key, value in DIAGRAM_TO_STONE.items()
}


def opponent(color: Color) -> Color:
    return Color.WHITE if color == Color.BLACK else Color.BLACK
