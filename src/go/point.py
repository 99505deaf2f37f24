"""
An intersection on the board

(placed in its own module as multiple other modules need to import it)
"""

from __future__ import annotations

from dataclasses import dataclass

from src.core.config import BOARD_SIZE


@dataclass(frozen=True)
class Point:
    x: int
    y: int

    @classmethod
    def from_dict(cls, data: dict[str, int]) -> Point:
        """Wire/DB format: {"x": 3, "y": 4}"""
        return cls(int(data["x"]), int(data["y"]))

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y}

    def is_within_bounds(self, size: int = BOARD_SIZE) -> bool:
        return (0 <= self.x < size) and (0 <= self.y < size)
