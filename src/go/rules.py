"""
Rule engine: adjacency, groups and liberties, captures and move legality.

Key idea: every function here is pure. It takes a Board (immutable) and returns a new value, so the state machine
(src/go/game.py) can check a move without touching its own state and only commit once the move is known to be legal.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Sequence

from src.core.config import BOARD_SIZE, KO_RULE
from src.core.exceptions import (
    IllegalMoveError,
    KoViolationError,
    OccupiedError,
    OffBoardError,
    SuicideError,
)
from src.core.shared_types import KoRule
from src.go.board import Board
from src.go.point import Point
from src.go.stones import Stone

# Orthogonal directions only. Diagonal points are never connected in Go.
DIRECTIONS: tuple[tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass(frozen=True)
class Group:
    """Maximal set of connected stones of one color, with the empty points around it"""

    color: Stone
    stones: frozenset[Point]
    liberties: frozenset[Point]

    @property
    def size(self) -> int:
        return len(self.stones)

    def is_captured(self) -> bool:
        return bool(self.stones) and not self.liberties


@dataclass(frozen=True)
class CaptureResult:
    board: Board
    captured: int


class Violation(Enum):
    OFF_BOARD = auto()
    OCCUPIED = auto()
    SUICIDE = auto()
    KO = auto()


VIOLATION_ERRORS: dict[Violation, type[IllegalMoveError]] = {
    Violation.OFF_BOARD: OffBoardError,
    Violation.OCCUPIED: OccupiedError,
    Violation.SUICIDE: SuicideError,
    Violation.KO: KoViolationError,
}

VIOLATION_MESSAGES: dict[Violation, str] = {
    Violation.OFF_BOARD: "Point is not on the board",
    Violation.OCCUPIED: "Point is occupied",
    Violation.SUICIDE: "Suicide move is illegal",
    Violation.KO: "Ko rule: move repeats a previous board position",
}


@dataclass(frozen=True)
class MoveCheck:
    """Result of testing a move. Either a violation, or the board after the move plus the number of stones it took."""

    point: Point
    violation: Optional[Violation] = None
    board: Optional[Board] = None
    captured: int = 0

    @property
    def is_legal(self) -> bool:
        return self.violation is None

    def error(self) -> IllegalMoveError:
        """The exception matching the violation (only meaningful for an illegal move)."""
        assert self.violation is not None
        error_type = VIOLATION_ERRORS[self.violation]
        return error_type(
            f"{VIOLATION_MESSAGES[self.violation]}: ({self.point.x}, {self.point.y})"
        )


def adjacent(point: Point, size: int = BOARD_SIZE) -> list[Point]:
    """Up to 4 orthogonal neighbors that lie on the board"""
    neighbors = (Point(point.x + dx, point.y + dy) for dx, dy in DIRECTIONS)
    return [neighbor for neighbor in neighbors if neighbor.is_within_bounds(size)]


def group_of(board: Board, point: Point) -> Group:
    """
    Flood fill from `point` over stones of the same color.
    ---

    An empty point has no group: returns an empty Group (callers should check before asking).
    Stones and liberties are sets, so the result does not depend on where in the group you start.
    """
    color = board.stone(point)
    if color == Stone.EMPTY:
        return Group(Stone.EMPTY, frozenset(), frozenset())

    stones: set[Point] = set()
    liberties: set[Point] = set()
    stack = [point]
    while stack:
        current = stack.pop()
        if current in stones:
            continue
        stones.add(current)
        for neighbor in adjacent(current, board.size):
            neighbor_stone = board.stone(neighbor)
            if neighbor_stone == Stone.EMPTY:
                liberties.add(neighbor)
            elif neighbor_stone == color and neighbor not in stones:
                stack.append(neighbor)

    return Group(color, frozenset(stones), frozenset(liberties))


def apply_captures(board: Board, placed_at: Point, placing: Stone) -> CaptureResult:
    """
    Remove opponent groups left without liberties by the stone just placed at `placed_at`.

    NOTE only groups touching the new stone are examined. A placement can only take liberties from groups it touches.
    """
    opponent = placing.opponent
    captured_stones: set[Point] = set()
    for neighbor in adjacent(placed_at, board.size):
        if board.stone(neighbor) != opponent or neighbor in captured_stones:
            continue
        group = group_of(board, neighbor)
        if group.is_captured():
            captured_stones.update(group.stones)

    return CaptureResult(board.remove(captured_stones), len(captured_stones))


def is_legal_move(
    board: Board,
    point: Point,
    player: Stone,
    prior_boards: Sequence[Board] = (),
    ko_rule: KoRule = KO_RULE,
) -> MoveCheck:
    """
    Check a move and compute its outcome
    ----

    1. the point must be on the board and empty
    2. place the stone and take off any opponent groups without liberties
    3. the new stone's own group must still have a liberty (no suicide)
    4. the new position must not repeat the position before the opponent's last move (simple ko),
       or any earlier position (superko)

    `prior_boards` are the boards before each move played so far, oldest first.
    Pure: nothing is mutated and the same input always gives the same result.
    """
    if not board.contains(point):
        return MoveCheck(point, Violation.OFF_BOARD)

    if not board.is_empty(point):
        return MoveCheck(point, Violation.OCCUPIED)

    placed = board.place(point, player)
    result = apply_captures(placed, point, player)

    # checked AFTER captures: taking the last liberty of an opponent group can give your own stone a liberty
    if not group_of(result.board, point).liberties:
        return MoveCheck(point, Violation.SUICIDE)

    if _repeats_position(result.board, prior_boards, ko_rule):
        return MoveCheck(point, Violation.KO)

    return MoveCheck(point, board=result.board, captured=result.captured)


def _repeats_position(
    new_board: Board, prior_boards: Sequence[Board], ko_rule: KoRule
) -> bool:
    if not prior_boards:
        return False
    if ko_rule == KoRule.SUPERKO:
        return new_board in prior_boards
    return new_board == prior_boards[-1]
