"""
The MatchState is the entrypoint into the domain layer for the service layer.
It owns everything needed to play a match of Go: the board, whose turn it is, prisoners, the move history,
passes and the end of the game. It also tracks the undo handshake between two peers.

Turn order is NOT enforced here: the caller (UI or network dispatcher) checks the acting color first.
"""

import logging
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional, Self

from src.core.config import BOARD_SIZE, KO_RULE
from src.core.exceptions import GameStateError, InvalidBoardError, UndoNotAllowedError
from src.core.models import MatchModel, SnapshotModel
from src.core.shared_types import Color, KoRule, Outcome, Status
from src.go.board import Board
from src.go.point import Point
from src.go.rules import is_legal_move
from src.go.stones import Stone, opponent

logger = logging.getLogger(__name__)

# Two passes in a row end the match
PASSES_TO_END = 2


class UndoNegotiation(Enum):
    NONE = auto()
    REQUESTED_BY_ME = auto()
    REQUESTED_BY_PEER = auto()


class UndoRequest(Enum):
    """What happened to a local undo request"""

    APPLIED = auto()  # no peer: undone right away
    PENDING = auto()  # peer attached: waiting for their answer


def no_captures() -> dict[Color, int]:
    return {Color.BLACK: 0, Color.WHITE: 0}


@dataclass
class MoveSnapshot:
    """State right BEFORE a move. Popping it restores the match to the moment before that move."""

    board: Board
    captured: dict[Color, int]
    last_move: Optional[Point]
    player: Color

    @classmethod
    def from_model(cls, model: SnapshotModel) -> Self:
        return cls(
            board=Board.from_diagram(model.board),
            captured=_captured_from_model(model.captured),
            last_move=Point.from_dict(model.last_move) if model.last_move else None,
            player=_color_from_model(model.player),
        )

    def to_model(self) -> SnapshotModel:
        return SnapshotModel(
            board=self.board.to_diagram(),
            captured={color.value: count for color, count in self.captured.items()},
            last_move=self.last_move.to_dict() if self.last_move else None,
            player=self.player.value,
        )


@dataclass
class MatchState:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    board: Board
    current_player: Color
    captured: dict[Color, int]
    history: list[MoveSnapshot]
    consecutive_passes: int = 0
    terminal: bool = False
    winner: Optional[Outcome] = None
    last_move: Optional[Point] = None
    # Not part of the synchronized/persisted state
    ko_rule: KoRule = field(default=KO_RULE, compare=False)
    undo_negotiation: UndoNegotiation = field(
        default=UndoNegotiation.NONE, compare=False
    )

    @classmethod
    def new(cls, size: int = BOARD_SIZE, ko_rule: KoRule = KO_RULE) -> Self:
        """Empty board, Black to move, no prisoners."""
        return cls(
            board=Board.empty(size),
            current_player=Color.BLACK,
            captured=no_captures(),
            history=[],
            ko_rule=ko_rule,
        )

    @classmethod
    def from_model(cls, model: MatchModel, ko_rule: KoRule = KO_RULE) -> Self:
        """Define how to construct a MatchState from the information the Service layer actually has"""
        try:
            board = Board.from_diagram(model.board)
            history = [MoveSnapshot.from_model(entry) for entry in model.history]
        except InvalidBoardError as e:
            raise GameStateError(f"Invalid board in match data: {e}") from e

        if any(entry.board.size != board.size for entry in history):
            raise GameStateError("History boards do not match the size of the board.")

        winner = None
        if model.winner is not None:
            if model.winner not in Outcome.__members__.values():
                raise GameStateError(
                    f"Invalid winner: {model.winner!r}. \nPick one from {','.join(Outcome)}"
                )
            winner = Outcome(model.winner)

        return cls(
            board=board,
            current_player=_color_from_model(model.current_player),
            captured=_captured_from_model(model.captured),
            history=history,
            consecutive_passes=model.consecutive_passes,
            terminal=model.terminal,
            winner=winner,
            last_move=Point.from_dict(model.last_move) if model.last_move else None,
            ko_rule=ko_rule,
        )

    def to_model(self) -> MatchModel:
        """Encode back into a format the Service layer uses"""
        return MatchModel(
            board=self.board.to_diagram(),
            current_player=self.current_player.value,
            captured={color.value: count for color, count in self.captured.items()},
            history=[snapshot.to_model() for snapshot in self.history],
            consecutive_passes=self.consecutive_passes,
            terminal=self.terminal,
            winner=self.winner.value if self.winner else None,
            last_move=self.last_move.to_dict() if self.last_move else None,
        )

    @property
    def status(self) -> Status:
        if self.terminal:
            return Status.FINISHED
        if self.undo_negotiation != UndoNegotiation.NONE:
            return Status.AWAITING_UNDO_RESPONSE
        return Status.IN_PROGRESS

    @property
    def accepts_moves(self) -> bool:
        return self.status == Status.IN_PROGRESS

    @property
    def prior_boards(self) -> list[Board]:
        """The board before each move so far, oldest first (what the ko check compares against)"""
        return [snapshot.board for snapshot in self.history]

    def submit_move(self, point: Point, acting_color: Color) -> Optional[int]:
        """
        Attempt to place a stone
        -----

        1. ignore the request if the match is over or an undo is being negotiated (returns None)
        2. let the rule engine check the move (raises the specific IllegalMoveError, state untouched)
        3. record a snapshot of the state before the move
        4. update board, prisoners, turn, passes and last move

        Returns the number of stones captured by the move.
        """
        if not self.accepts_moves:
            logger.debug("Move %s ignored, match status: %s", point, self.status)
            return None

        check = is_legal_move(
            self.board,
            point,
            Stone.of(acting_color),
            self.prior_boards,
            self.ko_rule,
        )
        if not check.is_legal:
            raise check.error()

        # for the typechecker: a legal move always carries the resulting board
        assert check.board is not None

        self._push_snapshot()
        self.board = check.board
        self.captured[acting_color] += check.captured
        self.current_player = opponent(self.current_player)
        self.consecutive_passes = 0
        self.last_move = point

        logger.debug(
            "%s played (%d, %d), captured %d", acting_color, point.x, point.y, check.captured
        )
        return check.captured

    def submit_pass(self, acting_color: Color) -> None:
        """
        Pass the turn. The second pass in a row ends the match and scores it.

        NOTE a pass does not add to the history, so an undo after a pass takes back the last stone played.
        """
        if self.terminal:
            logger.debug("Pass ignored, match is finished")
            return

        self.consecutive_passes += 1
        if self.consecutive_passes >= PASSES_TO_END:
            self.terminal = True
            self.winner = self._determine_winner()
            logger.info("Match finished. Score: %s, winner: %s", self.score(), self.winner)

        self.current_player = opponent(self.current_player)
        self.last_move = None
        logger.debug("%s passed (%d in a row)", acting_color, self.consecutive_passes)

    def score(self) -> dict[Color, int]:
        """Area scoring: stones on the board plus the stones you captured."""
        return {
            color: self.board.count(Stone.of(color)) + self.captured[color]
            for color in Color
        }

    # --- UNDO ---
    def request_undo(self, connected: bool) -> UndoRequest:
        """
        Ask to take back the last move.

        Without a peer the move is undone immediately. With a peer nothing changes yet:
        the caller sends the request and the undo is applied once the peer accepts.
        """
        if not self.history:
            raise UndoNotAllowedError("There is no move to undo.")
        if self.terminal:
            raise UndoNotAllowedError("The match is over.")
        if self.undo_negotiation != UndoNegotiation.NONE:
            raise UndoNotAllowedError("An undo request is already pending.")

        if not connected:
            self.apply_undo()
            return UndoRequest.APPLIED

        self.undo_negotiation = UndoNegotiation.REQUESTED_BY_ME
        return UndoRequest.PENDING

    def receive_undo_request(self) -> None:
        """The peer asked to undo. Moves are blocked until we answer."""
        self.undo_negotiation = UndoNegotiation.REQUESTED_BY_PEER

    def respond_to_undo(self, accepted: bool) -> None:
        """Answer the peer's request. The caller sends UNDO_ACCEPT / UNDO_DECLINE."""
        if self.undo_negotiation != UndoNegotiation.REQUESTED_BY_PEER:
            raise GameStateError("There is no undo request to respond to.")
        self.undo_negotiation = UndoNegotiation.NONE
        if accepted:
            self.apply_undo()

    def resolve_undo(self, accepted: bool) -> None:
        """The peer answered our request."""
        self.undo_negotiation = UndoNegotiation.NONE
        if accepted:
            self.apply_undo()

    def clear_undo_negotiation(self) -> None:
        """Connection lost: nobody is left to answer (or to ask)."""
        self.undo_negotiation = UndoNegotiation.NONE

    def apply_undo(self) -> None:
        """Pop the last snapshot and restore the state before that move. No-op on an empty history."""
        if not self.history:
            logger.debug("Nothing to undo")
            return

        snapshot = self.history.pop()
        self.board = snapshot.board
        self.captured = dict(snapshot.captured)
        self.current_player = snapshot.player
        self.last_move = snapshot.last_move
        self.consecutive_passes = 0

    # -- PRIVATE HELPERS ---
    def _push_snapshot(self) -> None:
        self.history.append(
            MoveSnapshot(
                board=self.board,
                captured=deepcopy(self.captured),
                last_move=self.last_move,
                player=self.current_player,
            )
        )

    def _determine_winner(self) -> Outcome:
        score = self.score()
        if score[Color.BLACK] > score[Color.WHITE]:
            return Outcome.BLACK
        if score[Color.WHITE] > score[Color.BLACK]:
            return Outcome.WHITE
        return Outcome.DRAW


def _color_from_model(name: str) -> Color:
    if name not in Color.__members__.values():
        raise GameStateError(
            f"Invalid color: {name!r}. \nPick one from {','.join(Color)}"
        )
    return Color(name)


def _captured_from_model(captured: dict[str, int]) -> dict[Color, int]:
    tallies = no_captures()
    for name, count in captured.items():
        tallies[_color_from_model(name)] = int(count)
    return tallies
