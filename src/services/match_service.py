"""Orchestration of a match: local player intents, messages from the peer, and (optionally) persistence.

Every local event that changes the match is applied here first and then sent to the peer exactly once.
Every event received from the peer goes through the same MatchState methods and is never sent back.
Both peers start from the host's SYNC snapshot and the rule engine is deterministic, so replaying the same events
keeps both copies of the match identical (the transport is assumed reliable and ordered).
"""

import logging
from typing import Any, Optional, assert_never
from uuid import UUID

from src.api.messages import (
    ChatMessage,
    ChatRecord,
    Message,
    MoveMessage,
    PassMessage,
    PointPayload,
    RestartMessage,
    SyncMessage,
    SyncPayload,
    UndoAcceptMessage,
    UndoDeclineMessage,
    UndoRequestMessage,
    encode_message,
    parse_message,
)
from src.core.config import BOARD_SIZE, EMOJI_LIMIT, KO_RULE
from src.core.exceptions import (
    GameStateError,
    IllegalMoveError,
    InvalidMessageError,
    NotYourTurnError,
    RepositoryError,
    TransportError,
)
from src.core.shared_types import Color, KoRule, Outcome, Role, Status
from src.db.repository import MatchRepository
from src.go.game import MatchState, UndoRequest
from src.go.point import Point
from src.go.rules import MoveCheck, Violation
from src.net.transport import Connection, Transport
from src.services.chat import ChatLog

logger = logging.getLogger(__name__)


class MatchService:
    """Orchestration of layers for a Go match between two peers (or two players sharing one screen)."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        repository: Optional[MatchRepository] = None,
        board_size: int = BOARD_SIZE,
        ko_rule: KoRule = KO_RULE,
        emoji_limit: int = EMOJI_LIMIT,
    ) -> None:
        self.transport = transport
        self.repo = repository
        self.board_size = board_size
        self.ko_rule = ko_rule
        self.state = MatchState.new(board_size, ko_rule)
        self.chat = ChatLog(emoji_limit=emoji_limit)
        self.connection: Optional[Connection] = None
        self.role = Role.LOCAL
        self.local_color: Optional[Color] = None
        self.match_id: Optional[UUID] = None

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    @property
    def status(self) -> Status:
        return self.state.status

    # -- Connection lifecycle --
    def host(self) -> str:
        """Wait for a peer to connect. Returns our id, to be shared with the other player."""
        transport = self._require_transport()
        transport.on_connection(self._accept)
        logger.info("Hosting as %s", transport.peer_id)
        return transport.peer_id

    def join(self, remote_id: str) -> None:
        """Connect to a host. The joiner plays White and waits for the host's SYNC."""
        transport = self._require_transport()
        if self.is_connected:
            raise GameStateError("Already connected to a peer.")
        connection = transport.connect(remote_id)
        self._attach(connection, Role.JOINER, Color.WHITE)
        logger.info("Joining %s as %s", remote_id, Color.WHITE)

    def disconnect(self) -> None:
        if self.connection is not None:
            self.connection.close()

    # -- Local player intents --
    def play(self, point: Point) -> int:
        """
        Place a stone for the local player.
        ----

        1. the match must accept moves (not finished, no undo being negotiated)
        2. with a peer attached, it must be your turn
        3. the rule engine must accept the move (IllegalMoveError otherwise, nothing is sent)
        4. send the move to the peer

        Returns the number of stones captured.
        """
        self._assert_accepting_moves()
        acting_color = self._acting_color()
        self._assert_can_send()

        if not self.state.board.contains(point):
            raise MoveCheck(point, Violation.OFF_BOARD).error()
        # built first: a point that cannot go on the wire must not change the match either
        message = MoveMessage(
            payload=PointPayload.on_board(point.x, point.y, self.state.board.size)
        )
        captured = self.state.submit_move(point, acting_color)
        # for the type checker: the match accepted moves, so the move was applied
        assert captured is not None
        self.chat.reset_quota()

        self._send(message)
        return captured

    def pass_turn(self) -> None:
        if self.state.terminal:
            raise GameStateError("The match is over.")
        acting_color = self._acting_color()
        self._assert_can_send()

        self.state.submit_pass(acting_color)
        self._announce_pass(acting_color)
        self._send(PassMessage())

    def request_undo(self) -> UndoRequest:
        """Without a peer the last move is taken back immediately, otherwise the peer is asked first."""
        if self.is_connected:
            self._assert_can_send()

        outcome = self.state.request_undo(connected=self.is_connected)
        if outcome == UndoRequest.APPLIED:
            self.chat.reset_quota()
            return outcome

        self.chat.notice("You asked to take back the last move...")
        self._send(UndoRequestMessage())
        return outcome

    def respond_to_undo(self, accepted: bool) -> None:
        """Answer the peer's undo request."""
        self._assert_can_send()
        self.state.respond_to_undo(accepted)

        if accepted:
            self.chat.reset_quota()
            self.chat.notice("You accepted the undo.")
            self._send(UndoAcceptMessage())
        else:
            self.chat.notice("You declined the undo.")
            self._send(UndoDeclineMessage())

    def restart(self) -> None:
        if self.is_connected:
            self._assert_can_send()
        self._reset_match()
        self._send(RestartMessage())

    def send_chat(self, text: str, is_emoji: bool = False) -> ChatRecord:
        self._assert_can_send()
        color = self.local_color or self.state.current_player
        record = self.chat.post(
            text, sender=color.value.title(), color=color.value, is_emoji=is_emoji
        )
        self._send(ChatMessage(payload=record))
        return record

    # -- Messages from the peer --
    def handle_data(self, data: Any) -> None:
        """Entry point for raw data from the connection. Anything unreadable is logged and dropped."""
        try:
            message = parse_message(data, self.state.board.size)
        except InvalidMessageError as e:
            logger.warning("Dropped invalid message from peer: %s", e)
            return
        self.handle_message(message)

    def handle_message(self, message: Message) -> None:
        """Apply a peer event locally (never re-sent)."""
        logger.debug("Received %s from %s", message.type, message.sender)

        match message:
            case MoveMessage(payload=payload):
                self._apply_remote_move(Point(payload.x, payload.y))
            case PassMessage():
                self._apply_remote_pass()
            case ChatMessage(payload=record):
                self.chat.receive(record)
            case SyncMessage(payload=payload):
                self._apply_sync(payload)
            case UndoRequestMessage():
                self.state.receive_undo_request()
                self.chat.notice("Your opponent asked to take back the last move.")
            case UndoAcceptMessage():
                self.state.resolve_undo(accepted=True)
                self.chat.reset_quota()
                self.chat.notice("Your opponent accepted the undo.")
            case UndoDeclineMessage():
                self.state.resolve_undo(accepted=False)
                self.chat.notice("Your opponent declined the undo.")
            case RestartMessage():
                self._reset_match()
            case _:
                assert_never(message)

    # -- Persistence --
    def save_match(self) -> UUID:
        """Store the current match (first call creates the record, later calls update it)."""
        repo = self._require_repository()
        model = self.state.to_model()
        if self.match_id is not None and repo.update_match(self.match_id, model):
            return self.match_id

        _, self.match_id = repo.create_match(model)
        logger.info("Saved match %s", self.match_id)
        return self.match_id

    def load_match(self, match_id: UUID) -> None:
        """Resume a stored match. Only without a peer: the peer would otherwise be out of sync."""
        if self.is_connected:
            raise GameStateError("Cannot load a saved match while a peer is connected.")
        model = self._require_repository().get_match(match_id)
        if model is None:
            raise RepositoryError(f"Match with {match_id=} not found.")

        self.state = MatchState.from_model(model, self.ko_rule)
        self.board_size = self.state.board.size
        self.match_id = match_id
        self.chat.reset_quota()
        logger.info("Loaded match %s", match_id)

    def saved_matches(self, include_finished: bool = False) -> list[UUID]:
        """Stored matches, most recent first. By default only the ones that can still be played on."""
        return self._require_repository().list_match_ids(include_finished)

    # -- Internal helpers --
    def _accept(self, connection: Connection) -> None:
        """Incoming connection: we are the host and play Black. Send the full state once the channel is open."""
        if self.is_connected:
            logger.warning("Refusing second connection from %s", connection.remote_id)
            connection.close()
            return
        self._attach(connection, Role.HOST, Color.BLACK)
        connection.on_open(self._send_sync)
        logger.info("Peer %s connected, playing %s", connection.remote_id, Color.BLACK)

    def _attach(self, connection: Connection, role: Role, color: Color) -> None:
        self.connection = connection
        self.role = role
        self.local_color = color
        connection.on_data(self.handle_data)
        connection.on_close(lambda: self._on_close(connection))

    def _on_close(self, connection: Connection) -> None:
        """Peer gone: drop any undo negotiation and continue as a local match."""
        if connection is not self.connection:
            return
        self.connection = None
        self.role = Role.LOCAL
        self.local_color = None
        self.state.clear_undo_negotiation()
        self.chat.notice("Your opponent disconnected.")
        logger.info("Connection to %s closed", connection.remote_id)

    def _send_sync(self) -> None:
        self._send(
            SyncMessage(
                payload=SyncPayload(
                    match_state=self.state.to_model(),
                    ko_rule=self.ko_rule,
                    chat_log=self.chat.records,
                )
            )
        )

    def _send(self, message: Message) -> None:
        """Fire-and-forget. Without a peer there is nobody to tell."""
        if self.connection is None:
            return
        if self.transport is not None:
            message.sender = self.transport.peer_id
        self.connection.send(encode_message(message))

    def _apply_remote_move(self, point: Point) -> None:
        # the peer only sends moves for the color to move, so that color is trusted
        try:
            captured = self.state.submit_move(point, self.state.current_player)
        except IllegalMoveError as e:
            logger.warning("Peer move rejected by local rules, matches may be out of sync: %s", e)
            return
        if captured is None:
            logger.warning("Peer move %s ignored, match status: %s", point, self.status)
            return
        self.chat.reset_quota()

    def _apply_remote_pass(self) -> None:
        if self.state.terminal:
            logger.warning("Peer passed after the match ended")
            return
        acting_color = self.state.current_player
        self.state.submit_pass(acting_color)
        self._announce_pass(acting_color)

    def _apply_sync(self, payload: SyncPayload) -> None:
        """Full state from the host replaces ours."""
        try:
            state = MatchState.from_model(payload.match_state, payload.ko_rule)
        except GameStateError as e:
            logger.warning("Dropped SYNC with invalid match state: %s", e)
            return
        self.state = state
        # the host's rules from now on, so a restart starts the same match on both sides
        self.board_size = state.board.size
        self.ko_rule = payload.ko_rule
        self.chat.replace(payload.chat_log)
        self.chat.reset_quota()
        logger.info("Synchronized with host, %d moves played", len(state.history))

    def _reset_match(self) -> None:
        self.state = MatchState.new(self.board_size, self.ko_rule)
        self.chat.reset_quota()
        self.chat.notice("--- New game ---")

    def _announce_pass(self, color: Color) -> None:
        if not self.state.terminal:
            self.chat.notice(f"{color.value.title()} passed.")
            return

        score = self.state.score()
        result = (
            "Draw"
            if self.state.winner == Outcome.DRAW
            else f"{str(self.state.winner).title()} wins"
        )
        self.chat.notice(
            f"Both players passed, game over. {result} "
            f"(black {score[Color.BLACK]}, white {score[Color.WHITE]})."
        )

    def _acting_color(self) -> Color:
        """Turn enforcement: with a peer attached you can only act for your own color."""
        if self.local_color is None or not self.is_connected:
            return self.state.current_player
        if self.local_color != self.state.current_player:
            raise NotYourTurnError(
                f"It is not your turn. Waiting for {self.state.current_player} to play."
            )
        return self.local_color

    def _assert_accepting_moves(self) -> None:
        if self.state.terminal:
            raise GameStateError("The match is over.")
        if not self.state.accepts_moves:
            raise GameStateError(f"Cannot play now. status: {self.status}")

    def _assert_can_send(self) -> None:
        """With a peer attached, a change that cannot be sent must not be applied either."""
        if self.connection is not None and not self.connection.is_open:
            raise TransportError("Connection to the peer is not open yet.")

    def _require_transport(self) -> Transport:
        if self.transport is None:
            raise TransportError("No transport configured, only local play is available.")
        return self.transport

    def _require_repository(self) -> MatchRepository:
        if self.repo is None:
            raise RepositoryError("No repository configured.")
        return self.repo
