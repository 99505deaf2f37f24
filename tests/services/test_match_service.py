"""Unit tests for src/services/match_service.py"""

from dataclasses import asdict
from typing import Any, Generator
from unittest.mock import Mock
from uuid import UUID, uuid4

import pytest

from src.api.messages import MoveMessage, PointPayload, encode_message
from src.core.exceptions import (
    ChatQuotaError,
    GameStateError,
    GoError,
    IllegalMoveError,
    NotYourTurnError,
    OffBoardError,
    RepositoryError,
    SuicideError,
    TransportError,
    UndoNotAllowedError,
)
from src.core.models import MatchModel
from src.core.shared_types import Color, KoRule, Outcome, Role, Status
from src.go.game import MatchState, UndoNegotiation, UndoRequest
from src.go.point import Point
from src.go.stones import Stone
from src.net.memory_transport import MemoryNetwork, MemoryTransport
from src.services.match_service import MatchService


# --- MOCK DEPENDENCIES ----
class MockRepository:
    """Mock the MatchRepository using a dictionary of match models."""

    def __init__(self) -> None:
        self._matches: dict[UUID, MatchModel] = {}

    def create_match(self, match: MatchModel) -> tuple[MatchModel, UUID]:
        match_id = uuid4()
        self._matches[match_id] = match
        return match, match_id

    def get_match(self, match_id: UUID) -> MatchModel | None:
        return self._matches.get(match_id)

    def update_match(self, match_id: UUID, match: MatchModel) -> MatchModel | None:
        if match_id not in self._matches:
            return None
        # re-insert so the dictionary stays ordered by last save
        del self._matches[match_id]
        self._matches[match_id] = match
        return match

    def delete_match(self, match_id: UUID) -> MatchModel | None:
        return self._matches.pop(match_id, None)

    def list_match_ids(self, include_finished: bool = True) -> list[UUID]:
        return [
            match_id
            for match_id, match in reversed(self._matches.items())
            if include_finished or not match.terminal
        ]

    def clear(self) -> None:
        """Clear the repository (useful in between tests)"""
        self._matches.clear()


@pytest.fixture
def mock_repository() -> Generator[MockRepository, None, None]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


@pytest.fixture
def peers(network: MemoryNetwork) -> tuple[MatchService, MatchService]:
    """Host (Black) and joiner (White), connected and synchronized."""
    host = MatchService(MemoryTransport(network, "host-id"))
    joiner = MatchService(MemoryTransport(network, "joiner-id"))
    host.host()
    joiner.join("host-id")
    network.run_until_idle()
    return host, joiner


def assert_in_sync(host: MatchService, joiner: MatchService) -> None:
    assert host.state == joiner.state
    assert host.state.to_model() == joiner.state.to_model()


# --- LOCAL PLAY ----
def test_local_match_alternates_colors() -> None:
    """Without a peer, the player on the screen plays both colors"""
    service = MatchService()
    service.play(Point(3, 3))
    service.play(Point(3, 4))

    assert service.state.board.stone(Point(3, 3)) == Stone.BLACK
    assert service.state.board.stone(Point(3, 4)) == Stone.WHITE
    assert service.role == Role.LOCAL
    assert service.local_color is None


def test_local_illegal_move_propagates() -> None:
    """Make sure service propagates the exceptions (the UI turns them into a short message)."""
    service = MatchService()
    service.play(Point(3, 3))
    with pytest.raises(IllegalMoveError):
        service.play(Point(3, 3))
    assert len(service.state.history) == 1


def test_local_undo_is_immediate() -> None:
    service = MatchService()
    service.play(Point(3, 3))
    assert service.request_undo() == UndoRequest.APPLIED
    assert service.state.history == []


def test_local_game_over() -> None:
    service = MatchService()
    service.play(Point(3, 3))
    service.pass_turn()
    service.pass_turn()

    assert service.status == Status.FINISHED
    assert service.state.winner == Outcome.BLACK
    assert "game over" in service.chat.records[-1].text
    with pytest.raises(GameStateError):
        service.play(Point(4, 4))
    with pytest.raises(GameStateError):
        service.pass_turn()


def test_local_restart() -> None:
    service = MatchService()
    service.play(Point(3, 3))
    service.restart()
    assert service.state == MatchState.new()


def test_move_on_a_larger_board() -> None:
    service = MatchService(board_size=21)
    service.play(Point(20, 20))
    assert service.state.board.stone(Point(20, 20)) == Stone.BLACK
    assert len(service.state.history) == 1


def test_off_board_move_changes_nothing() -> None:
    service = MatchService(board_size=9)
    with pytest.raises(OffBoardError):
        service.play(Point(9, 0))
    assert service.state.history == []
    assert service.state.current_player == Color.BLACK


def test_no_transport_configured() -> None:
    service = MatchService()
    with pytest.raises(TransportError):
        service.host()
    with pytest.raises(TransportError):
        service.join("anyone")


# --- CONNECTION / SYNC ----
def test_roles_and_colors(peers: tuple[MatchService, MatchService]) -> None:
    host, joiner = peers
    assert (host.role, host.local_color) == (Role.HOST, Color.BLACK)
    assert (joiner.role, joiner.local_color) == (Role.JOINER, Color.WHITE)
    assert host.is_connected and joiner.is_connected


def test_host_state_replaces_joiner_state(network: MemoryNetwork) -> None:
    """A match already under way on the host is sent in full to the joiner"""
    host = MatchService(MemoryTransport(network, "host-id"))
    host.play(Point(3, 3))
    host.play(Point(15, 15))
    host.chat.notice("before anyone joined")

    joiner = MatchService(MemoryTransport(network, "joiner-id"))
    joiner.play(Point(9, 9))  # local fiddling, thrown away by the SYNC
    host.host()
    joiner.join("host-id")
    network.run_until_idle()

    assert_in_sync(host, joiner)
    assert joiner.state.board.stone(Point(9, 9)) == Stone.EMPTY
    assert [r.text for r in joiner.chat.records] == [r.text for r in host.chat.records]


def test_joiner_takes_the_host_rules(network: MemoryNetwork) -> None:
    host = MatchService(
        MemoryTransport(network, "host-id"), board_size=9, ko_rule=KoRule.SUPERKO
    )
    joiner = MatchService(
        MemoryTransport(network, "joiner-id"), board_size=19, ko_rule=KoRule.SIMPLE
    )
    host.host()
    joiner.join("host-id")
    network.run_until_idle()

    assert joiner.state.board.size == 9
    assert joiner.state.ko_rule == KoRule.SUPERKO

    host.restart()
    network.run_until_idle()
    assert host.state.board.size == joiner.state.board.size == 9
    assert joiner.state.ko_rule == KoRule.SUPERKO
    assert_in_sync(host, joiner)


def test_moves_on_a_larger_host_board(network: MemoryNetwork) -> None:
    host = MatchService(MemoryTransport(network, "host-id"), board_size=21)
    joiner = MatchService(MemoryTransport(network, "joiner-id"))
    host.host()
    joiner.join("host-id")
    network.run_until_idle()

    host.play(Point(20, 20))
    network.run_until_idle()
    assert joiner.state.board.stone(Point(20, 20)) == Stone.BLACK
    assert_in_sync(host, joiner)


def test_second_connection_refused(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    intruder = MatchService(MemoryTransport(network, "intruder-id"))
    intruder.join("host-id")
    network.run_until_idle()

    assert not intruder.is_connected
    assert host.connection is not None
    assert host.connection.remote_id == "joiner-id"


def test_cannot_join_twice(peers: tuple[MatchService, MatchService]) -> None:
    _, joiner = peers
    with pytest.raises(GameStateError):
        joiner.join("host-id")


def test_play_before_connection_open(network: MemoryNetwork) -> None:
    host = MatchService(MemoryTransport(network, "host-id"))
    host.host()
    joiner = MatchService(MemoryTransport(network, "joiner-id"))
    joiner.join("host-id")
    # network has not run: joiner is attached but the channel is not open
    joiner.state.current_player = Color.WHITE
    with pytest.raises(TransportError):
        joiner.play(Point(3, 3))
    assert joiner.state.history == []


# --- MOVES OVER THE WIRE ----
def test_moves_are_mirrored(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    joiner.play(Point(3, 4))
    network.run_until_idle()

    assert_in_sync(host, joiner)
    assert joiner.state.board.stone(Point(3, 3)) == Stone.BLACK
    assert host.state.board.stone(Point(3, 4)) == Stone.WHITE
    assert host.state.last_move == Point(3, 4)


def test_capture_scenario_over_the_wire(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    sequence = [
        (host, Point(3, 3)),
        (joiner, Point(3, 4)),
        (host, Point(3, 5)),
        (joiner, Point(15, 15)),
        (host, Point(2, 4)),
        (joiner, Point(15, 16)),
    ]
    for service, point in sequence:
        service.play(point)
        network.run_until_idle()

    assert host.play(Point(4, 4)) == 1
    network.run_until_idle()

    assert_in_sync(host, joiner)
    assert joiner.state.captured[Color.BLACK] == 1
    assert joiner.state.board.cells[4][3] == Stone.EMPTY


def test_not_your_turn(peers: tuple[MatchService, MatchService]) -> None:
    host, joiner = peers
    with pytest.raises(NotYourTurnError):
        joiner.play(Point(3, 3))
    with pytest.raises(NotYourTurnError):
        joiner.pass_turn()
    assert joiner.state.history == []


def test_illegal_move_not_sent(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.state.board = host.state.board.place(Point(1, 0), Stone.WHITE).place(
        Point(0, 1), Stone.WHITE
    )
    assert host.connection is not None
    host.connection.send = Mock(wraps=host.connection.send)

    with pytest.raises(SuicideError):
        host.play(Point(0, 0))
    host.connection.send.assert_not_called()


def test_each_local_event_sent_exactly_once(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    received: list[Any] = []
    assert joiner.connection is not None
    joiner.connection.on_data(received.append)

    host.play(Point(3, 3))
    network.run_until_idle()
    joiner.play(Point(4, 4))
    network.run_until_idle()

    # only the host's move arrived at the joiner, nothing was echoed back
    assert [message["type"] for message in received] == ["MOVE"]
    assert received[0]["from"] == "host-id"
    assert len(host.state.history) == len(joiner.state.history) == 2


def test_passes_end_match_on_both_sides(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    joiner.pass_turn()
    network.run_until_idle()
    host.pass_turn()
    network.run_until_idle()

    assert host.state.terminal and joiner.state.terminal
    assert host.state.winner == joiner.state.winner == Outcome.BLACK
    assert_in_sync(host, joiner)


def test_remote_move_rejected_locally_is_ignored(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    """Should never happen between honest peers, but must not crash the receiver"""
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    before = joiner.state.to_model()

    joiner.handle_data(encode_message(MoveMessage(payload=PointPayload(x=3, y=3))))
    assert joiner.state.to_model() == before


def test_garbage_from_peer_is_dropped(peers: tuple[MatchService, MatchService]) -> None:
    _, joiner = peers
    before = joiner.state.to_model()
    joiner.handle_data({"type": "TELEPORT"})
    joiner.handle_data("not even json")
    assert joiner.state.to_model() == before


def test_invalid_sync_is_dropped(peers: tuple[MatchService, MatchService]) -> None:
    _, joiner = peers
    model = MatchState.new().to_model()
    model.current_player = "purple"
    before = joiner.state.to_model()

    joiner.handle_data(
        {
            "type": "SYNC",
            "payload": {"matchState": asdict(model), "koRule": "simple", "chatLog": []},
        }
    )
    assert joiner.state.to_model() == before


# --- UNDO HANDSHAKE ----
def test_undo_accepted(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()

    assert host.request_undo() == UndoRequest.PENDING
    # no change until the peer answers
    assert len(host.state.history) == 1
    assert host.status == Status.AWAITING_UNDO_RESPONSE
    network.run_until_idle()
    assert joiner.state.undo_negotiation == UndoNegotiation.REQUESTED_BY_PEER
    assert joiner.status == Status.AWAITING_UNDO_RESPONSE

    joiner.respond_to_undo(accepted=True)
    network.run_until_idle()

    assert host.state.history == [] and joiner.state.history == []
    assert host.status == joiner.status == Status.IN_PROGRESS
    assert_in_sync(host, joiner)


def test_undo_declined(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    host.request_undo()
    network.run_until_idle()

    joiner.respond_to_undo(accepted=False)
    network.run_until_idle()

    assert len(host.state.history) == len(joiner.state.history) == 1
    assert host.status == joiner.status == Status.IN_PROGRESS
    assert "declined" in host.chat.records[-1].text


def test_moves_blocked_during_negotiation(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    host.request_undo()
    network.run_until_idle()

    with pytest.raises(GameStateError):
        joiner.play(Point(4, 4))
    with pytest.raises(UndoNotAllowedError):
        host.request_undo()


def test_respond_without_request(peers: tuple[MatchService, MatchService]) -> None:
    host, _ = peers
    host.play(Point(3, 3))
    with pytest.raises(GameStateError):
        host.respond_to_undo(True)


def test_undo_request_with_empty_history(peers: tuple[MatchService, MatchService]) -> None:
    host, _ = peers
    with pytest.raises(UndoNotAllowedError):
        host.request_undo()


def test_history_length_changes_by_one(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    joiner.play(Point(4, 4))
    network.run_until_idle()
    assert len(host.state.history) == 2

    joiner.request_undo()
    network.run_until_idle()
    host.respond_to_undo(True)
    network.run_until_idle()
    assert len(host.state.history) == len(joiner.state.history) == 1
    assert joiner.state.current_player == Color.WHITE


# --- DISCONNECT ----
def test_disconnect_clears_negotiation(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    host.request_undo()
    network.run_until_idle()

    joiner.disconnect()
    network.run_until_idle()

    for service in (host, joiner):
        assert not service.is_connected
        assert service.role == Role.LOCAL
        assert service.status == Status.IN_PROGRESS
        assert len(service.state.history) == 1
        assert "disconnected" in service.chat.records[-1].text


def test_local_play_continues_after_disconnect(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    host.disconnect()
    network.run_until_idle()

    # White to move, and the former host may now play it
    host.play(Point(4, 4))
    assert host.state.board.stone(Point(4, 4)) == Stone.WHITE
    assert joiner.state.board.stone(Point(4, 4)) == Stone.EMPTY


# --- RESTART / CHAT ----
def test_restart_mirrored(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    host.play(Point(3, 3))
    network.run_until_idle()
    joiner.restart()
    network.run_until_idle()

    assert host.state == joiner.state == MatchState.new()
    assert host.chat.records[-1].text == "--- New game ---"


def test_chat_mirrored(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    record = joiner.send_chat("have a nice game")
    network.run_until_idle()

    assert host.chat.records[-1] == record
    assert record.sender == "White"
    assert record.color == "white"


def test_chat_before_connection_open(network: MemoryNetwork) -> None:
    host = MatchService(MemoryTransport(network, "host-id"))
    host.host()
    joiner = MatchService(MemoryTransport(network, "joiner-id"))
    joiner.join("host-id")
    # network has not run: the message could not be delivered
    with pytest.raises(TransportError):
        joiner.send_chat("hello?")
    assert joiner.chat.records == []


def test_emoji_quota_resets_after_move(
    network: MemoryNetwork, peers: tuple[MatchService, MatchService]
) -> None:
    host, joiner = peers
    for _ in range(3):
        host.send_chat("🔥", is_emoji=True)
    with pytest.raises(ChatQuotaError):
        host.send_chat("🔥", is_emoji=True)

    joiner_move_count = len(joiner.state.history)
    host.play(Point(3, 3))
    network.run_until_idle()
    assert len(joiner.state.history) == joiner_move_count + 1
    host.send_chat("🔥", is_emoji=True)
    assert host.chat.emoji_left == 2


def test_all_errors_share_a_base(peers: tuple[MatchService, MatchService]) -> None:
    """The UI can catch one exception type for every rejected intent"""
    _, joiner = peers
    with pytest.raises(GoError):
        joiner.play(Point(3, 3))


# --- PERSISTENCE ----
def test_save_and_load(mock_repository: MockRepository) -> None:
    service = MatchService(repository=mock_repository)
    service.play(Point(3, 3))
    match_id = service.save_match()

    service.play(Point(4, 4))
    assert service.save_match() == match_id

    other = MatchService(repository=mock_repository)
    other.load_match(match_id)
    assert other.state == service.state
    assert other.match_id == match_id


def test_save_after_record_deleted(mock_repository: MockRepository) -> None:
    service = MatchService(repository=mock_repository)
    first_id = service.save_match()
    mock_repository.delete_match(first_id)
    assert service.save_match() != first_id


def test_load_unknown_match(mock_repository: MockRepository) -> None:
    service = MatchService(repository=mock_repository)
    with pytest.raises(RepositoryError):
        service.load_match(uuid4())


def test_no_repository_configured() -> None:
    with pytest.raises(RepositoryError):
        MatchService().save_match()


def test_load_refused_while_connected(
    network: MemoryNetwork, mock_repository: MockRepository
) -> None:
    host = MatchService(MemoryTransport(network, "host-id"), mock_repository)
    match_id = host.save_match()
    joiner = MatchService(MemoryTransport(network, "joiner-id"), mock_repository)
    host.host()
    joiner.join("host-id")
    network.run_until_idle()

    with pytest.raises(GameStateError):
        joiner.load_match(match_id)


def test_saved_matches(mock_repository: MockRepository) -> None:
    finished = MatchService(repository=mock_repository)
    finished.pass_turn()
    finished.pass_turn()
    finished_id = finished.save_match()

    ongoing = MatchService(repository=mock_repository)
    ongoing.play(Point(3, 3))
    ongoing_id = ongoing.save_match()

    assert ongoing.saved_matches() == [ongoing_id]
    assert ongoing.saved_matches(include_finished=True) == [ongoing_id, finished_id]

    # saving again makes it the most recent one
    finished.save_match()
    assert ongoing.saved_matches(include_finished=True) == [finished_id, ongoing_id]
