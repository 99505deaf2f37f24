"""
Exception hierarchy shared by all layers.

Everything derives from GoError, so a caller (UI, network dispatcher) can catch one type and surface the message.
"""


class GoError(Exception):
    """Top-level exception for this application."""


# --- GAME STATE ---
class GameStateError(GoError):
    """The match is not in a state that allows the request."""


class UndoNotAllowedError(GameStateError):
    """Undo requested with an empty history, after the game ended, or while another request is pending."""


class NotYourTurnError(GoError):
    """A color other than the one to move attempted to play or pass."""


# --- MOVE LEGALITY ---
class IllegalMoveError(GoError):
    """Move rejected by the rule engine. Local feedback only, never sent to the peer."""


class OffBoardError(IllegalMoveError):
    pass


class OccupiedError(IllegalMoveError):
    pass


class SuicideError(IllegalMoveError):
    pass


class KoViolationError(IllegalMoveError):
    pass


# --- PARSING / VALIDATION ---
class InvalidBoardError(GoError):
    """A board diagram that is not square or uses unknown characters."""


class InvalidMessageError(GoError):
    """Wire data that does not match any known message."""


class ChatQuotaError(GoError):
    """Emoji limit for the current turn has been reached."""


# --- INFRASTRUCTURE ---
class TransportError(GoError):
    pass


class RepositoryError(GoError):
    pass
