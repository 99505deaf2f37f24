"""
Type definitions used across layers
"""

from enum import StrEnum


class Status(StrEnum):
    IN_PROGRESS = "in progress"
    AWAITING_UNDO_RESPONSE = "awaiting undo response"
    FINISHED = "finished"


# --- Color does NOT contain an option for empty points. That lives in src/go/stones.py
# --- NOTE the wire format and the database only ever need the two player colors


class Color(StrEnum):
    BLACK = "black"
    WHITE = "white"


class Outcome(StrEnum):
    BLACK = "black"
    WHITE = "white"
    DRAW = "draw"


class KoRule(StrEnum):
    SIMPLE = "simple"
    SUPERKO = "superko"


class MessageType(StrEnum):
    MOVE = "MOVE"
    PASS = "PASS"
    CHAT = "CHAT"
    SYNC = "SYNC"
    UNDO_REQ = "UNDO_REQ"
    UNDO_ACCEPT = "UNDO_ACCEPT"
    UNDO_DECLINE = "UNDO_DECLINE"
    RESTART = "RESTART"


class Role(StrEnum):
    LOCAL = "local"
    HOST = "host"
    JOINER = "joiner"
