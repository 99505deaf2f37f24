"""Wire messages exchanged between the two peers

Every message is an envelope {type, payload, from}. Each `type` has its own model, and `Message` is the closed union
of all of them (pydantic picks the model from the `type` field).
"""

import json
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from src.core.config import BOARD_SIZE
from src.core.exceptions import InvalidMessageError
from src.core.models import MatchModel
from src.core.shared_types import KoRule, MessageType

ChatColor = Literal["black", "white", "system"]


# --- PAYLOAD MODELS ---
class PointPayload(BaseModel):
    x: int
    y: int

    @field_validator(*["x", "y"])
    @classmethod
    def validate_coordinate(cls, value: int, info: ValidationInfo) -> int:
        # the match being played decides the board size, the configured default otherwise
        size = (info.context or {}).get("board_size", BOARD_SIZE)
        if not 0 <= value < size:
            raise InvalidMessageError(
                f"Coordinate {value} is not on a {size}x{size} board."
            )
        return value

    @classmethod
    def on_board(cls, x: int, y: int, board_size: int) -> "PointPayload":
        return cls.model_validate({"x": x, "y": y}, context={"board_size": board_size})


class ChatRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    sender: str
    text: str
    is_emoji: bool = Field(default=False, alias="isEmoji")
    color: ChatColor


class SyncPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    match_state: MatchModel = Field(alias="matchState")
    # rules of the match travel with it, the board size is the size of the board diagram
    ko_rule: KoRule = Field(alias="koRule")
    chat_log: list[ChatRecord] = Field(default_factory=list, alias="chatLog")


# --- MESSAGE MODELS ---
class _Envelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = Field(default=None, alias="from")


class MoveMessage(_Envelope):
    type: Literal[MessageType.MOVE] = MessageType.MOVE
    payload: PointPayload


class PassMessage(_Envelope):
    type: Literal[MessageType.PASS] = MessageType.PASS
    payload: None = None


class ChatMessage(_Envelope):
    type: Literal[MessageType.CHAT] = MessageType.CHAT
    payload: ChatRecord


class SyncMessage(_Envelope):
    type: Literal[MessageType.SYNC] = MessageType.SYNC
    payload: SyncPayload


class UndoRequestMessage(_Envelope):
    type: Literal[MessageType.UNDO_REQ] = MessageType.UNDO_REQ
    payload: None = None


class UndoAcceptMessage(_Envelope):
    type: Literal[MessageType.UNDO_ACCEPT] = MessageType.UNDO_ACCEPT
    payload: None = None


class UndoDeclineMessage(_Envelope):
    type: Literal[MessageType.UNDO_DECLINE] = MessageType.UNDO_DECLINE
    payload: None = None


class RestartMessage(_Envelope):
    type: Literal[MessageType.RESTART] = MessageType.RESTART
    payload: None = None


Message = Annotated[
    Union[
        MoveMessage,
        PassMessage,
        ChatMessage,
        SyncMessage,
        UndoRequestMessage,
        UndoAcceptMessage,
        UndoDeclineMessage,
        RestartMessage,
    ],
    Field(discriminator="type"),
]

_MESSAGE_ADAPTER: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(raw: Any, board_size: int = BOARD_SIZE) -> Message:
    """Turn received data (dict, or a JSON string/bytes) into one of the message models.

    Points are checked against `board_size`, the size of the match the message is for.
    """
    try:
        if isinstance(raw, (str, bytes, bytearray)):
            raw = json.loads(raw)
        return _MESSAGE_ADAPTER.validate_python(raw, context={"board_size": board_size})
    except (ValueError, ValidationError) as e:
        # NOTE json.JSONDecodeError is a ValueError
        raise InvalidMessageError(f"Cannot interpret message: {e}") from e


def encode_message(message: Message) -> dict[str, Any]:
    """JSON-compatible dict, with the wire field names (from, isEmoji, matchState, koRule, chatLog)"""
    return message.model_dump(mode="json", by_alias=True)
