"""Chat log that travels with the match (part of the SYNC snapshot), with system notices and the per-turn emoji limit"""

from dataclasses import dataclass, field

from src.api.messages import ChatColor, ChatRecord
from src.core.config import EMOJI_LIMIT
from src.core.exceptions import ChatQuotaError, InvalidMessageError

SYSTEM_SENDER = "System"


@dataclass
class ChatLog:
    records: list[ChatRecord] = field(default_factory=list)
    emoji_limit: int = EMOJI_LIMIT
    # emoji sent by the local player since the move history last changed
    emoji_sent: int = 0

    @property
    def emoji_left(self) -> int:
        return max(self.emoji_limit - self.emoji_sent, 0)

    def post(
        self, text: str, sender: str, color: ChatColor, is_emoji: bool = False
    ) -> ChatRecord:
        """Add a message written by the local player."""
        if not text.strip():
            raise InvalidMessageError("Cannot send an empty chat message.")

        if is_emoji:
            if self.emoji_left == 0:
                raise ChatQuotaError(
                    f"Emoji limit for this turn reached ({self.emoji_sent}/{self.emoji_limit})."
                )
            self.emoji_sent += 1

        record = ChatRecord(sender=sender, text=text, is_emoji=is_emoji, color=color)
        self.records.append(record)
        return record

    def receive(self, record: ChatRecord) -> None:
        """Message from the peer (they keep track of their own emoji)."""
        self.records.append(record)

    def notice(self, text: str) -> ChatRecord:
        record = ChatRecord(sender=SYSTEM_SENDER, text=text, color="system")
        self.records.append(record)
        return record

    def replace(self, records: list[ChatRecord]) -> None:
        """SYNC from the host: their log becomes ours."""
        self.records = list(records)

    def reset_quota(self) -> None:
        """Called whenever the move history grows or shrinks (a stone was played, or a move was taken back)."""
        self.emoji_sent = 0
