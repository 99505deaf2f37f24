"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBMatch(Base):
    __tablename__ = "matches"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    board: Mapped[list[str]] = mapped_column(JSON)
    current_player: Mapped[str]
    captured: Mapped[dict[str, int]] = mapped_column(JSON)
    # list of serialized MoveSnapshots (board diagram, captured, last_move, player)
    history: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    consecutive_passes: Mapped[int] = mapped_column(default=0)
    terminal: Mapped[bool] = mapped_column(default=False)
    winner: Mapped[Optional[str]]
    last_move: Mapped[Optional[dict[str, int]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
