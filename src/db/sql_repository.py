"""Implementation of (Match)Repository using SQLAlchemy"""

import logging
from dataclasses import asdict
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from src.core.models import MatchModel, SnapshotModel
from src.db.schema import DBMatch

logger = logging.getLogger(__name__)


class SQLMatchRepository:
    """Data stored using SQL / methods implemented using SQLAlchemy"""

    def __init__(self, db_session: Session) -> None:
        self.db = db_session

    def get_match(self, match_id: UUID) -> MatchModel | None:
        """Get match by ID, if record exists."""
        match_db = self._fetch_match(match_id)
        if match_db:
            return self._to_model(match_db)
        return None

    def create_match(self, match: MatchModel) -> tuple[MatchModel, UUID]:
        """Store new match and return the stored data + newly created match ID."""

        new_id = uuid4()
        match_db = DBMatch(id=new_id)
        self._copy_into(match_db, match)
        self.db.add(match_db)
        self.db.commit()
        self.db.refresh(match_db)
        logger.debug("Created match record %s", new_id)
        return self._to_model(match_db), new_id

    def update_match(self, match_id: UUID, match: MatchModel) -> MatchModel | None:
        """Overwrite an existing record with the latest state."""
        match_db = self._fetch_match(match_id)
        if not match_db:
            return None
        self._copy_into(match_db, match)
        self.db.commit()
        self.db.refresh(match_db)
        return self._to_model(match_db)

    def delete_match(self, match_id: UUID) -> MatchModel | None:
        """Remove a match's record."""
        match_db = self._fetch_match(match_id)
        if not match_db:
            return None
        match_model = self._to_model(match_db)
        self.db.delete(match_db)
        self.db.commit()
        return match_model

    def list_match_ids(self, include_finished: bool = True) -> list[UUID]:
        """IDs of the stored matches, most recently saved first."""
        query = select(DBMatch.id).order_by(DBMatch.updated_at.desc())
        if not include_finished:
            query = query.where(DBMatch.terminal.is_(False))
        return list(self.db.scalars(query))

    def _fetch_match(self, match_id: UUID) -> DBMatch | None:
        query = select(DBMatch).where(DBMatch.id == match_id)
        return self.db.scalar(query)

    def _copy_into(self, match_db: DBMatch, match: MatchModel) -> None:
        """Fill the SQLAlchemy model from the data transfer model. JSON columns get fresh lists/dicts so changes are detected."""
        match_db.board = list(match.board)
        match_db.current_player = match.current_player
        match_db.captured = dict(match.captured)
        match_db.history = [asdict(snapshot) for snapshot in match.history]
        match_db.consecutive_passes = match.consecutive_passes
        match_db.terminal = match.terminal
        match_db.winner = match.winner
        match_db.last_move = dict(match.last_move) if match.last_move else None

    def _to_model(self, match_db: DBMatch) -> MatchModel:
        """Convert SQLAlchemy model to data transfer model."""
        return MatchModel(
            board=list(match_db.board),
            current_player=match_db.current_player,
            captured=dict(match_db.captured),
            history=[SnapshotModel(**snapshot) for snapshot in match_db.history],
            consecutive_passes=match_db.consecutive_passes,
            terminal=match_db.terminal,
            winner=match_db.winner,
            last_move=dict(match_db.last_move) if match_db.last_move else None,
        )
