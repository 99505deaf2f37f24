"""Protocol repository (SQLAlchemy implementation in sql_repository.py, a dictionary works just as well in tests)"""

from typing import Protocol
from uuid import UUID

from src.core.models import MatchModel


class MatchRepository(Protocol):
    """Persistence layer orchestration"""

    def get_match(self, match_id: UUID) -> MatchModel | None:
        """Get match by ID, if record exists."""
        ...

    def create_match(self, match: MatchModel) -> tuple[MatchModel, UUID]:
        """Store new match and return the stored data + newly created match ID."""
        ...

    def update_match(self, match_id: UUID, match: MatchModel) -> MatchModel | None:
        """Overwrite an existing record with the latest state."""
        ...

    def delete_match(self, match_id: UUID) -> MatchModel | None:
        """Remove a match's record."""
        ...

    def list_match_ids(self, include_finished: bool = True) -> list[UUID]:
        """IDs of the stored matches, most recently saved first. Finished matches can be left out (nothing to resume)."""
        ...
