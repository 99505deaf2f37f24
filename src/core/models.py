"""
Boundary layer data model(s).

These objects are what crosses layer boundaries: the domain converts a MatchState to/from a MatchModel,
the SYNC message carries one to the peer, and the repository persists one.
(Decouples the domain objects from the wire format and the DB schema)
"""

from dataclasses import dataclass, field
from typing import Optional

# Type aliases to make MatchModel easier to read
StoneColor = str
PointDict = dict[str, int]


@dataclass
class SnapshotModel:
    """Transport-safe version of a single history entry."""

    board: list[str]
    captured: dict[StoneColor, int]
    last_move: Optional[PointDict]
    player: StoneColor


@dataclass
class MatchModel:
    """Transport-safe representation of a match used between domain, Service, wire messages and DB."""

    board: list[str]
    current_player: StoneColor
    captured: dict[StoneColor, int]
    history: list[SnapshotModel] = field(default_factory=list)
    consecutive_passes: int = 0
    terminal: bool = False
    winner: Optional[str] = None
    last_move: Optional[PointDict] = None
