"""
Configuration read from environment variables (with defaults that give a standard 19x19 game).
"""

import logging
import os

from src.core.shared_types import KoRule

BOARD_SIZE = int(os.getenv("GO_BOARD_SIZE", "19"))

# Simple ko only compares with the position right before the opponent's last move
KO_RULE = KoRule(os.getenv("GO_KO_RULE", KoRule.SIMPLE.value).lower())

# Emoji a single player may send per turn
EMOJI_LIMIT = int(os.getenv("GO_EMOJI_LIMIT", "3"))

DATABASE_URL = os.getenv("GO_DATABASE_URL", "sqlite:///go_matches.db")

LOG_LEVEL = os.getenv("GO_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Set up the root logger once, for whichever front end drives the match."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
