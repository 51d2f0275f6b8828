"""
Game sessions: the registry that owns them and the coordinator that plays them.
"""

from cardtable.game.coordinator import (
    DrawResult,
    GameResult,
    PlayerScore,
    PlayerSummary,
    StandResult,
    TurnCoordinator,
    compute_results,
)
from cardtable.game.registry import SessionRegistry
from cardtable.game.session import PlayerState, Session, SessionStatus

__all__ = [
    "Session",
    "SessionStatus",
    "PlayerState",
    "SessionRegistry",
    "TurnCoordinator",
    "DrawResult",
    "StandResult",
    "PlayerScore",
    "PlayerSummary",
    "GameResult",
    "compute_results",
]
