"""Models package for the Ronda game server."""

from .game_state import CardState, GameStateSnapshot, PendingPenaltyState, PlayerState

__all__ = [
    "CardState",
    "GameStateSnapshot",
    "PendingPenaltyState",
    "PlayerState",
]
