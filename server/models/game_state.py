"""
Persisted state schema for a Ronda game.

The engine's whole state crosses a storage boundary between every pair of
moves, so it is stored as plain JSON. This module defines that JSON layout
as pydantic models. Loading goes through these models, which fill in
defaults for fields written by older versions and reject payloads that
cannot describe a real game.

Usage:
    snapshot = GameStateSnapshot.model_validate(json.loads(raw))
    game = Game.from_snapshot(snapshot)
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constants import PENALTY_RANKS, RANKS, STATE_VERSION, SUIT_ORDER


class CardState(BaseModel):
    """
    A card as stored.

    Attributes:
        rank: Card rank (1-7, 10, 11 or 12).
        suit: Card suit (coins, cups, swords, clubs).
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    rank: int
    suit: str

    @field_validator("rank")
    @classmethod
    def _known_rank(cls, value: int) -> int:
        if value not in RANKS:
            raise ValueError(f"unknown rank {value}")
        return value

    @field_validator("suit")
    @classmethod
    def _known_suit(cls, value: str) -> str:
        if value not in SUIT_ORDER:
            raise ValueError(f"unknown suit {value!r}")
        return value


class PlayerState(BaseModel):
    """
    A seat as stored.

    Attributes:
        seat: 0-based seat index.
        name: Display name.
        hand: Cards held, in display order.
        is_bot: Whether a bot plays this seat.
        has_finished: Whether the seat emptied its hand.
        difficulty: Bot tier tag (bots only).
        user_id: Host account id, negative for bots.
    """

    model_config = ConfigDict(extra="ignore")

    seat: int
    name: str = ""
    hand: list[CardState] = Field(default_factory=list)
    is_bot: bool = False
    has_finished: bool = False
    difficulty: Optional[str] = None
    user_id: Optional[int] = None


class PendingPenaltyState(BaseModel):
    """Stacked draw penalty as stored."""

    model_config = ConfigDict(extra="ignore")

    count: int = 0
    rank: Optional[int] = None

    @model_validator(mode="after")
    def _consistent(self) -> "PendingPenaltyState":
        if self.count <= 0:
            self.count = 0
            self.rank = None
        elif self.rank not in PENALTY_RANKS:
            raise ValueError(
                f"pending penalty of {self.count} needs rank 1 or 2, got {self.rank}"
            )
        return self


class GameStateSnapshot(BaseModel):
    """
    Full engine state as stored between moves.

    Every field has a default so that state written by an older version
    still loads; see Game.from_snapshot() for the derived fields that are
    recomputed on load.
    """

    model_config = ConfigDict(extra="ignore")

    version: int = STATE_VERSION
    game_id: Optional[str] = None
    num_players: int = 2
    cards_per_player: int = 5
    players: list[PlayerState] = Field(default_factory=list)
    draw_pile: list[CardState] = Field(default_factory=list)
    discard_pile: list[CardState] = Field(default_factory=list)
    turn_index: int = 0
    direction: int = 1
    active_suit: Optional[str] = None
    pending_penalty: PendingPenaltyState = Field(default_factory=PendingPenaltyState)
    is_over: bool = False
    winners: list[int] = Field(default_factory=list)
    loser: Optional[int] = None

    @field_validator("direction", mode="before")
    @classmethod
    def _direction(cls, value) -> int:
        try:
            value = int(value)
        except (TypeError, ValueError):
            return 1
        return value if value in (1, -1) else 1

    @field_validator("active_suit")
    @classmethod
    def _active_suit(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and value not in SUIT_ORDER:
            raise ValueError(f"unknown suit {value!r}")
        return value

    @field_validator("winners", mode="before")
    @classmethod
    def _winners(cls, value) -> list:
        if value is None:
            return []
        return value

    @field_validator("winners")
    @classmethod
    def _unique_winners(cls, value: list[int]) -> list[int]:
        return list(dict.fromkeys(value))

    @field_validator("pending_penalty", mode="before")
    @classmethod
    def _pending_penalty(cls, value):
        return {} if value is None else value

    @model_validator(mode="after")
    def _consistent_seats(self) -> "GameStateSnapshot":
        # Only dealt tables are stored, so every seat has a player entry
        if len(self.players) != self.num_players:
            raise ValueError(
                f"{len(self.players)} players stored for {self.num_players} seats"
            )
        for index, player in enumerate(self.players):
            if player.seat != index:
                raise ValueError(f"player at index {index} claims seat {player.seat}")
        if not 0 <= self.turn_index < self.num_players:
            raise ValueError(f"turn index {self.turn_index} is not a seat")
        seats = range(self.num_players)
        if any(seat not in seats for seat in self.winners):
            raise ValueError(f"winners {self.winners} include an unknown seat")
        if self.loser is not None and self.loser not in seats:
            raise ValueError(f"loser {self.loser} is not a seat")
        return self
