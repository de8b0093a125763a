"""
Game logic for Ronda.

This module implements the core game mechanics for Ronda, a shedding card
game played with a 40-card Spanish deck: card/deck management, player
state, play validation, special-card effects and game flow.

Ronda Rules Summary:
    - Each player is dealt 3-6 cards; one card starts the discard pile
    - On your turn: play a card matching the top card's rank or suit, or draw
    - 1 and 2 make the next player draw 3 or 2 cards; the victim may defend by
      playing the same rank, which stacks the penalty onto the next player
    - 4 skips the next player
    - 7 is wild and may change the suit in play
    - Players who empty their hand win (in order) and stay as spectators;
      the last player still holding cards loses

The whole engine state serializes to plain data (to_dict / from_dict) so the
host can store it between moves.
"""

import logging
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from constants import (
    DEFAULT_CARDS_PER_PLAYER,
    MAX_CARDS_PER_PLAYER,
    MAX_PLAYERS,
    MIN_CARDS_PER_PLAYER,
    MIN_PLAYERS,
    PENALTY_RANKS,
    RANKS,
    SKIP_RANK,
    SUIT_ORDER,
    WILD_RANK,
    is_special_rank,
)
from models.game_state import (
    CardState,
    GameStateSnapshot,
    PendingPenaltyState,
    PlayerState,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================


class RondaError(Exception):
    """Base exception for Ronda game errors."""


class InvalidConfiguration(RondaError):
    """Raised when a game is created with out-of-range player or card counts."""


class IllegalMove(RondaError):
    """
    Raised when a move breaks the rules.

    The engine state is left untouched; the caller should re-prompt.
    """

    def __init__(self, reason: str, seat: Optional[int] = None):
        self.reason = reason
        self.seat = seat
        super().__init__(reason)


class InvalidState(RondaError):
    """Raised when a stored game state cannot be loaded."""


# Rejection reasons returned by validate_move() and carried by IllegalMove
REASON_GAME_OVER = "The game is already over"
REASON_INVALID_SEAT = "Invalid seat"
REASON_FINISHED = "You have already finished your cards. You are spectating."
REASON_CARD_NOT_IN_HAND = "You do not have that card"
REASON_NOT_YOUR_TURN = "It is not your turn"
REASON_NO_MATCH = "The card does not match the pile"


def penalty_reason(rank: int, count: int) -> str:
    """Rejection reason while a penalty is pending."""
    return f"You must defend with a {rank} or draw {count} cards"


class Suit(str, Enum):
    """Card suits of the Spanish deck."""

    COINS = "coins"
    CUPS = "cups"
    SWORDS = "swords"
    CLUBS = "clubs"


class Effect(str, Enum):
    """Special effect triggered by a played card."""

    STACK_DRAW = "stack_draw"
    SKIP = "skip"
    CHANGE_SUIT = "change_suit"


def parse_suit(value: Union[Suit, str, None]) -> Optional[Suit]:
    """
    Coerce a suit name into a Suit.

    Returns:
        The Suit, or None if value is empty or not a known suit.
    """
    if value is None or value == "":
        return None
    try:
        return Suit(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class Card:
    """
    A Spanish-deck playing card.

    Attributes:
        rank: 1-7, 10, 11 or 12.
        suit: The card's suit.
    """

    rank: int
    suit: Suit

    @property
    def is_special(self) -> bool:
        """Whether the card has an effect (1, 2, 4 or 7)."""
        return is_special_rank(self.rank)

    def matches(self, rank: int, suit: Union[Suit, str]) -> bool:
        """Check if this card is the given rank and suit."""
        return self.rank == rank and self.suit == parse_suit(suit)

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {
            "rank": self.rank,
            "suit": self.suit.value,
            "is_special": self.is_special,
        }

    def to_state(self) -> CardState:
        return CardState(rank=self.rank, suit=self.suit.value)

    @classmethod
    def from_state(cls, state: CardState) -> "Card":
        return cls(state.rank, Suit(state.suit))

    def __str__(self) -> str:
        return f"{self.rank} of {self.suit.value}"


class Deck:
    """
    Builds, shuffles and recycles the 40-card Ronda deck.

    The deck owns its own random source. Passing a seed makes every shuffle
    reproducible, which tests and simulations rely on.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        """
        Initialize the deck's random source.

        Args:
            seed: Optional random seed for deterministic shuffles.
        """
        self.seed = seed
        self.rng = random.Random(seed)

    @staticmethod
    def build() -> list[Card]:
        """Return all 40 cards in suit-then-rank order (unshuffled)."""
        return [Card(rank, Suit(suit)) for suit in SUIT_ORDER for rank in RANKS]

    def shuffle(self, cards: list[Card]) -> None:
        """
        Randomize the order of cards in place (Fisher-Yates).

        Args:
            cards: Cards to shuffle.
        """
        self.rng.shuffle(cards)

    def fresh(self) -> list[Card]:
        """Build and shuffle a complete deck."""
        cards = self.build()
        self.shuffle(cards)
        return cards

    def recycle(self, discard_pile: list[Card]) -> list[Card]:
        """
        Turn the discard pile back into a draw pile.

        Keeps the top discard card as the only card of the discard pile and
        shuffles the rest. Nothing happens with 0 or 1 discarded cards.

        Args:
            discard_pile: The discard pile, modified in place.

        Returns:
            The new draw pile (empty if nothing could be recycled).
        """
        if len(discard_pile) <= 1:
            return []

        top_card = discard_pile.pop()
        cards = list(discard_pile)
        discard_pile[:] = [top_card]
        self.shuffle(cards)
        return cards


@dataclass
class Player:
    """
    A seat at a Ronda table.

    Attributes:
        seat: 0-based seat index, fixed for the whole game.
        name: Display name.
        hand: Cards held (order only matters for display).
        is_bot: Whether a bot plays this seat.
        has_finished: Set once, when the hand empties after a play.
        difficulty: Bot tier tag ("easy", "normal", "hard"), bots only.
        user_id: Host account id (negative for bots).
    """

    seat: int
    name: str = ""
    hand: list[Card] = field(default_factory=list)
    is_bot: bool = False
    has_finished: bool = False
    difficulty: Optional[str] = None
    user_id: Optional[int] = None

    @property
    def card_count(self) -> int:
        return len(self.hand)

    def find_card(self, rank: int, suit: Union[Suit, str]) -> Optional[int]:
        """Return the hand index of the given card, or None."""
        for i, card in enumerate(self.hand):
            if card.matches(rank, suit):
                return i
        return None

    def has_card(self, rank: int, suit: Union[Suit, str]) -> bool:
        return self.find_card(rank, suit) is not None

    def to_dict(self) -> dict:
        """Convert player to dictionary (including the hand)."""
        return {
            "seat": self.seat,
            "name": self.name,
            "user_id": self.user_id,
            "is_bot": self.is_bot,
            "difficulty": self.difficulty,
            "card_count": self.card_count,
            "has_finished": self.has_finished,
            "hand": [card.to_dict() for card in self.hand],
        }


@dataclass
class PendingPenalty:
    """
    A stacked forced-draw in flight.

    Attributes:
        count: Cards the targeted seat must draw.
        rank: Rank that defends against it (1 or 2), None when inactive.
    """

    count: int = 0
    rank: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.count > 0

    def add(self, rank: int) -> None:
        """Start or extend the penalty with a played 1 or 2."""
        if self.count == 0:
            self.rank = rank
        self.count += PENALTY_RANKS[rank]

    def clear(self) -> None:
        self.count = 0
        self.rank = None


@dataclass
class MoveValidation:
    """Outcome of validate_move()."""

    legal: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.legal

    def to_dict(self) -> dict:
        return {"legal": self.legal, "reason": self.reason}


@dataclass
class MoveResult:
    """
    Outcome of an accepted play.

    Attributes:
        game_over: Whether this play ended the game.
        winners: Seats that emptied their hands, in order.
        loser: Last seat holding cards, once the game is over.
        player_finished: Whether this play emptied the player's hand.
        finished_seat: The seat that just finished, if any.
        effect: Special effect applied, if any.
        affected_player: Seat facing the penalty, or the skipped seat.
        new_suit: Suit chosen with a 7.
    """

    game_over: bool = False
    winners: list[int] = field(default_factory=list)
    loser: Optional[int] = None
    player_finished: bool = False
    finished_seat: Optional[int] = None
    effect: Optional[Effect] = None
    affected_player: Optional[int] = None
    new_suit: Optional[Suit] = None

    def to_dict(self) -> dict:
        return {
            "game_over": self.game_over,
            "winners": list(self.winners),
            "loser": self.loser,
            "player_finished": self.player_finished,
            "finished_seat": self.finished_seat,
            "effect": self.effect.value if self.effect else None,
            "affected_player": self.affected_player,
            "new_suit": self.new_suit.value if self.new_suit else None,
        }


@dataclass
class Game:
    """
    Main game state and rule engine for Ronda.

    Manages one game from the deal to the last player holding cards:
        - Dealing and the opening discard
        - Move validation and special-card effects
        - Stacked draw penalties
        - Turn order over the seats still playing
        - Multi-winner / last-place-loses ending
        - Recycling the discard pile when the draw pile runs out

    Attributes:
        num_players: Seats at the table (2-6).
        cards_per_player: Cards dealt to each seat (3-6).
        players: Seats in turn order.
        draw_pile: Face-down pile; cards are drawn from the end.
        discard_pile: Face-up pile; the last card is the top card.
        turn_index: Seat whose turn it is.
        direction: +1 clockwise, -1 counter-clockwise.
        active_suit: Suit chosen with a 7, overriding the top card's suit.
        pending_penalty: Stacked draw penalty awaiting defense or a draw.
        is_over: Whether the game has ended.
        winners: Seats that emptied their hands, in order.
        loser: The last seat holding cards.
        game_id: Unique identifier for the host's storage.
    """

    num_players: int = MIN_PLAYERS
    cards_per_player: int = DEFAULT_CARDS_PER_PLAYER
    players: list[Player] = field(default_factory=list)
    draw_pile: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    turn_index: int = 0
    direction: int = 1
    active_suit: Optional[Suit] = None
    pending_penalty: PendingPenalty = field(default_factory=PendingPenalty)
    is_over: bool = False
    winners: list[int] = field(default_factory=list)
    loser: Optional[int] = None
    game_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    seed: Optional[int] = field(default=None, repr=False, compare=False)
    deck: Deck = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not MIN_PLAYERS <= self.num_players <= MAX_PLAYERS:
            raise InvalidConfiguration(
                f"Number of players must be between {MIN_PLAYERS} and {MAX_PLAYERS}"
            )
        if not MIN_CARDS_PER_PLAYER <= self.cards_per_player <= MAX_CARDS_PER_PLAYER:
            raise InvalidConfiguration(
                f"Cards per player must be between {MIN_CARDS_PER_PLAYER} "
                f"and {MAX_CARDS_PER_PLAYER}"
            )
        self.deck = Deck(self.seed)

    @classmethod
    def create(
        cls,
        num_players: int,
        cards_per_player: int = DEFAULT_CARDS_PER_PLAYER,
        seed: Optional[int] = None,
    ) -> "Game":
        """Create a game and deal it."""
        game = cls(num_players=num_players, cards_per_player=cards_per_player, seed=seed)
        game.start()
        return game

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(
        self,
        name: str,
        is_bot: bool = False,
        difficulty: Optional[str] = None,
        user_id: Optional[int] = None,
    ) -> Optional[Player]:
        """
        Register the next seat before the deal.

        Seats not registered by the time start() runs get default names.

        Returns:
            The new Player, or None if every seat is taken.
        """
        if len(self.players) >= self.num_players:
            return None
        player = Player(
            seat=len(self.players),
            name=name,
            is_bot=is_bot,
            difficulty=difficulty,
            user_id=user_id,
        )
        self.players.append(player)
        return player

    def get_player(self, seat: int) -> Optional[Player]:
        """Find a player by seat, or None if the seat does not exist."""
        if isinstance(seat, int) and 0 <= seat < len(self.players):
            return self.players[seat]
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        return self.get_player(self.turn_index)

    def get_player_hand(self, seat: int) -> list[Card]:
        """
        Get a copy of a seat's hand.

        Raises:
            IllegalMove: If the seat does not exist.
        """
        player = self.get_player(seat)
        if player is None:
            raise IllegalMove(REASON_INVALID_SEAT, seat)
        return list(player.hand)

    # -------------------------------------------------------------------------
    # Game Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> dict:
        """
        Shuffle a fresh deck and deal.

        Deals one card at a time round-robin (seat 0 first) until every seat
        holds cards_per_player cards, then turns one card face up to start
        the discard pile.

        Returns:
            The state snapshot after the deal.
        """
        for seat in range(len(self.players), self.num_players):
            self.players.append(Player(seat=seat, name=f"Player {seat + 1}"))

        for player in self.players:
            player.hand = []
            player.has_finished = False

        self.draw_pile = self.deck.fresh()
        self.discard_pile = []

        for _ in range(self.cards_per_player):
            for player in self.players:
                player.hand.append(self.draw_pile.pop())

        self.discard_pile.append(self.draw_pile.pop())

        self.turn_index = 0
        self.direction = 1
        self.active_suit = None
        self.pending_penalty = PendingPenalty()
        self.is_over = False
        self.winners = []
        self.loser = None

        logger.info(
            f"Game {self.game_id[:8]} started: {self.num_players} players, "
            f"{self.cards_per_player} cards each, opening card {self.top_card()}"
        )
        return self.get_state()

    # -------------------------------------------------------------------------
    # Move Validation
    # -------------------------------------------------------------------------

    def validate_move(self, seat: int, rank: int, suit: Union[Suit, str]) -> MoveValidation:
        """
        Check whether a seat may play a card, without changing anything.

        Checks run in a fixed order so the reason reported is always the
        first rule broken.

        Args:
            seat: The seat playing.
            rank: Rank of the card to play.
            suit: Suit of the card to play.

        Returns:
            MoveValidation with legal=False and a reason when illegal.
        """
        if self.is_over:
            return MoveValidation(False, REASON_GAME_OVER)

        player = self.get_player(seat)
        if player is None:
            return MoveValidation(False, REASON_INVALID_SEAT)

        if self._is_finished(seat):
            return MoveValidation(False, REASON_FINISHED)

        if not player.has_card(rank, suit):
            return MoveValidation(False, REASON_CARD_NOT_IN_HAND)

        if self.turn_index != seat:
            return MoveValidation(False, REASON_NOT_YOUR_TURN)

        # A pending penalty can only be answered in kind; the pile is ignored
        if self.pending_penalty.active:
            if rank == self.pending_penalty.rank:
                return MoveValidation(True)
            return MoveValidation(
                False,
                penalty_reason(self.pending_penalty.rank, self.pending_penalty.count),
            )

        if rank == WILD_RANK:
            return MoveValidation(True)

        top_card = self.top_card()
        if top_card and (rank == top_card.rank or parse_suit(suit) == self.effective_suit):
            return MoveValidation(True)

        return MoveValidation(False, REASON_NO_MATCH)

    def can_play(self, seat: int) -> bool:
        """
        Whether the seat holds any card that matches the pile.

        A UI hint only: it ignores pending penalties.
        """
        if self.is_over or self.turn_index != seat:
            return False
        player = self.get_player(seat)
        if player is None or self._is_finished(seat):
            return False

        top_card = self.top_card()
        effective_suit = self.effective_suit
        for card in player.hand:
            if card.rank == WILD_RANK:
                return True
            if top_card and (card.rank == top_card.rank or card.suit == effective_suit):
                return True
        return False

    # -------------------------------------------------------------------------
    # Turn Actions
    # -------------------------------------------------------------------------

    def play_card(
        self,
        seat: int,
        rank: int,
        suit: Union[Suit, str],
        chosen_suit: Union[Suit, str, None] = None,
    ) -> MoveResult:
        """
        Play a card from a seat's hand onto the discard pile.

        Args:
            seat: The seat playing.
            rank: Rank of the card.
            suit: Suit of the card.
            chosen_suit: New suit in play, only used when playing a 7.

        Returns:
            MoveResult describing the effect and any ending.

        Raises:
            IllegalMove: If the move is invalid. Nothing is changed.
        """
        validation = self.validate_move(seat, rank, suit)
        if not validation.legal:
            raise IllegalMove(validation.reason, seat)

        new_suit = None
        if rank == WILD_RANK and chosen_suit not in (None, ""):
            new_suit = parse_suit(chosen_suit)
            if new_suit is None:
                raise IllegalMove(f"Unknown suit: {chosen_suit}", seat)

        player = self.players[seat]
        card = player.hand.pop(player.find_card(rank, suit))
        self.discard_pile.append(card)

        # A suit chosen with a 7 lasts until the next non-7 card
        if card.rank != WILD_RANK:
            self.active_suit = None

        result = self._apply_card_effect(card, new_suit)

        result.player_finished = self._mark_finished(seat)
        if result.player_finished:
            result.finished_seat = seat
        result.game_over = self._maybe_end_game()
        result.winners = list(self.winners)
        result.loser = self.loser

        logger.debug(
            f"Seat {seat} played {card}"
            + (f" ({result.effect.value})" if result.effect else "")
            + f", next seat {self.turn_index}"
        )
        return result

    def draw_card(self, seat: int) -> list[Card]:
        """
        Draw for the turn: the whole pending penalty, or one card.

        Recycles the discard pile whenever the draw pile runs out. If even
        that cannot supply enough cards, fewer cards are drawn.

        Args:
            seat: The seat drawing.

        Returns:
            The cards drawn, in draw order.

        Raises:
            IllegalMove: If the game is over or it is not the seat's turn.
        """
        if self.is_over:
            raise IllegalMove(REASON_GAME_OVER, seat)
        player = self.get_player(seat)
        if player is None:
            raise IllegalMove(REASON_INVALID_SEAT, seat)
        if self._is_finished(seat):
            raise IllegalMove(REASON_FINISHED, seat)
        if self.turn_index != seat:
            raise IllegalMove(REASON_NOT_YOUR_TURN, seat)

        count = self.pending_penalty.count if self.pending_penalty.active else 1
        drawn = self._draw_into_hand(player, count)
        if len(drawn) < count:
            logger.warning(
                f"Deck exhausted: seat {seat} drew {len(drawn)} of {count} cards"
            )

        self.pending_penalty.clear()
        self._advance_turn()

        logger.debug(f"Seat {seat} drew {len(drawn)} card(s), next seat {self.turn_index}")
        return drawn

    # -------------------------------------------------------------------------
    # Effects & Turn Flow (Internal)
    # -------------------------------------------------------------------------

    def _apply_card_effect(self, card: Card, new_suit: Optional[Suit]) -> MoveResult:
        """
        Resolve the played card's effect, including all its turn advances.

        Args:
            card: The card just played.
            new_suit: Suit chosen for a 7, if any.

        Returns:
            MoveResult with the effect fields filled in.
        """
        result = MoveResult()

        if card.rank in PENALTY_RANKS:
            self.pending_penalty.add(card.rank)
            result.effect = Effect.STACK_DRAW
            result.affected_player = self.get_next_seat()
            self._advance_turn()
        elif card.rank == SKIP_RANK:
            self._advance_turn()
            result.effect = Effect.SKIP
            result.affected_player = self.turn_index
            self._advance_turn()
        elif card.rank == WILD_RANK:
            if new_suit is not None:
                self.active_suit = new_suit
                result.effect = Effect.CHANGE_SUIT
                result.new_suit = new_suit
            self._advance_turn()
        else:
            self._advance_turn()

        return result

    def _draw_into_hand(self, player: Player, count: int) -> list[Card]:
        drawn = []
        for _ in range(count):
            if not self.draw_pile:
                self.draw_pile = self.deck.recycle(self.discard_pile)
                if self.draw_pile:
                    logger.debug(f"Recycled {len(self.draw_pile)} cards into the draw pile")
            if not self.draw_pile:
                break
            card = self.draw_pile.pop()
            player.hand.append(card)
            drawn.append(card)
        return drawn

    def _is_finished(self, seat: int) -> bool:
        player = self.players[seat]
        return player.has_finished or not player.hand

    def _active_seats(self) -> list[int]:
        return [p.seat for p in self.players if not p.has_finished]

    def get_next_seat(self) -> int:
        """
        Seat that plays after the current one.

        Walks in the current direction, wrapping around and skipping seats
        that have finished. Returns the current seat unchanged when no other
        seat can play.
        """
        if self.is_over or len(self._active_seats()) <= 1:
            return self.turn_index

        seat = self.turn_index
        for _ in range(self.num_players):
            seat = (seat + self.direction) % self.num_players
            if not self._is_finished(seat):
                return seat
        return self.turn_index

    def _advance_turn(self) -> None:
        self.turn_index = self.get_next_seat()

    def _mark_finished(self, seat: int) -> bool:
        """Mark a seat with an empty hand as finished. True the first time only."""
        player = self.players[seat]
        if player.has_finished or player.hand:
            return False

        player.has_finished = True
        if seat not in self.winners:
            self.winners.append(seat)
        logger.info(f"Seat {seat} ({player.name}) finished in place {len(self.winners)}")
        return True

    def _maybe_end_game(self) -> bool:
        """End the game once a single seat is left holding cards."""
        active = self._active_seats()
        if len(active) == 1 and self.winners:
            if self.is_over and self.loser == active[0]:
                return False
            self.is_over = True
            self.loser = active[0]
            logger.info(
                f"Game {self.game_id[:8]} over: winners {self.winners}, loser {self.loser}"
            )
            return True
        return False

    # -------------------------------------------------------------------------
    # State Queries
    # -------------------------------------------------------------------------

    def top_card(self) -> Optional[Card]:
        """Get the top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    @property
    def effective_suit(self) -> Optional[Suit]:
        """Suit plays must match: the chosen suit after a 7, else the top card's."""
        if self.active_suit is not None:
            return self.active_suit
        top_card = self.top_card()
        return top_card.suit if top_card else None

    def total_cards(self) -> int:
        """Cards across both piles and every hand (always 40 once dealt)."""
        return (
            len(self.draw_pile)
            + len(self.discard_pile)
            + sum(player.card_count for player in self.players)
        )

    def get_state(self) -> dict:
        """
        Get a snapshot of the whole game.

        Every hand is included; hiding other players' cards is up to the
        caller (see Room.get_state()).

        Returns:
            Dict suitable for JSON serialization.
        """
        top_card = self.top_card()
        effective_suit = self.effective_suit
        return {
            "game_id": self.game_id,
            "current_player": self.turn_index,
            "players": [player.to_dict() for player in self.players],
            "top_card": top_card.to_dict() if top_card else None,
            "deck_count": len(self.draw_pile),
            "discard_count": len(self.discard_pile),
            "direction": self.direction,
            "is_over": self.is_over,
            "winners": list(self.winners),
            "loser": self.loser,
            "active_suit": self.active_suit.value if self.active_suit else None,
            "effective_suit": effective_suit.value if effective_suit else None,
            "pending_draw": {
                "count": self.pending_penalty.count,
                "rank": self.pending_penalty.rank,
            },
        }

    def summary(self) -> str:
        """Human-readable description of the table, for logs and the CLI."""
        current = self.current_player()
        top_card = self.top_card()
        lines = [
            "=== GAME STATE ===",
            f"Players: {self.num_players}",
            f"Current turn: {current.name if current else '-'}",
            f"Direction: {'clockwise' if self.direction == 1 else 'counter-clockwise'}",
            f"Top card: {top_card if top_card else 'none'}",
        ]
        if self.active_suit:
            lines.append(f"Suit in play: {self.active_suit.value}")
        if self.pending_penalty.active:
            lines.append(
                f"Pending draw: {self.pending_penalty.count} "
                f"(defend with a {self.pending_penalty.rank})"
            )
        lines += [
            f"Draw pile: {len(self.draw_pile)} cards",
            f"Discard pile: {len(self.discard_pile)} cards",
            "",
            "--- PLAYERS ---",
        ]
        for player in self.players:
            status = " (finished)" if player.has_finished else ""
            lines.append(f"{player.name}: {player.card_count} cards{status}")
        lines.append("==================")
        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> GameStateSnapshot:
        """Build the storage model of the full state. The game must be dealt."""
        return GameStateSnapshot(
            game_id=self.game_id,
            num_players=self.num_players,
            cards_per_player=self.cards_per_player,
            players=[
                PlayerState(
                    seat=p.seat,
                    name=p.name,
                    hand=[card.to_state() for card in p.hand],
                    is_bot=p.is_bot,
                    has_finished=p.has_finished,
                    difficulty=p.difficulty,
                    user_id=p.user_id,
                )
                for p in self.players
            ],
            draw_pile=[card.to_state() for card in self.draw_pile],
            discard_pile=[card.to_state() for card in self.discard_pile],
            turn_index=self.turn_index,
            direction=self.direction,
            active_suit=self.active_suit.value if self.active_suit else None,
            pending_penalty=PendingPenaltyState(
                count=self.pending_penalty.count,
                rank=self.pending_penalty.rank,
            ),
            is_over=self.is_over,
            winners=list(self.winners),
            loser=self.loser,
        )

    @classmethod
    def from_snapshot(cls, snapshot: GameStateSnapshot, seed: Optional[int] = None) -> "Game":
        """
        Rebuild a game from its storage model.

        Derived fields are recomputed so state written by older versions
        stays consistent: any seat with an empty hand is marked finished and
        added to the winners, the ending is re-checked, and a turn left on a
        finished seat moves on to the next active one.

        Raises:
            InvalidConfiguration: If the stored counts are out of range.
        """
        game = cls(
            num_players=snapshot.num_players,
            cards_per_player=snapshot.cards_per_player,
            seed=seed,
        )
        if snapshot.game_id:
            game.game_id = snapshot.game_id
        game.players = [
            Player(
                seat=p.seat,
                name=p.name,
                hand=[Card.from_state(c) for c in p.hand],
                is_bot=p.is_bot,
                has_finished=p.has_finished,
                difficulty=p.difficulty,
                user_id=p.user_id,
            )
            for p in snapshot.players
        ]
        game.draw_pile = [Card.from_state(c) for c in snapshot.draw_pile]
        game.discard_pile = [Card.from_state(c) for c in snapshot.discard_pile]
        game.turn_index = snapshot.turn_index
        game.direction = snapshot.direction
        game.active_suit = parse_suit(snapshot.active_suit)
        game.pending_penalty = PendingPenalty(
            count=snapshot.pending_penalty.count,
            rank=snapshot.pending_penalty.rank,
        )
        game.is_over = snapshot.is_over
        game.winners = list(snapshot.winners)
        game.loser = snapshot.loser

        for player in game.players:
            if not player.hand:
                player.has_finished = True
                if player.seat not in game.winners:
                    game.winners.append(player.seat)

        game._maybe_end_game()
        if not game.is_over and game._is_finished(game.turn_index):
            game._advance_turn()
        return game

    def to_dict(self) -> dict:
        """Serialize the full state to plain data for storage."""
        return self.to_snapshot().model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict, seed: Optional[int] = None) -> "Game":
        """
        Restore a game from to_dict() output.

        Raises:
            InvalidState: If the data does not describe a valid game.
            InvalidConfiguration: If the stored counts are out of range.
        """
        try:
            snapshot = GameStateSnapshot.model_validate(data)
        except ValidationError as e:
            raise InvalidState(str(e)) from e
        return cls.from_snapshot(snapshot, seed=seed)

    def to_json(self) -> str:
        return self.to_snapshot().model_dump_json()

    @classmethod
    def from_json(cls, raw: Union[str, bytes], seed: Optional[int] = None) -> "Game":
        try:
            snapshot = GameStateSnapshot.model_validate_json(raw)
        except ValidationError as e:
            raise InvalidState(str(e)) from e
        return cls.from_snapshot(snapshot, seed=seed)
