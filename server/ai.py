"""AI opponents for Ronda: decision policy and bot turn runner."""

import asyncio
import inspect
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from config import config
from constants import HIGH_CARD_RANK, PENALTY_RANKS, SPECIAL_CARD_COST, SUIT_ORDER, WILD_RANK
from game import Card, Game, IllegalMove, MoveResult, Player, Suit, parse_suit

logger = logging.getLogger(__name__)

# Create a dedicated logger for AI decisions
# Set AI_DEBUG=1 environment variable to enable detailed AI decision logging
AI_DEBUG = config.AI_DEBUG

ai_logger = logging.getLogger("ronda.ai")
if AI_DEBUG:
    ai_logger.setLevel(logging.DEBUG)
    if not ai_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [AI] %(message)s", datefmt="%H:%M:%S"
        ))
        ai_logger.addHandler(handler)


def ai_log(message: str):
    """Log AI decision info when AI_DEBUG is enabled."""
    if AI_DEBUG:
        ai_logger.debug(message)


# =============================================================================
# Difficulty Tiers
# =============================================================================


class BotDifficulty(str, Enum):
    """How hard a bot plays."""

    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"

    @classmethod
    def parse(cls, value: Union["BotDifficulty", str, None]) -> "BotDifficulty":
        """
        Read a difficulty tag, accepting the Spanish tags stored by older
        tables. Anything unknown plays as NORMAL.
        """
        if isinstance(value, cls):
            return value
        tag = str(value or "").strip().lower()
        tag = _DIFFICULTY_ALIASES.get(tag, tag)
        try:
            return cls(tag)
        except ValueError:
            return cls.NORMAL


_DIFFICULTY_ALIASES = {
    "facil": "easy",
    "fácil": "easy",
    "dificil": "hard",
    "difícil": "hard",
}


@dataclass
class BotProfile:
    """Timing personality of a difficulty tier."""
    difficulty: BotDifficulty
    # (min, max) seconds a bot "thinks" before acting
    thinking_time: tuple[float, float]

    def get_thinking_time(self, rng: Optional[random.Random] = None) -> float:
        rng = rng or random
        low, high = self.thinking_time
        return rng.uniform(low, high)

    def to_dict(self) -> dict:
        return {
            "difficulty": self.difficulty.value,
            "thinking_time": list(self.thinking_time),
        }


BOT_PROFILES = {
    BotDifficulty.EASY: BotProfile(BotDifficulty.EASY, (1.0, 3.0)),
    BotDifficulty.NORMAL: BotProfile(BotDifficulty.NORMAL, (0.8, 2.0)),
    BotDifficulty.HARD: BotProfile(BotDifficulty.HARD, (0.5, 1.5)),
}


def get_profile(difficulty: Union[BotDifficulty, str, None]) -> BotProfile:
    """Get the timing profile for a difficulty tag."""
    return BOT_PROFILES[BotDifficulty.parse(difficulty)]


def thinking_delay(player: Player) -> float:
    """Random human-like pause for a bot, based on its difficulty."""
    return get_profile(player.difficulty).get_thinking_time()


BOT_NAMES = [
    "RondaBot", "CardSharp", "DeckHand", "BotMarroqui",
    "SevenSeeker", "AceOfCoins", "Shuffler", "TableRobot",
    "ProBot", "RondaMachine", "ExpertBot", "AutoPlayer",
]


def random_bot_name(rng: Optional[random.Random] = None, taken: Optional[set[str]] = None) -> str:
    """Pick a bot name, avoiding names already at the table when possible."""
    rng = rng or random
    available = [n for n in BOT_NAMES if not taken or n not in taken]
    return rng.choice(available or BOT_NAMES)


# =============================================================================
# Decision Policy
# =============================================================================


@dataclass
class BotDecision:
    """A card to play, plus the suit to call when it is a 7."""
    card: Card
    chosen_suit: Optional[Suit] = None


def playable_cards(
    hand: list[Card],
    top_card: Optional[Card],
    effective_suit: Union[Suit, str, None],
    pending_rank: Optional[int] = None,
) -> list[Card]:
    """
    Cards from the hand that match the pile.

    Args:
        hand: Cards held.
        top_card: Top of the discard pile (None: everything is playable).
        effective_suit: Suit to match (the 7's chosen suit, else the top card's).
        pending_rank: Rank of a pending penalty; only that rank may be played.

    Returns:
        Playable cards in hand order.
    """
    if pending_rank is not None:
        return [c for c in hand if c.rank == pending_rank]

    if top_card is None:
        return list(hand)

    suit = parse_suit(effective_suit)
    return [
        c for c in hand
        if c.rank == WILD_RANK or c.rank == top_card.rank or c.suit == suit
    ]


class RondaAI:
    """AI decision-making for Ronda."""

    @staticmethod
    def decide(
        hand: list[Card],
        top_card: Optional[Card],
        effective_suit: Union[Suit, str, None],
        difficulty: Union[BotDifficulty, str, None] = BotDifficulty.NORMAL,
        rng: Optional[random.Random] = None,
        pending_rank: Optional[int] = None,
    ) -> Optional[BotDecision]:
        """
        Choose a card to play.

        Args:
            hand: The bot's cards.
            top_card: Top of the discard pile.
            effective_suit: Suit in play.
            difficulty: Strategy tier.
            rng: Random source (module random by default).
            pending_rank: Rank that defends a pending penalty, if any.

        Returns:
            The decision, or None when nothing is playable and the bot must draw.
        """
        rng = rng or random
        difficulty = BotDifficulty.parse(difficulty)
        playable = playable_cards(hand, top_card, effective_suit, pending_rank)

        if not playable:
            ai_log(f"  No playable card in {[str(c) for c in hand]}, drawing")
            return None

        if difficulty == BotDifficulty.EASY:
            card = RondaAI._choose_easy(playable, rng)
        elif difficulty == BotDifficulty.HARD:
            card = RondaAI._choose_hard(playable, hand, rng)
        else:
            card = RondaAI._choose_normal(playable, rng)

        chosen_suit = None
        if card.rank == WILD_RANK:
            chosen_suit = RondaAI.choose_wild_suit(hand)

        ai_log(
            f"  [{difficulty.value}] playable={[str(c) for c in playable]} -> {card}"
            + (f", calling {chosen_suit.value}" if chosen_suit else "")
        )
        return BotDecision(card=card, chosen_suit=chosen_suit)

    @staticmethod
    def _choose_easy(playable: list[Card], rng) -> Card:
        """Any playable card, uniformly."""
        return rng.choice(playable)

    @staticmethod
    def _choose_normal(playable: list[Card], rng) -> Card:
        """Save special cards: play a plain card if possible, else the cheapest special."""
        plain = [c for c in playable if not c.is_special]
        if plain:
            return rng.choice(plain)

        # Sort is stable, so equal-cost cards keep hand order
        return sorted(playable, key=lambda c: SPECIAL_CARD_COST[c.rank])[0]

    @staticmethod
    def _choose_hard(playable: list[Card], hand: list[Card], rng) -> Card:
        """
        Close to going out, attack with 1s and 2s; with a big hand, shed
        high cards first. Otherwise play like NORMAL.
        """
        if len(hand) <= 3:
            attackers = [c for c in playable if c.rank in PENALTY_RANKS]
            if attackers:
                return attackers[0]

        if len(hand) > 5:
            high_cards = [c for c in playable if c.rank >= HIGH_CARD_RANK]
            if high_cards:
                return rng.choice(high_cards)

        return RondaAI._choose_normal(playable, rng)

    @staticmethod
    def choose_wild_suit(hand: list[Card]) -> Suit:
        """
        Suit to call with a 7: the one the hand holds most of.

        Other 7s are not counted. Ties go to the first suit in deck order
        (coins, cups, swords, clubs).
        """
        counts = {suit: 0 for suit in SUIT_ORDER}
        for card in hand:
            if card.rank != WILD_RANK:
                counts[card.suit.value] += 1

        best = SUIT_ORDER[0]
        for suit in SUIT_ORDER:
            if counts[suit] > counts[best]:
                best = suit
        return Suit(best)


# =============================================================================
# Bot Turn Runner
# =============================================================================


@dataclass
class BotTurn:
    """
    What a bot did on one turn.

    Attributes:
        seat: Bot seat.
        action: "play" or "draw".
        card: Card played.
        chosen_suit: Suit called with a 7.
        drawn: Cards drawn.
        result: Engine result of the play.
        fallback: True when the bot's chosen card was rejected and it drew instead.
    """
    seat: int
    action: str
    card: Optional[Card] = None
    chosen_suit: Optional[Suit] = None
    drawn: list[Card] = field(default_factory=list)
    result: Optional[MoveResult] = None
    fallback: bool = False

    def to_dict(self) -> dict:
        return {
            "seat": self.seat,
            "action": self.action,
            "card": self.card.to_dict() if self.card else None,
            "chosen_suit": self.chosen_suit.value if self.chosen_suit else None,
            "drawn": len(self.drawn),
            "result": self.result.to_dict() if self.result else None,
            "fallback": self.fallback,
        }


AfterTurnHook = Callable[[BotTurn], Union[Awaitable[Any], Any]]
BotDelay = Union[float, Callable[[Player], float], None]


def is_bot_turn(game: Game) -> bool:
    """Whether the seat to move is a bot (and the game is still on)."""
    if game.is_over:
        return False
    current = game.current_player()
    return bool(current and current.is_bot)


def play_bot_turn(game: Game, seat: int, rng: Optional[random.Random] = None) -> BotTurn:
    """
    Play one complete turn for a bot seat.

    The bot goes through the same public moves as a human. If the engine
    rejects its card, it draws instead so the game can never stall on a
    bad decision.

    Args:
        game: The game.
        seat: The bot's seat (must be the seat to move).
        rng: Random source for the decision.

    Returns:
        BotTurn describing the move.

    Raises:
        IllegalMove: If the seat cannot even draw (not its turn, game over).
    """
    player = game.players[seat]
    penalty = game.pending_penalty
    decision = RondaAI.decide(
        player.hand,
        game.top_card(),
        game.effective_suit,
        player.difficulty or config.game_defaults.bot_difficulty,
        rng=rng,
        pending_rank=penalty.rank if penalty.active else None,
    )

    if decision:
        try:
            result = game.play_card(
                seat, decision.card.rank, decision.card.suit, decision.chosen_suit
            )
        except IllegalMove as e:
            logger.warning(
                f"Bot {player.name} chose an illegal card {decision.card} ({e.reason}), drawing instead"
            )
            drawn = game.draw_card(seat)
            return BotTurn(seat=seat, action="draw", drawn=drawn, fallback=True)
        return BotTurn(
            seat=seat,
            action="play",
            card=decision.card,
            chosen_suit=decision.chosen_suit,
            result=result,
        )

    drawn = game.draw_card(seat)
    return BotTurn(seat=seat, action="draw", drawn=drawn)


async def process_bot_turns(
    game: Game,
    after_turn: Optional[AfterTurnHook] = None,
    delay: BotDelay = None,
    rng: Optional[random.Random] = None,
) -> list[BotTurn]:
    """
    Play bot turns until a human is to move or the game ends.

    Each turn is applied atomically; the only pause is the sleep before a
    turn, so cancelling the task never leaves a turn half done.

    Args:
        game: The game.
        after_turn: Called (and awaited, if async) after every bot turn, e.g.
            to persist the state.
        delay: Seconds to wait before each bot turn, or a function of the
            bot Player returning seconds (see thinking_delay). Defaults to
            config.BOT_LATENCY_MS.
        rng: Random source for the decisions.

    Returns:
        The turns played, in order.
    """
    if delay is None:
        delay = config.bot_latency

    turns = []
    while is_bot_turn(game):
        seconds = delay(game.current_player()) if callable(delay) else delay
        if seconds > 0:
            await asyncio.sleep(seconds)
            # The host may have touched the game while we slept
            if not is_bot_turn(game):
                break

        turn = play_bot_turn(game, game.turn_index, rng=rng)
        turns.append(turn)
        ai_log(f"Seat {turn.seat} {turn.action}" + (f" {turn.card}" if turn.card else ""))

        if after_turn is not None:
            outcome = after_turn(turn)
            if inspect.isawaitable(outcome):
                await outcome

    return turns
