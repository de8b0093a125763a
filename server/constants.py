"""
Card and rule constants for Ronda.

This module is the single source of truth for the deck composition and the
special-card rules. Game.py and ai.py read everything from here.

Ronda Deck:
    - 40 cards: 4 suits (coins, cups, swords, clubs) x 10 ranks
    - Ranks: 1-7 and 10, 11, 12 (no 8s or 9s)

Special Cards:
    - 1: next player draws 3 (stackable, defend only with another 1)
    - 2: next player draws 2 (stackable, defend only with another 2)
    - 4: skips the next player
    - 7: wild, may change the suit in play
"""

from config import config


# =============================================================================
# Deck Composition
# =============================================================================

# Order matters: it is both the deck build order and the tie-break order
# when a bot picks a suit for a 7.
SUIT_ORDER: tuple[str, ...] = ("coins", "cups", "swords", "clubs")

RANKS: tuple[int, ...] = (1, 2, 3, 4, 5, 6, 7, 10, 11, 12)

DECK_SIZE = len(SUIT_ORDER) * len(RANKS)


# =============================================================================
# Special Cards
# =============================================================================

WILD_RANK = 7
SKIP_RANK = 4

# Rank -> cards added to the pending penalty
PENALTY_RANKS: dict[int, int] = {
    1: 3,
    2: 2,
}

SPECIAL_RANKS: frozenset[int] = frozenset({*PENALTY_RANKS, SKIP_RANK, WILD_RANK})

# Bots spend the cheapest special first: 4 < 2 < 1 < 7
SPECIAL_CARD_COST: dict[int, int] = {4: 1, 2: 2, 1: 3, 7: 4}

# Cards at or above this rank are "high" for the hard bot
HIGH_CARD_RANK = 10


# =============================================================================
# Table Limits
# =============================================================================

MIN_PLAYERS = 2
MAX_PLAYERS = 6
MIN_CARDS_PER_PLAYER = 3
MAX_CARDS_PER_PLAYER = 6

DEFAULT_CARDS_PER_PLAYER = config.game_defaults.cards_per_player
MAX_BOTS = min(config.MAX_BOTS, MAX_PLAYERS - 1)
ROOM_CODE_LENGTH = config.ROOM_CODE_LENGTH

# Bumped whenever the persisted state layout changes
STATE_VERSION = 1


# =============================================================================
# Helper Functions
# =============================================================================

def is_special_rank(rank: int) -> bool:
    """Check whether a rank has a special effect (1, 2, 4 or 7)."""
    return rank in SPECIAL_RANKS
