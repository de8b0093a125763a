"""
Vs-bot tables for Ronda.

This module wraps a Game with the host-side bookkeeping of a table where one
human plays against bots: seating, serialized access to the game, running
bot turns, per-player views of the state and storage round-trips.

A Room contains:
    - A unique 4-letter code
    - A Game instance with the actual game state
    - The human's seat (bots fill every other seat)
    - An asyncio.Lock so only one mutation runs at a time
"""

import asyncio
import random
import string
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from ai import (
    AfterTurnHook,
    BotDelay,
    BotDifficulty,
    BotTurn,
    is_bot_turn,
    process_bot_turns,
    random_bot_name,
    thinking_delay,
)
from config import config
from constants import DEFAULT_CARDS_PER_PLAYER, MAX_BOTS, ROOM_CODE_LENGTH
from game import Card, Game, InvalidConfiguration, MoveResult, Player
from logging_config import game_id_var, get_logger, room_code_var

logger = get_logger(__name__)


@dataclass
class Room:
    """
    A table where one human plays against bots.

    Attributes:
        code: Room code (e.g., "ABCD").
        game: The Game instance containing actual game state.
        human_seat: Seat of the human player.
        difficulty: Default difficulty of the table's bots.
        bot_latency: Seconds before each bot turn (None: config.BOT_LATENCY_MS).
        humanlike_pacing: Use each bot's random thinking time instead of
            a fixed latency.
        game_lock: asyncio.Lock for serializing game mutations.
        bot_task: Background task running bot turns, if any.
    """

    code: str
    game: Game
    human_seat: int = 0
    difficulty: BotDifficulty = BotDifficulty.NORMAL
    bot_latency: Optional[float] = None
    humanlike_pacing: bool = False
    game_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)
    bot_task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    @classmethod
    def create_vs_bots(
        cls,
        code: str,
        human_name: str,
        num_bots: Optional[int] = None,
        cards_per_player: Optional[int] = None,
        difficulty: Optional[str] = None,
        user_id: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> "Room":
        """
        Seat a human at seat 0 and bots at the other seats, then deal.

        Args:
            code: Room code.
            human_name: Display name of the human.
            num_bots: Number of bots (1-5).
            cards_per_player: Cards dealt to each seat (3-6).
            difficulty: Bot difficulty tag.
            user_id: Host account id of the human.
            seed: Optional seed for the shuffle and bot names.

        Returns:
            The dealt Room.

        Raises:
            InvalidConfiguration: If the bot or card count is out of range.
        """
        if num_bots is None:
            num_bots = config.game_defaults.num_bots
        if cards_per_player is None:
            cards_per_player = DEFAULT_CARDS_PER_PLAYER
        level = BotDifficulty.parse(difficulty or config.game_defaults.bot_difficulty)

        if not 1 <= num_bots <= MAX_BOTS:
            raise InvalidConfiguration(f"Number of bots must be between 1 and {MAX_BOTS}")

        game = Game(num_players=num_bots + 1, cards_per_player=cards_per_player, seed=seed)
        game.add_player(human_name, user_id=user_id)

        rng = random.Random(seed)
        taken = {human_name}
        for i in range(1, num_bots + 1):
            name = random_bot_name(rng, taken)
            taken.add(name)
            # Bots get negative ids so they never collide with real accounts
            game.add_player(name, is_bot=True, difficulty=level.value, user_id=-i)

        game.start()

        room = cls(code=code, game=game, human_seat=0, difficulty=level)
        logger.with_context(room_code=code).info(
            f"Vs-bot table created: {num_bots} {level.value} bot(s), {cards_per_player} cards"
        )
        return room

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def bot_delay(self) -> BotDelay:
        if self.humanlike_pacing:
            return thinking_delay
        if self.bot_latency is not None:
            return self.bot_latency
        return config.bot_latency

    def human_player(self) -> Player:
        return self.game.players[self.human_seat]

    def get_bot_players(self) -> list[Player]:
        """Get all bot seats."""
        return [p for p in self.game.players if p.is_bot]

    def is_bot_turn(self) -> bool:
        return is_bot_turn(self.game)

    def is_human_turn(self) -> bool:
        return not self.game.is_over and self.game.turn_index == self.human_seat

    def get_state(self, for_seat: Optional[int] = None) -> dict:
        """
        Get the game state for a specific seat.

        Other seats' hands are replaced by None (their card counts stay),
        so the result can be sent to that seat's client.

        Args:
            for_seat: The seat that will receive this state, or None for
                the unredacted state.

        Returns:
            Game state plus table info.
        """
        state = self.game.get_state()
        if for_seat is not None:
            for player in state["players"]:
                if player["seat"] != for_seat:
                    player["hand"] = None

        current = self.game.current_player()
        state.update({
            "code": self.code,
            "human_seat": self.human_seat,
            "difficulty": self.difficulty.value,
            "is_human_turn": self.is_human_turn(),
            "is_bot_turn": self.is_bot_turn(),
            "current_player_name": current.name if current else None,
        })
        return state

    # -------------------------------------------------------------------------
    # Moves
    # -------------------------------------------------------------------------

    @contextmanager
    def _log_context(self) -> Iterator[None]:
        """Tag every log record emitted inside with this room and game."""
        game_token = game_id_var.set(self.game.game_id)
        room_token = room_code_var.set(self.code)
        try:
            yield
        finally:
            room_code_var.reset(room_token)
            game_id_var.reset(game_token)

    async def play_card(
        self,
        rank: int,
        suit: str,
        chosen_suit: Optional[str] = None,
        process_bots: bool = True,
        after_turn: Optional[AfterTurnHook] = None,
    ) -> MoveResult:
        """
        Play a card for the human, then (optionally) let the bots move.

        Raises:
            IllegalMove: If the human may not play that card.
        """
        async with self.game_lock:
            with self._log_context():
                result = self.game.play_card(self.human_seat, rank, suit, chosen_suit)
                if process_bots and not result.game_over:
                    await self._run_bots(after_turn)
        return result

    async def draw(
        self,
        process_bots: bool = True,
        after_turn: Optional[AfterTurnHook] = None,
    ) -> list[Card]:
        """
        Draw for the human, then (optionally) let the bots move.

        Raises:
            IllegalMove: If it is not the human's turn or the game is over.
        """
        async with self.game_lock:
            with self._log_context():
                cards = self.game.draw_card(self.human_seat)
                if process_bots:
                    await self._run_bots(after_turn)
        return cards

    async def run_bots(self, after_turn: Optional[AfterTurnHook] = None) -> list[BotTurn]:
        """Play bot turns until the human is to move or the game ends."""
        async with self.game_lock:
            with self._log_context():
                return await self._run_bots(after_turn)

    async def _run_bots(self, after_turn: Optional[AfterTurnHook]) -> list[BotTurn]:
        turns = await process_bot_turns(self.game, after_turn=after_turn, delay=self.bot_delay)
        if turns:
            logger.debug(
                f"{len(turns)} bot turn(s) played, next seat {self.game.turn_index}"
            )
        return turns

    def stop_bots(self) -> bool:
        """
        Cancel background bot processing.

        Cancellation lands between bot turns, never in the middle of one.

        Returns:
            True if a running task was cancelled.
        """
        if self.bot_task and not self.bot_task.done():
            self.bot_task.cancel()
            return True
        return False

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Serialize the room for storage."""
        return {
            "code": self.code,
            "human_seat": self.human_seat,
            "difficulty": self.difficulty.value,
            "bot_latency": self.bot_latency,
            "humanlike_pacing": self.humanlike_pacing,
            "game": self.game.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Room":
        """
        Restore a room from to_dict() output.

        Raises:
            InvalidState: If the stored game cannot be loaded.
        """
        latency = data.get("bot_latency")
        return cls(
            code=data.get("code", ""),
            game=Game.from_dict(data.get("game") or {}),
            human_seat=int(data.get("human_seat", 0)),
            difficulty=BotDifficulty.parse(data.get("difficulty")),
            bot_latency=latency if latency is None else float(latency),
            humanlike_pacing=bool(data.get("humanlike_pacing", False)),
        )


class RoomManager:
    """
    Manages all active vs-bot tables.

    Provides room creation with unique codes, lookup, cleanup, and
    background bot processing (at most one task per room).
    """

    def __init__(self) -> None:
        """Initialize an empty room manager."""
        self.rooms: dict[str, Room] = {}

    def _generate_code(self, max_attempts: int = 100) -> str:
        """Generate a unique room code."""
        for _ in range(max_attempts):
            code = "".join(random.choices(string.ascii_uppercase, k=ROOM_CODE_LENGTH))
            if code not in self.rooms:
                return code
        raise RuntimeError("Could not generate unique room code")

    def create_room(self, human_name: str, **options) -> Room:
        """
        Create a vs-bot table with a unique code.

        Args:
            human_name: Display name of the human.
            **options: Passed to Room.create_vs_bots().

        Returns:
            The newly created Room.
        """
        room = Room.create_vs_bots(self._generate_code(), human_name, **options)
        self.rooms[room.code] = room
        return room

    def restore_room(self, data: dict) -> Room:
        """Load a stored room and register it under its code."""
        room = Room.from_dict(data)
        if not room.code or room.code in self.rooms:
            room.code = self._generate_code()
        self.rooms[room.code] = room
        return room

    def get_room(self, code: str) -> Optional[Room]:
        """
        Get a room by its code (case-insensitive).

        Args:
            code: The room code.

        Returns:
            The Room if found, None otherwise.
        """
        return self.rooms.get(code.upper())

    def remove_room(self, code: str) -> Optional[Room]:
        """
        Delete a room, cancelling its bot processing.

        Args:
            code: The room code to remove.

        Returns:
            The removed Room, or None if not found.
        """
        room = self.rooms.pop(code.upper(), None)
        if room:
            room.stop_bots()
        return room

    def find_user_room(self, user_id: int) -> Optional[Room]:
        """Find the room where a human account is seated."""
        for room in self.rooms.values():
            if room.human_player().user_id == user_id:
                return room
        return None

    def start_bot_processing(
        self,
        room: Room,
        after_turn: Optional[AfterTurnHook] = None,
    ) -> Optional[asyncio.Task]:
        """
        Run the room's bot turns in the background.

        Does nothing when a task is already running for the room, the game
        is over, or a human is to move.

        Args:
            room: The room.
            after_turn: Hook called after every bot turn (e.g., to persist).

        Returns:
            The started task, or None.
        """
        if room.bot_task and not room.bot_task.done():
            return None
        if not room.is_bot_turn():
            return None

        room.bot_task = asyncio.create_task(self._process_bots(room, after_turn))
        return room.bot_task

    async def _process_bots(self, room: Room, after_turn: Optional[AfterTurnHook]) -> None:
        log = logger.with_context(room_code=room.code)
        try:
            await room.run_bots(after_turn)
        except asyncio.CancelledError:
            log.info("Bot processing cancelled")
            raise
        except Exception:
            log.exception("Error processing bot turns")
            return

        if room.game.is_over:
            log.info(
                f"Game over: winners {room.game.winners}, loser {room.game.loser}"
            )
