"""
Ronda Bot Simulation Runner

Runs bot-vs-bot games to compare difficulty tiers and shake out rule bugs.
No server needed - runs games directly through the engine.

Usage:
    python simulate.py [num_games] [num_players] [difficulty ...]
    python simulate.py detail [num_players]

Examples:
    python simulate.py 10                 # 10 games, 4 normal bots each
    python simulate.py 200 3 easy hard    # 200 games, seats cycle easy/hard/easy
    python simulate.py detail 2           # one game, turn by turn
"""

import logging
import random
import sys
from typing import Optional

from ai import BotDifficulty, BotTurn, play_bot_turn, random_bot_name
from config import config
from game import Game
from logging_config import setup_logging

logger = logging.getLogger(__name__)

# Safety limit; a normal game ends in well under 200 turns
MAX_TURNS = 1000


class SimulationStats:
    """Track simulation statistics."""

    def __init__(self):
        self.games_played = 0
        self.unfinished_games = 0
        self.total_turns = 0
        self.wins: dict[str, int] = {}  # difficulty -> first-place finishes
        self.losses: dict[str, int] = {}  # difficulty -> last-place finishes
        self.seats: dict[str, int] = {}  # difficulty -> seats played
        self.decisions: dict[str, dict] = {}  # difficulty -> {action: count}
        self.fallbacks = 0
        self.penalty_draws = 0
        self.penalty_cards = 0

    def record_game(self, game: Game, turns: int):
        self.games_played += 1
        self.total_turns += turns

        for player in game.players:
            tag = player.difficulty or "normal"
            self.seats[tag] = self.seats.get(tag, 0) + 1

        if not game.is_over:
            self.unfinished_games += 1
            return

        first = game.players[game.winners[0]].difficulty or "normal"
        self.wins[first] = self.wins.get(first, 0) + 1
        last = game.players[game.loser].difficulty or "normal"
        self.losses[last] = self.losses.get(last, 0) + 1

    def record_turn(self, difficulty: str, turn: BotTurn, pending_before: int):
        actions = self.decisions.setdefault(difficulty, {})
        action = turn.action
        if turn.card and turn.card.is_special:
            action = f"play {turn.card.rank}"
        actions[action] = actions.get(action, 0) + 1

        if turn.fallback:
            self.fallbacks += 1
        if turn.action == "draw" and pending_before:
            self.penalty_draws += 1
            self.penalty_cards += len(turn.drawn)

    def report(self) -> str:
        lines = [
            "=" * 50,
            "SIMULATION RESULTS",
            "=" * 50,
            f"Games played: {self.games_played}",
            f"Unfinished (turn cap): {self.unfinished_games}",
            f"Total turns: {self.total_turns}",
            f"Avg turns/game: {self.total_turns / max(1, self.games_played):.1f}",
            "",
            "FIRST PLACE (per seat played):",
        ]

        for tag, seats in sorted(self.seats.items()):
            wins = self.wins.get(tag, 0)
            lines.append(f"  {tag}: {wins} wins ({wins / max(1, seats) * 100:.1f}%)")

        lines.append("")
        lines.append("LAST PLACE (per seat played):")
        for tag, seats in sorted(self.seats.items()):
            losses = self.losses.get(tag, 0)
            lines.append(f"  {tag}: {losses} losses ({losses / max(1, seats) * 100:.1f}%)")

        lines.append("")
        lines.append("DECISION BREAKDOWN:")
        for tag, actions in sorted(self.decisions.items()):
            total = sum(actions.values())
            lines.append(f"  {tag}:")
            for action, count in sorted(actions.items()):
                lines.append(f"    {action}: {count} ({count / max(1, total) * 100:.1f}%)")

        lines.append("")
        lines.append("PENALTIES:")
        lines.append(f"  Penalty draws: {self.penalty_draws}")
        lines.append(
            f"  Avg cards per penalty: {self.penalty_cards / max(1, self.penalty_draws):.1f}"
        )
        lines.append("")
        lines.append(f"Illegal bot decisions (should be 0): {self.fallbacks}")

        return "\n".join(lines)


def create_bot_game(
    num_players: int,
    difficulties: list[str],
    cards_per_player: Optional[int] = None,
    seed: Optional[int] = None,
) -> Game:
    """Create and deal a game where every seat is a bot; tiers cycle over the seats."""
    game = Game(
        num_players=num_players,
        cards_per_player=cards_per_player or config.game_defaults.cards_per_player,
        seed=seed,
    )
    rng = random.Random(seed)
    taken: set[str] = set()
    for seat in range(num_players):
        difficulty = BotDifficulty.parse(difficulties[seat % len(difficulties)])
        name = random_bot_name(rng, taken)
        taken.add(name)
        game.add_player(name, is_bot=True, difficulty=difficulty.value, user_id=-(seat + 1))
    game.start()
    return game


def run_game(
    game: Game,
    stats: SimulationStats,
    rng: Optional[random.Random] = None,
    max_turns: int = MAX_TURNS,
) -> int:
    """Play a dealt bot game to the end. Returns the number of turns played."""
    turns = 0
    while not game.is_over and turns < max_turns:
        player = game.current_player()
        pending = game.pending_penalty.count
        turn = play_bot_turn(game, player.seat, rng=rng)
        stats.record_turn(player.difficulty or "normal", turn, pending)
        turns += 1

    if not game.is_over:
        logger.warning(f"Game {game.game_id[:8]} hit the turn cap ({max_turns})")

    stats.record_game(game, turns)
    return turns


def run_simulation(
    num_games: int = 10,
    num_players: int = 4,
    difficulties: Optional[list[str]] = None,
    seed: Optional[int] = None,
    verbose: bool = True,
) -> SimulationStats:
    """Run multiple games and report statistics."""
    difficulties = difficulties or [config.game_defaults.bot_difficulty]

    print(f"\nRunning {num_games} games with {num_players} players each...")
    print(f"Difficulties: {', '.join(difficulties)}")
    print("=" * 50)

    stats = SimulationStats()
    rng = random.Random(seed)

    for i in range(num_games):
        game_seed = rng.randrange(2**32)
        game = create_bot_game(num_players, difficulties, seed=game_seed)
        turns = run_game(game, stats, rng=rng)

        if verbose:
            result = "unfinished"
            if game.is_over:
                loser = game.players[game.loser]
                result = f"loser {loser.name} ({loser.difficulty})"
            print(f"Game {i + 1}/{num_games}: {turns} turns, {result}")

    print("\n")
    print(stats.report())
    return stats


def run_detailed_game(num_players: int = 4, seed: Optional[int] = None):
    """Run a single game with detailed output."""

    print(f"\nRunning detailed game with {num_players} players...")
    print("=" * 50)

    tiers = [d.value for d in BotDifficulty]
    game = create_bot_game(num_players, tiers, seed=seed)
    stats = SimulationStats()
    rng = random.Random(seed)

    for player in game.players:
        print(f"  {player.name} ({player.difficulty})")
    print(f"\nOpening card: {game.top_card()}")
    print("\n" + "-" * 50)

    turn = 0
    while not game.is_over and turn < MAX_TURNS:
        current = game.current_player()
        pending = game.pending_penalty.count

        print(f"\nTurn {turn + 1}: {current.name}")
        print(f"  Hand: {', '.join(str(c) for c in current.hand)}")
        print(f"  Top: {game.top_card()} (suit in play: {game.effective_suit.value})")
        if pending:
            print(f"  Facing a draw of {pending}")

        result = play_bot_turn(game, current.seat, rng=rng)
        stats.record_turn(current.difficulty or "normal", result, pending)

        if result.action == "play":
            line = f"  Played {result.card}"
            if result.chosen_suit:
                line += f", calling {result.chosen_suit.value}"
            print(line)
            if result.result.player_finished:
                print(f"  >>> {current.name} is out of cards!")
        else:
            print(f"  Drew {len(result.drawn)} card(s)")

        turn += 1

    stats.record_game(game, turn)

    print("\n" + "=" * 50)
    print("FINAL STANDINGS")
    print("=" * 50)

    for place, seat in enumerate(game.winners, start=1):
        print(f"  {place}. {game.players[seat].name}")
    if game.loser is not None:
        loser = game.players[game.loser]
        print(f"\nLoser: {loser.name} with {loser.card_count} card(s)")
    else:
        print("\nNo result: turn cap reached")


if __name__ == "__main__":
    setup_logging(config.LOG_LEVEL, config.ENVIRONMENT)

    if len(sys.argv) > 1 and sys.argv[1] == "detail":
        # Detailed single game
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        run_detailed_game(num_players)
    else:
        # Batch simulation
        num_games = int(sys.argv[1]) if len(sys.argv) > 1 else 10
        num_players = int(sys.argv[2]) if len(sys.argv) > 2 else 4
        run_simulation(num_games, num_players, sys.argv[3:] or None)
