"""
Test suite for bot turn processing and vs-bot tables.

Covers:
- process_bot_turns(): stopping rules, hooks, delays, cancellation
- Room: seating, human moves, per-seat views, storage round trip
- RoomManager: codes, lookup, background bot processing

Run with: pytest test_room.py -v
"""

import asyncio
import logging

import pytest

import ai
from ai import BotDecision, RondaAI, process_bot_turns, thinking_delay
from config import config
from game import (
    Card,
    Game,
    IllegalMove,
    InvalidConfiguration,
    REASON_NOT_YOUR_TURN,
    Suit,
)
from logging_config import game_id_var, room_code_var
from room import Room, RoomManager


# =============================================================================
# Helpers
# =============================================================================

def make_bot_game(num_players=3, seed=2):
    """A human at seat 0 and bots everywhere else, dealt, human to move."""
    game = Game(num_players=num_players, seed=seed)
    game.add_player("Human", user_id=7)
    for seat in range(1, num_players):
        game.add_player(f"Bot {seat}", is_bot=True, difficulty="normal", user_id=-seat)
    game.start()
    return game


def make_room(num_bots=2, seed=1, difficulty="normal"):
    room = Room.create_vs_bots(
        "TEST", "Alice", num_bots=num_bots, difficulty=difficulty, user_id=42, seed=seed
    )
    room.bot_latency = 0
    return room


def give_playable_card(game, seat):
    """Swap a plain draw-pile card that fits the pile into the seat's hand."""
    top = game.top_card()
    for i, c in enumerate(game.draw_pile):
        if not c.is_special and (c.suit == game.effective_suit or c.rank == top.rank):
            hand = game.players[seat].hand
            game.draw_pile[i], hand[0] = hand[0], c
            return c
    raise AssertionError("no playable card left in the draw pile")


def assert_waiting_for_human(game):
    assert game.is_over or game.turn_index == 0


# =============================================================================
# Bot Turn Processing
# =============================================================================

class TestProcessBotTurns:
    """The async loop that plays consecutive bot turns."""

    @pytest.mark.asyncio
    async def test_nothing_to_do_on_human_turn(self):
        game = make_bot_game()
        assert await process_bot_turns(game, delay=0) == []

    @pytest.mark.asyncio
    async def test_runs_until_human_turn(self):
        game = make_bot_game()
        game.draw_card(0)

        turns = await process_bot_turns(game, delay=0)

        assert turns
        assert all(t.seat != 0 for t in turns)
        assert_waiting_for_human(game)
        assert game.total_cards() == 40

    @pytest.mark.asyncio
    async def test_nothing_to_do_when_over(self):
        game = make_bot_game()
        game.draw_card(0)
        game.is_over = True
        assert await process_bot_turns(game, delay=0) == []

    @pytest.mark.asyncio
    async def test_sync_hook_called_after_each_turn(self):
        game = make_bot_game()
        game.draw_card(0)
        seen = []

        turns = await process_bot_turns(game, after_turn=seen.append, delay=0)

        assert seen == turns

    @pytest.mark.asyncio
    async def test_async_hook_is_awaited(self):
        game = make_bot_game()
        game.draw_card(0)
        saved = []

        async def persist(turn):
            await asyncio.sleep(0)
            saved.append(game.to_dict())

        turns = await process_bot_turns(game, after_turn=persist, delay=0)

        assert len(saved) == len(turns)
        assert saved[-1] == game.to_dict()

    @pytest.mark.asyncio
    async def test_sleeps_before_each_turn(self, monkeypatch):
        game = make_bot_game()
        game.draw_card(0)
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        monkeypatch.setattr(ai.asyncio, "sleep", fake_sleep)
        turns = await process_bot_turns(game, delay=1.5)

        assert slept == [1.5] * len(turns)

    @pytest.mark.asyncio
    async def test_delay_defaults_to_config(self, monkeypatch):
        game = make_bot_game()
        game.draw_card(0)
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        monkeypatch.setattr(ai.asyncio, "sleep", fake_sleep)
        monkeypatch.setattr(config, "BOT_LATENCY_MS", 250)
        await process_bot_turns(game)

        assert slept
        assert set(slept) == {0.25}

    @pytest.mark.asyncio
    async def test_callable_delay_gets_the_bot(self):
        game = make_bot_game()
        game.draw_card(0)
        asked = []

        def delay(player):
            asked.append(player.seat)
            return 0

        turns = await process_bot_turns(game, delay=delay)

        assert asked == [t.seat for t in turns]

    @pytest.mark.asyncio
    async def test_stops_if_host_moves_during_sleep(self, monkeypatch):
        game = make_bot_game()
        game.draw_card(0)

        async def fake_sleep(seconds):
            game.turn_index = 0

        monkeypatch.setattr(ai.asyncio, "sleep", fake_sleep)
        assert await process_bot_turns(game, delay=1) == []

    @pytest.mark.asyncio
    async def test_cancel_between_turns_leaves_state_intact(self):
        game = make_bot_game()
        game.draw_card(0)
        before = game.to_dict()

        task = asyncio.create_task(process_bot_turns(game, delay=10))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert game.to_dict() == before

    @pytest.mark.asyncio
    async def test_illegal_decisions_fall_back_to_draws(self, monkeypatch):
        game = make_bot_game()
        game.draw_card(0)
        bogus = Card(12, Suit.CLUBS)
        for player in game.players[1:]:
            if bogus in player.hand:
                player.hand.remove(bogus)
                game.draw_pile.insert(0, bogus)
        monkeypatch.setattr(
            RondaAI, "decide",
            staticmethod(lambda *args, **kwargs: BotDecision(card=bogus)),
        )

        turns = await process_bot_turns(game, delay=0)

        assert [t.seat for t in turns] == [1, 2]
        assert all(t.fallback and t.action == "draw" for t in turns)
        assert game.turn_index == 0


# =============================================================================
# Room Setup
# =============================================================================

class TestRoomSetup:
    """Seating a human against bots."""

    def test_seats(self):
        room = make_room(num_bots=3)
        players = room.game.players
        assert len(players) == 4
        assert players[0].name == "Alice"
        assert players[0].user_id == 42
        assert not players[0].is_bot
        assert all(p.is_bot for p in players[1:])
        assert [p.user_id for p in players[1:]] == [-1, -2, -3]
        assert len({p.name for p in players}) == 4
        assert room.get_bot_players() == players[1:]

    def test_deal(self):
        room = make_room(num_bots=2)
        assert all(p.card_count == 5 for p in room.game.players)
        assert room.is_human_turn()
        assert not room.is_bot_turn()

    def test_difficulty_tag(self):
        room = make_room(difficulty="dificil")
        assert room.difficulty == ai.BotDifficulty.HARD
        assert all(p.difficulty == "hard" for p in room.get_bot_players())

    @pytest.mark.parametrize("num_bots", [0, 6])
    def test_bot_count_out_of_range(self, num_bots):
        with pytest.raises(InvalidConfiguration):
            Room.create_vs_bots("TEST", "Alice", num_bots=num_bots)

    def test_card_count_out_of_range(self):
        with pytest.raises(InvalidConfiguration):
            Room.create_vs_bots("TEST", "Alice", num_bots=1, cards_per_player=9)

    def test_bot_delay(self):
        room = make_room()
        assert room.bot_delay == 0
        room.bot_latency = None
        assert room.bot_delay == config.bot_latency
        room.humanlike_pacing = True
        assert room.bot_delay is thinking_delay


# =============================================================================
# Room Moves
# =============================================================================

class TestRoomMoves:
    """Human moves, followed by the bots."""

    @pytest.mark.asyncio
    async def test_draw_then_bots_move(self):
        room = make_room()
        drawn = await room.draw()
        assert len(drawn) == 1
        assert_waiting_for_human(room.game)

    @pytest.mark.asyncio
    async def test_play_then_bots_move(self):
        room = make_room()
        c = give_playable_card(room.game, 0)

        result = await room.play_card(c.rank, c.suit.value)

        assert not result.player_finished
        assert c not in room.game.players[0].hand
        assert_waiting_for_human(room.game)
        assert room.game.total_cards() == 40

    @pytest.mark.asyncio
    async def test_play_without_bots(self):
        room = make_room()
        c = give_playable_card(room.game, 0)
        await room.play_card(c.rank, c.suit.value, process_bots=False)
        assert room.game.top_card() == c
        assert room.is_bot_turn()

    @pytest.mark.asyncio
    async def test_play_out_of_turn(self):
        room = make_room()
        await room.draw(process_bots=False)
        c = room.game.players[0].hand[0]
        with pytest.raises(IllegalMove) as exc_info:
            await room.play_card(c.rank, c.suit.value)
        assert exc_info.value.reason == REASON_NOT_YOUR_TURN

    @pytest.mark.asyncio
    async def test_draw_out_of_turn(self):
        room = make_room()
        await room.draw(process_bots=False)
        with pytest.raises(IllegalMove):
            await room.draw()

    @pytest.mark.asyncio
    async def test_run_bots_with_hook(self):
        room = make_room()
        await room.draw(process_bots=False)
        seen = []

        turns = await room.run_bots(after_turn=seen.append)

        assert turns
        assert seen == turns
        assert not room.game_lock.locked()

    @pytest.mark.asyncio
    async def test_moves_are_serialized(self):
        room = make_room()
        await room.draw(process_bots=False)

        results = await asyncio.gather(room.run_bots(), room.run_bots())

        # The second run finds the human to move and does nothing
        assert results[0]
        assert results[1] == []

    @pytest.mark.asyncio
    async def test_bot_turns_carry_log_context(self):
        room = make_room()
        await room.draw(process_bots=False)
        seen = []

        await room.run_bots(after_turn=lambda turn: seen.append(
            (game_id_var.get(), room_code_var.get())
        ))

        assert seen
        assert set(seen) == {(room.game.game_id, "TEST")}
        assert game_id_var.get() is None
        assert room_code_var.get() is None


# =============================================================================
# Room State
# =============================================================================

class TestRoomState:
    """Per-seat views and storage."""

    def test_state_hides_other_hands(self):
        room = make_room()
        state = room.get_state(for_seat=0)
        assert len(state["players"][0]["hand"]) == 5
        for player in state["players"][1:]:
            assert player["hand"] is None
            assert player["card_count"] == 5

    def test_unredacted_state(self):
        state = make_room().get_state()
        assert all(len(p["hand"]) == 5 for p in state["players"])

    def test_state_table_fields(self):
        state = make_room().get_state(for_seat=0)
        assert state["code"] == "TEST"
        assert state["is_human_turn"] is True
        assert state["is_bot_turn"] is False
        assert state["current_player_name"] == "Alice"
        assert state["human_seat"] == 0
        assert state["difficulty"] == "normal"

    def test_round_trip(self):
        room = make_room()
        restored = Room.from_dict(room.to_dict())
        assert restored.code == room.code
        assert restored.difficulty == room.difficulty
        assert restored.human_seat == 0
        assert restored.game == room.game

    def test_round_trip_keeps_pacing(self):
        room = make_room()
        room.bot_latency = 0.5
        room.humanlike_pacing = True

        restored = Room.from_dict(room.to_dict())

        assert restored.bot_latency == 0.5
        assert restored.humanlike_pacing is True
        assert restored.bot_delay is thinking_delay

    def test_pacing_defaults_when_missing(self):
        data = make_room().to_dict()
        del data["bot_latency"], data["humanlike_pacing"]

        restored = Room.from_dict(data)

        assert restored.bot_latency is None
        assert restored.humanlike_pacing is False

    @pytest.mark.asyncio
    async def test_restored_room_keeps_playing(self):
        room = make_room()
        restored = Room.from_dict(room.to_dict())
        restored.bot_latency = 0
        await restored.draw()
        assert_waiting_for_human(restored.game)


# =============================================================================
# Room Manager
# =============================================================================

class TestRoomManager:
    """Room codes, lookup and background bot processing."""

    def test_create_room(self):
        manager = RoomManager()
        room = manager.create_room("Alice", num_bots=2, seed=3)
        assert len(room.code) == 4
        assert room.code.isupper()
        assert manager.get_room(room.code) is room
        assert manager.get_room(room.code.lower()) is room

    def test_unique_codes(self):
        manager = RoomManager()
        codes = {manager.create_room(f"P{i}", num_bots=1).code for i in range(30)}
        assert len(codes) == 30

    def test_get_missing_room(self):
        assert RoomManager().get_room("ZZZZ") is None

    def test_remove_room(self):
        manager = RoomManager()
        room = manager.create_room("Alice", num_bots=1)
        assert manager.remove_room(room.code) is room
        assert manager.get_room(room.code) is None
        assert manager.remove_room(room.code) is None

    def test_find_user_room(self):
        manager = RoomManager()
        room = manager.create_room("Alice", num_bots=1, user_id=42)
        manager.create_room("Bob", num_bots=1, user_id=43)
        assert manager.find_user_room(42) is room
        assert manager.find_user_room(99) is None

    def test_restore_room(self):
        manager = RoomManager()
        stored = make_room().to_dict()
        room = manager.restore_room(stored)
        assert room.code == "TEST"
        assert manager.get_room("TEST") is room

        clash = manager.restore_room(stored)
        assert clash.code != "TEST"

    def test_no_processing_on_human_turn(self):
        manager = RoomManager()
        assert manager.start_bot_processing(make_room()) is None

    @pytest.mark.asyncio
    async def test_background_processing(self):
        manager = RoomManager()
        room = make_room()
        await room.draw(process_bots=False)
        seen = []

        task = manager.start_bot_processing(room, after_turn=seen.append)
        assert task is not None
        assert manager.start_bot_processing(room) is None

        await task
        assert seen
        assert_waiting_for_human(room.game)

    @pytest.mark.asyncio
    async def test_remove_room_cancels_processing(self):
        manager = RoomManager()
        room = manager.create_room("Alice", num_bots=2, seed=5)
        room.bot_latency = 10
        await room.draw(process_bots=False)
        before = room.game.to_dict()

        task = manager.start_bot_processing(room)
        await asyncio.sleep(0)
        manager.remove_room(room.code)

        with pytest.raises(asyncio.CancelledError):
            await task
        assert room.game.to_dict() == before

    @pytest.mark.asyncio
    async def test_background_errors_are_logged(self, monkeypatch, caplog):
        manager = RoomManager()
        room = make_room()
        await room.draw(process_bots=False)

        async def broken(after_turn=None):
            raise RuntimeError("storage down")

        monkeypatch.setattr(room, "run_bots", broken)
        with caplog.at_level(logging.ERROR):
            await manager.start_bot_processing(room)

        assert "Error processing bot turns" in caplog.text
