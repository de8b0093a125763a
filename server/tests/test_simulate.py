"""
Tests for the bot simulation runner.
"""

from simulate import SimulationStats, create_bot_game, run_detailed_game, run_game, run_simulation


class TestSimulation:

    def test_create_bot_game_cycles_difficulties(self):
        game = create_bot_game(4, ["easy", "hard"], seed=1)
        assert [p.difficulty for p in game.players] == ["easy", "hard", "easy", "hard"]
        assert all(p.is_bot for p in game.players)
        assert len({p.name for p in game.players}) == 4

    def test_run_game(self):
        stats = SimulationStats()
        game = create_bot_game(3, ["normal"], seed=2)
        turns = run_game(game, stats)
        assert turns == stats.total_turns
        assert stats.games_played == 1
        assert game.total_cards() == 40
        assert stats.fallbacks == 0

    def test_turn_cap(self):
        stats = SimulationStats()
        game = create_bot_game(4, ["easy"], seed=3)
        assert run_game(game, stats, max_turns=2) == 2
        assert stats.unfinished_games == 1
        assert not stats.wins

    def test_run_simulation_report(self, capsys):
        stats = run_simulation(5, 3, ["easy", "normal", "hard"], seed=7, verbose=False)
        assert stats.games_played == 5
        assert sum(stats.seats.values()) == 15
        finished = stats.games_played - stats.unfinished_games
        assert sum(stats.wins.values()) == finished
        assert sum(stats.losses.values()) == finished

        out = capsys.readouterr().out
        assert "SIMULATION RESULTS" in out
        assert "Illegal bot decisions (should be 0): 0" in out

    def test_detailed_game(self, capsys):
        run_detailed_game(2, seed=11)
        out = capsys.readouterr().out
        assert "Turn 1:" in out
        assert "FINAL STANDINGS" in out
