"""
Tests for environment configuration and structured logging.
"""

import json
import logging

import pytest

import config as config_module
from config import GameDefaults, ServerConfig, get_env_bool, get_env_int
from logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    get_logger,
    room_code_var,
    setup_logging,
)


# =============================================================================
# Configuration
# =============================================================================

class TestEnvHelpers:
    """Typed environment lookups."""

    @pytest.mark.parametrize("raw,expected", [
        ("1", True), ("true", True), ("ON", True),
        ("0", False), ("no", False), ("maybe", None),
    ])
    def test_get_env_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("RONDA_FLAG", raw)
        if expected is None:
            assert get_env_bool("RONDA_FLAG", True) is True
            assert get_env_bool("RONDA_FLAG", False) is False
        else:
            assert get_env_bool("RONDA_FLAG") is expected

    def test_get_env_int(self, monkeypatch):
        monkeypatch.setenv("RONDA_NUM", "17")
        assert get_env_int("RONDA_NUM", 3) == 17
        monkeypatch.setenv("RONDA_NUM", "lots")
        assert get_env_int("RONDA_NUM", 3) == 3
        monkeypatch.delenv("RONDA_NUM")
        assert get_env_int("RONDA_NUM", 3) == 3


class TestServerConfig:
    """ServerConfig.from_env()."""

    def test_defaults(self, monkeypatch):
        for key in (
            "BOT_LATENCY_MS", "MAX_BOTS", "ROOM_CODE_LENGTH",
            "DEFAULT_CARDS_PER_PLAYER", "DEFAULT_BOT_DIFFICULTY", "DEFAULT_NUM_BOTS",
        ):
            monkeypatch.delenv(key, raising=False)
        cfg = ServerConfig.from_env()
        assert cfg.BOT_LATENCY_MS == 2000
        assert cfg.bot_latency == 2.0
        assert cfg.MAX_BOTS == 5
        assert cfg.ROOM_CODE_LENGTH == 4
        assert cfg.game_defaults == GameDefaults()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("BOT_LATENCY_MS", "500")
        monkeypatch.setenv("AI_DEBUG", "1")
        monkeypatch.setenv("DEFAULT_CARDS_PER_PLAYER", "3")
        monkeypatch.setenv("DEFAULT_BOT_DIFFICULTY", "hard")
        cfg = ServerConfig.from_env()
        assert cfg.bot_latency == 0.5
        assert cfg.AI_DEBUG
        assert cfg.game_defaults.cards_per_player == 3
        assert cfg.game_defaults.bot_difficulty == "hard"

    def test_negative_latency_is_zero(self):
        assert ServerConfig(BOT_LATENCY_MS=-10).bot_latency == 0

    def test_reload_config(self, monkeypatch):
        original = config_module.config
        monkeypatch.setenv("MAX_BOTS", "3")
        try:
            assert config_module.reload_config().MAX_BOTS == 3
        finally:
            config_module.config = original


# =============================================================================
# Logging
# =============================================================================

def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("ronda.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """JSON and development log formats."""

    def test_json_fields(self):
        data = json.loads(JSONFormatter().format(make_record(room_code="ABCD", seat=2)))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "ronda.test"
        assert data["room_code"] == "ABCD"
        assert data["seat"] == 2
        assert "source" not in data

    def test_json_errors_carry_source(self):
        data = json.loads(JSONFormatter().format(make_record(level=logging.ERROR)))
        assert data["source"]["line"] == 10

    def test_json_uses_context_var(self):
        token = room_code_var.set("WXYZ")
        try:
            data = json.loads(JSONFormatter().format(make_record()))
        finally:
            room_code_var.reset(token)
        assert data["room_code"] == "WXYZ"

    def test_development_context(self):
        line = DevelopmentFormatter().format(
            make_record(game_id="0123456789abcdef", room_code="ABCD", seat=0)
        )
        assert "game=01234567" in line
        assert "room=ABCD" in line
        assert "seat=0" in line
        assert line.endswith("hello")


class TestLoggers:
    """setup_logging() and ContextLogger."""

    def test_setup_logging_production(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers, root.level
        try:
            setup_logging("WARNING", "production")
            assert root.level == logging.WARNING
            assert isinstance(root.handlers[0].formatter, JSONFormatter)
        finally:
            root.handlers, root.level = saved_handlers, saved_level

    def test_context_logger(self, caplog):
        logger = get_logger("ronda.test").with_context(room_code="ABCD")
        with caplog.at_level(logging.INFO):
            logger.with_context(seat=1).info("bot played")
        record = caplog.records[-1]
        assert record.room_code == "ABCD"
        assert record.seat == 1
