"""
Centralized configuration for the Ronda game server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.BOT_LATENCY_MS)
    print(config.game_defaults.cards_per_player)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class GameDefaults:
    """Default settings for new tables."""
    cards_per_player: int = 5
    bot_difficulty: str = "normal"  # "easy", "normal" or "hard"
    num_bots: int = 1


@dataclass
class ServerConfig:
    """Server configuration."""
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Set AI_DEBUG=1 to log every bot decision
    AI_DEBUG: bool = False

    # Artificial pause before each bot turn so bots feel like real players
    BOT_LATENCY_MS: int = 2000

    # Vs-bot tables
    MAX_BOTS: int = 5
    ROOM_CODE_LENGTH: int = 4

    game_defaults: GameDefaults = field(default_factory=GameDefaults)

    @property
    def bot_latency(self) -> float:
        """Bot latency in seconds."""
        return max(0, self.BOT_LATENCY_MS) / 1000

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            AI_DEBUG=get_env_bool("AI_DEBUG", False),
            BOT_LATENCY_MS=get_env_int("BOT_LATENCY_MS", 2000),
            MAX_BOTS=get_env_int("MAX_BOTS", 5),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 4),
            game_defaults=GameDefaults(
                cards_per_player=get_env_int("DEFAULT_CARDS_PER_PLAYER", 5),
                bot_difficulty=get_env("DEFAULT_BOT_DIFFICULTY", "normal"),
                num_bots=get_env_int("DEFAULT_NUM_BOTS", 1),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
