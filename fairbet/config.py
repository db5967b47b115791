"""
Configuration management for fairbet.
Supports config.json with environment variable overrides.
All paths are resolved relative to the project root.
"""

import json
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

# Project root directory (parent of 'fairbet' folder)
PROJECT_ROOT = Path(__file__).parent.parent


def get_env(key: str, default: str = None) -> Optional[str]:
    """Get environment variable with optional default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    return val.lower() in ("true", "1", "yes", "on")


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    val = os.environ.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        return default


# ==================== Configuration Models ====================

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    name: str = "fairbet"


class EconomyConfig(BaseModel):
    starting_balance: int = 10000


class GameConfig(BaseModel):
    enabled: bool = True
    min_bet: int = 1
    max_bet: int = 1_000_000


class DiceConfig(GameConfig):
    house_edge: float = 0.95  # Multiplier applied to the fair payout


class MinesConfig(GameConfig):
    max_multiplier: int = 10  # Bonus at a fully cleared board is 1 + this


class BlackjackConfig(GameConfig):
    natural_payout: float = 1.5  # 3:2
    dealer_stand_value: int = 17


class GamesConfig(BaseModel):
    dice: DiceConfig = Field(default_factory=DiceConfig)
    mines: MinesConfig = Field(default_factory=MinesConfig)
    blackjack: BlackjackConfig = Field(default_factory=BlackjackConfig)


class SessionsConfig(BaseModel):
    """Server-side game sessions (mines boards, blackjack hands)."""
    timeout_seconds: int = 600  # 10 minutes
    sweep_interval_seconds: int = 60
    sweeper_enabled: bool = True


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = "sqlite"


class RateLimitConfig(BaseModel):
    enabled: bool = True
    game_requests: str = "30/minute"  # Per client address, per wagering endpoint


class IdempotencyConfig(BaseModel):
    required: bool = False  # Reject wagering requests without an Idempotency-Key


class LoggingConfig(BaseModel):
    level: str = "INFO"
    log_to_file: bool = False
    formatter: str = "color"


class PathsConfig(BaseModel):
    """All paths are relative to PROJECT_ROOT."""
    config_file: str = "config.json"
    database: str = "data/fairbet.db"
    log_file: str = "data/app.log"

    def get_config_path(self) -> Path:
        return PROJECT_ROOT / self.config_file

    def get_db_path(self) -> Path:
        return PROJECT_ROOT / self.database

    def get_log_path(self) -> Path:
        return PROJECT_ROOT / self.log_file


class AppConfig(BaseModel):
    """Main application configuration."""
    server: ServerConfig = Field(default_factory=ServerConfig)
    economy: EconomyConfig = Field(default_factory=EconomyConfig)
    games: GamesConfig = Field(default_factory=GamesConfig)
    sessions: SessionsConfig = Field(default_factory=SessionsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    idempotency: IdempotencyConfig = Field(default_factory=IdempotencyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)


# ==================== Configuration Loading ====================

def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from config.json with environment variable overrides.
    Environment variables take precedence over config.json values.
    """
    if config_path is None:
        config_path = PathsConfig().get_config_path()

    data = {}

    if config_path.exists():
        with open(config_path, "r") as f:
            data = json.load(f)

    if get_env("SERVER_HOST"):
        data.setdefault("server", {})["host"] = get_env("SERVER_HOST")
    if get_env("SERVER_PORT"):
        data.setdefault("server", {})["port"] = get_env_int("SERVER_PORT", 8000)
    if get_env("DEBUG"):
        data.setdefault("server", {})["debug"] = get_env_bool("DEBUG")

    if get_env("STORAGE_BACKEND"):
        data.setdefault("storage", {})["backend"] = get_env("STORAGE_BACKEND")
    if get_env("DB_PATH"):
        data.setdefault("paths", {})["database"] = get_env("DB_PATH")

    if get_env("SESSION_TIMEOUT_SECONDS"):
        data.setdefault("sessions", {})["timeout_seconds"] = get_env_int(
            "SESSION_TIMEOUT_SECONDS", 600
        )

    if get_env("LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = get_env("LOG_LEVEL")
    if get_env("LOG_TO_FILE"):
        data.setdefault("logging", {})["log_to_file"] = get_env_bool("LOG_TO_FILE")
    if get_env("LOG_FORMATTER"):
        data.setdefault("logging", {})["formatter"] = get_env("LOG_FORMATTER")

    if get_env("RATE_LIMIT_ENABLED"):
        data.setdefault("rate_limit", {})["enabled"] = get_env_bool("RATE_LIMIT_ENABLED", True)
    if get_env("RATE_LIMIT_GAME_REQUESTS"):
        data.setdefault("rate_limit", {})["game_requests"] = get_env("RATE_LIMIT_GAME_REQUESTS")

    if get_env("IDEMPOTENCY_REQUIRED"):
        data.setdefault("idempotency", {})["required"] = get_env_bool("IDEMPOTENCY_REQUIRED")

    return AppConfig(**data)


# Global config instance
settings = load_config()
