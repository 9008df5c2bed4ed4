import os
from dataclasses import dataclass


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    log_level: str
    # Raise on hash-chain and undo/redo violations instead of logging them
    strict_history: bool


def load_settings() -> Settings:
    return Settings(
        log_level=os.getenv("SQUIRREL_AWAY_LOG_LEVEL", "INFO").upper(),
        strict_history=_env_flag("SQUIRREL_AWAY_STRICT"),
    )
