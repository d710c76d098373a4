import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    log_level: str
    log_path: str
    draw_max_attempts: int
    draw_timeout: int
    rate_limit_calls: int
    rate_limit_period: int


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from None
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}.")
    return value


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN")
    database_url = os.getenv("DATABASE_URL")

    if not bot_token:
        raise ValueError("BOT_TOKEN is required. Set it in the environment or .env file.")
    if not database_url:
        raise ValueError("DATABASE_URL is required. Set it in the environment or .env file.")

    return Settings(
        bot_token=bot_token,
        database_url=database_url,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_path=os.getenv("LOG_PATH", "logs/santavibe.log"),
        draw_max_attempts=_positive_int("DRAW_MAX_ATTEMPTS", 1000),
        draw_timeout=_positive_int("DRAW_TIMEOUT", 30),
        rate_limit_calls=_positive_int("RATE_LIMIT_CALLS", 5),
        rate_limit_period=_positive_int("RATE_LIMIT_PERIOD", 10),
    )
