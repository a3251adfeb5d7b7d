from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Datetimes stay naive so they round-trip through SQLite, which doesn't
    store tz info.
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "Flashcards"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'flashcards.db'}"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]
    max_cards_per_session: int = 20

    # Scheduler parameters
    learning_steps: int = 2  # successful reviews before Learning graduates
    relearning_steps: int = 1  # successful reviews before Relearning graduates
    initial_stability: float = 1.0
    initial_difficulty: float = 5.0
    min_stability: float = 0.1
    lapse_penalty: float = 0.5
    min_difficulty: float = 1.0
    max_difficulty: float = 10.0
    difficulty_step: float = 1.0
    seed_interval_days: float = 1.0
    learning_step_minutes: int = 1440  # 1 day
    relearning_step_minutes: int = 10
    max_interval_days: int = 36500

    model_config = {"env_prefix": "FLASHCARDS_", "env_file": ".env"}


settings = Settings()
