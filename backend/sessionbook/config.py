# backend/sessionbook/config.py

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # /session-booking


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/booking.db"
    redis_url: str = "redis://localhost:6379/0"

    # Slot grid: one fixed calendar, labels are wall-clock start times
    booking_slots: list[str] = [
        "10:00 AM",
        "11:00 AM",
        "12:00 PM",
        "1:00 PM",
        "2:00 PM",
        "3:00 PM",
        "4:00 PM",
    ]
    slot_minutes: int = 60
    open_weekdays: list[int] = [0, 1, 2, 3, 4]  # Monday..Friday

    default_session_grant: int = 0
    max_series_occurrences: int = 12

    # Validation collaborator thresholds (None = rule disabled)
    booking_time_limit_hours: Optional[int] = None
    cancel_time_limit_hours: Optional[int] = None

    commit_retries: int = 3
    admin_user_ids: list[str] = []
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative SQLite paths are resolved against the project root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
