import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    storage_backend: str = os.getenv("STORAGE_BACKEND", "memory").strip().lower()
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///expense_tracker.db")
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "MYR").strip().upper()
    log_level: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    seed_sample_data: bool = _env_flag("SEED_SAMPLE_DATA")


settings = Settings()
