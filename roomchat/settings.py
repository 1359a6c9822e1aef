from dataclasses import dataclass
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class CoordinatorConfig:
    history_limit: int = 100


@dataclass(frozen=True)
class RetentionConfig:
    permanent_max_age_days: int = 30
    permanent_sweep_hour: int = 3
    reaper_interval_seconds: float = 60.0


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./chatroom.db"
    API_KEY: str = ""
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    HISTORY_LIMIT: int = 100
    PERMANENT_RETENTION_DAYS: int = 30
    PERMANENT_SWEEP_HOUR: int = 3
    REAPER_INTERVAL_SECONDS: float = 60.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")

    def coordinator_config(self) -> CoordinatorConfig:
        return CoordinatorConfig(history_limit=self.HISTORY_LIMIT)

    def retention_config(self) -> RetentionConfig:
        return RetentionConfig(
            permanent_max_age_days=self.PERMANENT_RETENTION_DAYS,
            permanent_sweep_hour=self.PERMANENT_SWEEP_HOUR,
            reaper_interval_seconds=self.REAPER_INTERVAL_SECONDS,
        )

settings = Settings()
